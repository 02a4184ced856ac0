"""Food wastage reporting: period windows, CSV reports and scheduled mail."""
