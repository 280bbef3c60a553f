"""Pool registry and data sources."""
