"""Platform capture backends."""
