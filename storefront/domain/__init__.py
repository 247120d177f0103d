"""Domain types for the commerce engine."""
