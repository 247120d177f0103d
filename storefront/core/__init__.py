"""Core infrastructure shared by the engine services."""
