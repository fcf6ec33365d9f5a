"""Version information for the netproxy package."""

__version__ = "1.0.0"
