"""Route editing service for transit lines."""

__version__ = "0.1.0"
