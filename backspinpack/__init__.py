"""Internal packages for Backspin."""

__version__ = "0.4.1"
