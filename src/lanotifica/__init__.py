"""LaNotifica: forward Android notifications to the desktop over the LAN."""

__version__ = "0.1.0"
