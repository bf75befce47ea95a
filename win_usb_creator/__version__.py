"""Version information for win-usb-creator."""

__version__ = "1.0.0"
