"""Create UEFI-bootable Windows installation USB drives from ISO images."""

from win_usb_creator.__version__ import __version__

__all__ = ["__version__"]
