import argparse
import sys
from pathlib import Path
from typing import Optional

from win_usb_creator.__version__ import __version__
from win_usb_creator import workflow
from win_usb_creator.app.context import Services
from win_usb_creator.config import settings
from win_usb_creator.domain.models import RunConfig
from win_usb_creator.logging import LoggerFactory, setup_logging
from win_usb_creator.storage.exceptions import UsageError, UsbCreatorError
from win_usb_creator.ui import console

# FAT32 labels are limited to 11 characters
MAX_VOLUME_NAME_LENGTH = 11
# wimlib parts must stay below the FAT32 4 GiB file size limit
MAX_SPLIT_SIZE_MB = 4095

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130

DESCRIPTION = """\
Create a UEFI-bootable Windows USB drive from an ISO image.

This tool:
  * Erases the target disk as GPT + FAT32
  * Copies ISO contents to the USB
  * Splits sources/install.wim to .swm chunks if >4GB
"""


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        self.print_usage(sys.stderr)
        console.error(message)
        self.exit(EXIT_USAGE)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="win-usb-creator",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-i", "--iso", required=True, metavar="PATH", help="Path to Windows ISO (required)"
    )
    parser.add_argument(
        "-d",
        "--disk",
        metavar="DISK",
        help="Target disk identifier (e.g., disk2). If omitted, you'll be prompted.",
    )
    parser.add_argument(
        "-n",
        "--name",
        metavar="NAME",
        help=f"USB volume name (default: {settings.get_setting('volume_name')})",
    )
    parser.add_argument(
        "-s",
        "--split-size",
        metavar="MB",
        type=int,
        help=f"Split size in MB for install.wim (default: {settings.get_setting('split_size_mb')})",
    )
    parser.add_argument("--debug", action="store_true", help="Enable verbose debug output")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def build_config(args: argparse.Namespace) -> RunConfig:
    """Layer command line options over the settings file.

    Raises:
        UsageError: If an option value is out of range
    """
    volume_name = args.name
    if volume_name is None:
        volume_name = str(settings.get_setting("volume_name", settings.DEFAULT_VOLUME_NAME))
    if not volume_name or len(volume_name) > MAX_VOLUME_NAME_LENGTH:
        raise UsageError(
            f"Volume name must be 1-{MAX_VOLUME_NAME_LENGTH} characters: {volume_name!r}"
        )

    split_size_mb = args.split_size
    if split_size_mb is None:
        split_size_mb = settings.get_int("split_size_mb", settings.DEFAULT_SPLIT_SIZE_MB)
    if not 1 <= split_size_mb <= MAX_SPLIT_SIZE_MB:
        raise UsageError(
            f"Split size must be between 1 and {MAX_SPLIT_SIZE_MB} MB: {split_size_mb}"
        )

    return RunConfig(
        iso_path=Path(args.iso).expanduser(),
        disk_id=args.disk or None,
        volume_name=volume_name,
        split_size_mb=split_size_mb,
        mount_root=Path(str(settings.get_setting("mount_root", settings.DEFAULT_MOUNT_ROOT))),
        settle_seconds=settings.get_float("settle_seconds", settings.DEFAULT_SETTLE_SECONDS),
    )


def main(argv=None, services: Optional[Services] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(debug=args.debug)
    log = LoggerFactory.for_system()

    try:
        config = build_config(args)
    except UsageError as error:
        parser.print_usage(sys.stderr)
        console.error(str(error))
        return EXIT_USAGE
    log.info(f"win-usb-creator {__version__} starting: {config}")

    try:
        workflow.run(config, services or Services())
    except KeyboardInterrupt:
        console.error("Interrupted.")
        log.warning("Run interrupted by user")
        return EXIT_INTERRUPTED
    except UsbCreatorError as error:
        console.error(str(error))
        log.error(f"Run failed: {type(error).__name__}: {error}")
        return EXIT_FAILURE
    log.success("Run completed")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
