from __future__ import annotations

from dataclasses import dataclass, field

from win_usb_creator.storage.copy import FileCopyService, RsyncService
from win_usb_creator.storage.disks import DiskService, DiskutilService
from win_usb_creator.storage.images import HdiutilService, ImageMountService
from win_usb_creator.storage.wim import SplitService, WimlibService
from win_usb_creator.ui.console import Prompt, TerminalPrompt


@dataclass
class Services:
    """External collaborators used by one run of the pipeline."""

    disks: DiskService = field(default_factory=DiskutilService)
    images: ImageMountService = field(default_factory=HdiutilService)
    copier: FileCopyService = field(default_factory=RsyncService)
    splitter: SplitService = field(default_factory=WimlibService)
    prompt: Prompt = field(default_factory=TerminalPrompt)
