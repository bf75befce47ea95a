import sys

from win_usb_creator.main import main

sys.exit(main())
