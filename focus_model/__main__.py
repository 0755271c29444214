import sys

from .live_monitor import main

sys.exit(main())
