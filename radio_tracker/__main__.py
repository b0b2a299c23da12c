import sys

from radio_tracker.cli import main

sys.exit(main())
