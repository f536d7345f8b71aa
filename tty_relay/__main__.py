import sys

from tty_relay.cli import main

sys.exit(main())
