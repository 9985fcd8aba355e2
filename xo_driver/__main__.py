"""Module entrypoint: ``python -m xo_driver``."""

import sys

from xo_driver import cli

sys.exit(cli.main())
