import sys

from toolshed.cli import run

sys.exit(run())
