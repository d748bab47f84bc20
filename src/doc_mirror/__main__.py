import sys

from doc_mirror.main import cli

sys.exit(cli())
