# Allows `python -m mcpctl`
import sys

from mcpctl.cli import main

sys.exit(main())
