"""Entry point for ``python -m ddl_emitter``."""

import sys

from ddl_emitter.cli import main

sys.exit(main())
