#!/usr/bin/env python3
"""
IoT Control System Setup - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
Interactive installer that provisions a Raspberry Pi into the
IoT Control System stack, one module at a time.

============================================================
USAGE
============================================================
    sudo python app.py
    sudo DEBUG=true python app.py

Place credentials.env next to this file (or point
SETUP_ENV_FILE at it) and the module scripts in ./modules.

============================================================
"""

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.absolute()
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from orchestrator.cli import main


if __name__ == "__main__":
    sys.exit(main())
