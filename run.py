#!/usr/bin/env python3
"""
JobPulse - Main Entry Point

Usage:
    python run.py login --token <token>
    python run.py connect [gmail|outlook]
    python run.py fetch --query interview
    python run.py track

Environment Variables:
    JOBPULSE_ENV: development (default), production, testing
    JOBPULSE_API_URL: Provider service root (optional)
    LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (optional)
"""

import sys
from pathlib import Path

# Ensure app directory is in path
APP_DIR = Path(__file__).parent
sys.path.insert(0, str(APP_DIR))

from jobpulse.cli import main

if __name__ == "__main__":
    sys.exit(main())
