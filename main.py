#!/usr/bin/env python3
"""
TavernTally - Main Entry Point

Usage:
    python main.py PATH/TO/Power.log            # replay the trailing window
    python main.py PATH/TO/Power.log --full     # replay the whole file
    python main.py PATH/TO/Power.log --debug    # per-line detail in logs/taverntally.log
"""

import sys

from taverntally.app import main

if __name__ == "__main__":
    sys.exit(main())
