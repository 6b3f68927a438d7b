#!/usr/bin/env python3
"""
Run the app-v1 server.

Usage:
    python run.py                  # serve on 0.0.0.0:8080
    python run.py --port 9000      # any app-v1 CLI arguments work

    # or with venv
    .venv/Scripts/python run.py
"""
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))


if __name__ == "__main__":
    from app_v1.cli import main

    sys.exit(main(sys.argv[1:]))
