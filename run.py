#!/usr/bin/env python
"""
Run script for Gieter.
Use: python run.py
Or, once installed: gieter
"""
import sys

from gieter.main import main


if __name__ == "__main__":
    sys.exit(main())
