#!/usr/bin/env python3
"""
Liqwid Health Factor Monitor
Entry point for ``python -m hf_monitor.main``
"""
from .cli import main

if __name__ == "__main__":
    main()
