#!/usr/bin/env python3
"""
Time-lapse deflicker: smooth frame-to-frame brightness changes in an image sequence.

Usage examples:
  python main.py "/path/to/timelapse" --window 15 --passes 2 --workers 8
  python main.py frames.txt -o /path/to/out --exiftool-mode none
  python main.py "/path/to/timelapse" --config deflicker.yaml
"""

from deflicker.cli import main

if __name__ == "__main__":
    main()
