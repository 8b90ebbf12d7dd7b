"""Sitebrief - website brief extractor

Run ``python main.py --url example.com`` to crawl a site and print its brief.
"""

import sys

from sitebrief.cli import main

if __name__ == "__main__":
    sys.exit(main())
