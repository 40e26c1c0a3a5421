#!/usr/bin/env python3
"""
nowplaying HTTP Server Runner
"""

import sys

from nowplaying.interfaces.cli import CLI


def main():
    """Run the HTTP server."""
    sys.exit(CLI().run(['serve'] + sys.argv[1:]))


if __name__ == '__main__':
    main()
