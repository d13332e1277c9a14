"""CLI entrypoint for the contact sheet tool."""

import sys

from contact_sheet.cli import main

if __name__ == "__main__":
    sys.exit(main())
