"""
Main entry point when running the swerve_control module with python -m.
"""

import sys

from .client import cli

if __name__ == "__main__":
    sys.exit(cli())
