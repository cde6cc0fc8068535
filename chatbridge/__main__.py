"""Main entry point when executing chatbridge as a package.

This allows running the package using python -m chatbridge.
"""

from chatbridge.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
