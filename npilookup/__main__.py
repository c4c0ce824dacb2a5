"""Main entry point when executing npilookup as a package.

This allows running the package using python -m npilookup.
"""

from npilookup.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
