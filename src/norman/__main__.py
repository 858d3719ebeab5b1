"""Allow running norman as ``python -m norman``."""

from norman.cli import cli_main

if __name__ == "__main__":
    cli_main()
