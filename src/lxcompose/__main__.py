"""Main entry point for lxcompose."""

from lxcompose.cli.main import main


if __name__ == "__main__":
    main()
