"""Entry point for ``python -m lxcompose.cli``."""

from lxcompose.cli.main import main


if __name__ == "__main__":
    main()
