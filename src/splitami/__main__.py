"""Entry point for ``python -m splitami``."""

from splitami.cli.main import main


if __name__ == "__main__":
    main()
