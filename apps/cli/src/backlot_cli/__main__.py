"""Module entrypoint for ``python -m backlot_cli``."""

from backlot_cli.main import main

main()
