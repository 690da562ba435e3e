"""backlot-cli: Operator command-line interface for backlot."""

__version__ = "0.1.0"
