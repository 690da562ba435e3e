"""backlot-schemas: Pydantic schemas for the backlot work pool and pipeline."""

__version__ = "0.1.0"
