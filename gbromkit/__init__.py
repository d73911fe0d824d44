"""Game Boy ROM header fixing, tile graphics conversion, and supporting helpers."""

__version__ = "0.1.0"