"""jellystreaming - library/acquisition reconciliation backend."""

__version__ = "0.4.0"
