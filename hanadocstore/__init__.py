"""FJSON codecs, SAP HANA schema and collection management, and a command registry."""

__version__ = "0.1.0"

__all__ = ["commands", "fjson", "hanapool", "scalars"]