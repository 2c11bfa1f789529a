"""MANY protocol CBOR values, attributes, COSE keys, errors and messages."""

__version__ = "0.1.0"

__all__ = ["cbor", "protocol", "cose_keys", "error", "messages"]