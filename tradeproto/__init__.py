"""FAST templates, codec, sessions and feeds, price-level order books, byte buffers and integer formatting."""

__version__ = "0.1.0"