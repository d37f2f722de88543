"""Growable byte buffers with stable, auto-updating index references."""

__all__ = [
    "buffer",
    "encoding",
    "runtime",
]

__version__ = "0.1.0"
