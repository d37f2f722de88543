"""Encoders built on index referencable buffers."""

from .backpatch import BackpatchWriter, LengthField

__all__ = ["BackpatchWriter", "LengthField"]
