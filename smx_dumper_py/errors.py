"""
Exceptions raised while loading and decoding SMX images.

Every construction-time failure surfaces as a subclass of SmxError so callers
can catch one type. Display-time problems in the type decoder are rendered as
placeholder strings instead of being raised.
"""


class SmxError(Exception):
    """Base class for SMX decoding errors."""
    pass


class InvalidMagicError(SmxError):
    """The file does not start with the SMX magic number."""
    pass


class InvalidSizeError(SmxError):
    """A declared size is too small for the structure it describes."""
    pass


class InvalidOffsetError(SmxError):
    """An offset points outside the bytes it is supposed to index."""
    pass


class InvalidIndexError(SmxError):
    """An index into a name table or record table is out of range."""
    pass


class OffsetOverflowError(SmxError):
    """An offset lies beyond the end of the image."""
    pass


class SizeOverflowError(SmxError):
    """An offset plus size runs past the end of the image or section."""
    pass


class SmxIOError(SmxError):
    """Reading the image from disk failed."""
    pass
