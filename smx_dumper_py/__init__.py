"""
SMX Dumper
A tool for extracting symbols, type signatures and debug information from
compiled SourcePawn plugins (.smx).
"""

__version__ = "0.1.0"
__author__ = "SMX Dumper Contributors"

from .config import Config
from .errors import SmxError
from .smx.file import SmxFile

__all__ = ['Config', 'SmxError', 'SmxFile', '__version__']
