"""
SMX core module.
"""

from .file import SmxFile, SmxHeader
from .sections import NameTable, Tag
from .rtti import RttiData, RowTableHeader, TypeBuilder, TypeReferences
from .debug import DebugResolver, interval_lookup
from .structures import *
from .enums import *

__all__ = [
    'SmxFile',
    'SmxHeader',
    'NameTable',
    'Tag',
    'RttiData',
    'RowTableHeader',
    'TypeBuilder',
    'TypeReferences',
    'DebugResolver',
    'interval_lookup',
    # Re-export structures and enums
    'SectionEntry',
    'DebugVarEntry',
    'RttiMethod',
    'TypeCode',
    'TypeIdKind',
    'TagFlags',
    'VarClass',
]
