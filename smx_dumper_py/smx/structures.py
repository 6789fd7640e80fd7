"""
SMX data structure definitions.

These dataclasses mirror the packed little-endian records found in SMX
images. Fields created with one of the *_field() helpers are read from disk;
plain fields (resolved names) are filled in after reading. Fields marked with
version_field() are only present in some code versions.
"""

from dataclasses import dataclass, field

from ..io.version_aware import version_field
from .enums import CODE_VERSION_FEATURES, TAG_FLAG_MASK


def u8_field(default: int = 0):
    """Create a field that should be read as unsigned byte."""
    return field(default=default, metadata={'binary_size': 1, 'unsigned': True})


def u16_field(default: int = 0):
    """Create a field that should be read as unsigned short (2 bytes)."""
    return field(default=default, metadata={'binary_size': 2, 'unsigned': True})


def u32_field(default: int = 0):
    """Create a field that should be read as unsigned int (4 bytes)."""
    return field(default=default, metadata={'binary_size': 4, 'unsigned': True})


def i32_field(default: int = 0):
    """Create a field that should be read as signed int (4 bytes)."""
    return field(default=default, metadata={'binary_size': 4, 'unsigned': False})


# ============================================================
# Container
# ============================================================

@dataclass
class SmxFileHeader:
    """Header at the start of every .smx file (24 bytes, packed)."""
    magic: int = u32_field()
    version: int = u16_field()
    compression: int = u8_field()
    disksize: int = u32_field()
    imagesize: int = u32_field()
    num_sections: int = u8_field()
    stringtab: int = u32_field()
    dataoffs: int = u32_field()


@dataclass
class SectionEntry:
    """Entry of the section directory following the file header."""
    name_offset: int = u32_field()
    data_offset: int = u32_field()
    size: int = u32_field()
    name: str = ""


# ============================================================
# Flat sections
# ============================================================

@dataclass
class NativeEntry:
    """.natives row."""
    name_offset: int = u32_field()
    name: str = ""


@dataclass
class PublicEntry:
    """.publics row."""
    address: int = u32_field()
    name_offset: int = u32_field()
    name: str = ""


@dataclass
class PubvarEntry:
    """.pubvars row."""
    address: int = u32_field()
    name_offset: int = u32_field()
    name: str = ""


@dataclass
class TagEntry:
    """.tags row. The high bits of `tag` are TagFlags."""
    FLAGMASK = int(TAG_FLAG_MASK)

    tag: int = u32_field()
    name_offset: int = u32_field()
    name: str = ""


@dataclass
class CalledFunctionEntry:
    """Call target discovered while walking code."""
    address: int = 0
    name: str = ""


@dataclass
class DataHeader:
    """Header of the .data section."""
    datasize: int = u32_field()
    memsize: int = u32_field()
    data: int = u32_field()


@dataclass
class CodeHeader:
    """Header of the .code section."""
    codesize: int = i32_field()
    cellsize: int = u8_field()
    codeversion: int = u8_field()
    flags: int = u16_field()
    main: int = i32_field()
    code: int = i32_field()
    features: int = version_field(min_ver=CODE_VERSION_FEATURES, binary_size=4, unsigned=False)


# ============================================================
# RTTI tables
# ============================================================

@dataclass
class RttiEnum:
    """rtti.enums row."""
    name_offset: int = i32_field()
    reserved0: int = i32_field()
    reserved1: int = i32_field()
    reserved2: int = i32_field()
    name: str = ""


@dataclass
class RttiMethod:
    """rtti.methods row."""
    name_offset: int = i32_field()
    pcode_start: int = i32_field()
    pcode_end: int = i32_field()
    signature: int = i32_field()
    name: str = ""

    def contains(self, code_addr: int) -> bool:
        return self.pcode_start <= code_addr < self.pcode_end


@dataclass
class RttiNative:
    """rtti.natives row."""
    name_offset: int = i32_field()
    signature: int = i32_field()
    name: str = ""


@dataclass
class RttiTypedef:
    """rtti.typedefs row."""
    name_offset: int = i32_field()
    type_id: int = u32_field()
    name: str = ""


@dataclass
class RttiTypeset:
    """rtti.typesets row."""
    name_offset: int = i32_field()
    signature: int = i32_field()
    name: str = ""


@dataclass
class RttiClassDef:
    """rtti.classdefs row."""
    flags: int = i32_field()
    name_offset: int = i32_field()
    first_field: int = i32_field()
    reserved0: int = i32_field()
    reserved1: int = i32_field()
    reserved2: int = i32_field()
    reserved3: int = i32_field()
    name: str = ""


@dataclass
class RttiField:
    """rtti.fields row."""
    flags: int = u16_field()
    name_offset: int = i32_field()
    type_id: int = u32_field()
    name: str = ""


@dataclass
class RttiEnumStruct:
    """rtti.enumstructs row."""
    name_offset: int = i32_field()
    first_field: int = i32_field()
    size: int = i32_field()
    name: str = ""


@dataclass
class RttiEnumStructField:
    """rtti.enumstruct_fields row."""
    name_offset: int = i32_field()
    type_id: int = u32_field()
    offset: int = i32_field()
    name: str = ""


# ============================================================
# Debug tables
# ============================================================

@dataclass
class DebugInfo:
    """.dbg.info contents."""
    num_files: int = u32_field()
    num_lines: int = u32_field()
    num_syms: int = u32_field()
    num_arrays: int = u32_field()


@dataclass
class DebugFileEntry:
    """.dbg.files row."""
    address: int = u32_field()
    name_offset: int = u32_field()
    name: str = ""


@dataclass
class DebugLineEntry:
    """.dbg.lines row. `line` is zero-based."""
    address: int = u32_field()
    line: int = u32_field()


@dataclass
class DebugMethodEntry:
    """.dbg.methods row."""
    method_index: int = u32_field()
    first_local: int = u32_field()


@dataclass
class DebugVarEntry:
    """.dbg.globals / .dbg.locals row."""
    address: int = i32_field()
    vclass: int = u8_field()
    name_offset: int = u32_field()
    code_start: int = u32_field()
    code_end: int = u32_field()
    type_id: int = u32_field()
    name: str = ""

    @property
    def scope(self) -> int:
        return self.vclass & 0x3

    def is_live_at(self, code_addr: int) -> bool:
        return self.code_start <= code_addr < self.code_end
