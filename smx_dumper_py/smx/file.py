"""
SMX container loader.

SmxHeader validates the file header, inflates the compressed part of the
image and reads the section directory. SmxFile builds every known section
table from it, RTTI reference tables first so the type decoder can resolve
names while the remaining tables are built.
"""

import zlib
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..errors import (
    SmxError,
    SmxIOError,
    InvalidMagicError,
    InvalidSizeError,
    InvalidOffsetError,
    OffsetOverflowError,
    SizeOverflowError,
)
from ..io.binary_stream import BinaryStream
from .enums import SMX_MAGIC, CompressionType
from .structures import SmxFileHeader, SectionEntry
from .sections import (
    NameTable,
    NativeTable,
    PublicTable,
    PubvarTable,
    TagTable,
    CalledFunctionsTable,
    DataSection,
    CodeSection,
)
from .rtti import (
    TypeReferences,
    RttiData,
    RttiEnumTable,
    RttiMethodTable,
    RttiNativeTable,
    RttiTypedefTable,
    RttiTypesetTable,
    RttiClassDefTable,
    RttiFieldTable,
    RttiEnumStructTable,
    RttiEnumStructFieldTable,
)
from .debug import (
    DebugResolver,
    DebugFileTable,
    DebugLineTable,
    DebugMethodTable,
    DebugVarTable,
    read_debug_info,
)


class SmxHeader:
    """
    Parsed file header, section directory and decompressed image.

    Attributes:
        file_header: The raw header fields
        data: The decompressed image (header and directory included)
        sections: Section directory entries with resolved names
    """

    def __init__(self, data: bytes):
        stream = BinaryStream(data)
        header_size = stream.size_of(SmxFileHeader)
        if len(data) < header_size:
            raise InvalidSizeError(f"File is {len(data)} bytes, smaller than the {header_size}-byte header")

        self.file_header: SmxFileHeader = stream.read_class(SmxFileHeader, 0)
        h = self.file_header

        if h.magic != SMX_MAGIC:
            raise InvalidMagicError(f"Invalid SMX file: wrong magic number 0x{h.magic:08X}")
        if h.disksize < header_size or h.imagesize < header_size:
            raise InvalidSizeError(f"Invalid SMX file: disksize {h.disksize}, imagesize {h.imagesize}")
        if h.disksize > len(data):
            raise SizeOverflowError(f"Header claims {h.disksize} bytes on disk, file has {len(data)}")
        if h.dataoffs > h.disksize:
            raise InvalidOffsetError(f"Data offset {h.dataoffs} is past disksize {h.disksize}")

        directory_end = header_size + h.num_sections * stream.size_of(SectionEntry)
        if directory_end > h.dataoffs and h.compression != CompressionType.NONE:
            raise InvalidSizeError("Section directory overlaps compressed data")

        self.data: bytes = self._inflate(data[:h.disksize])

        if directory_end > len(self.data):
            raise InvalidSizeError(f"Section directory of {h.num_sections} entries exceeds image")
        if h.stringtab >= len(self.data):
            raise OffsetOverflowError(f"String table offset {h.stringtab} is past image end")

        self.sections: List[SectionEntry] = self._read_sections(header_size)

    def _inflate(self, data: bytes) -> bytes:
        h = self.file_header
        if h.compression == CompressionType.NONE:
            return data

        if h.compression != CompressionType.GZ:
            raise SmxError(f"Unsupported compression type {h.compression}")

        try:
            body = zlib.decompress(data[h.dataoffs:])
        except zlib.error as e:
            raise SmxError(f"Corrupt compressed image: {e}") from e

        image = data[:h.dataoffs] + body
        if len(image) != h.imagesize:
            raise InvalidSizeError(f"Decompressed image is {len(image)} bytes, header says {h.imagesize}")
        return image

    def _read_sections(self, directory_offset: int) -> List[SectionEntry]:
        stream = BinaryStream(self.data)
        entries = stream.read_class_array(
            SectionEntry, addr=directory_offset, count=self.file_header.num_sections
        )

        for entry in entries:
            name_addr = self.file_header.stringtab + entry.name_offset
            if name_addr >= len(self.data):
                raise OffsetOverflowError(f"Section name offset {entry.name_offset} is past image end")
            entry.name = stream.read_string_to_null(name_addr)

            if entry.data_offset > len(self.data):
                raise OffsetOverflowError(f"Section '{entry.name}' starts past image end")
            if entry.data_offset + entry.size > len(self.data):
                raise SizeOverflowError(f"Section '{entry.name}' runs past image end")

        return entries

    @property
    def version(self) -> int:
        return self.file_header.version

    def find_section(self, name: str) -> Optional[SectionEntry]:
        for section in self.sections:
            if section.name == name:
                return section
        return None


class SmxFile:
    """
    A fully decoded SMX image.

    Tables for sections that are absent from the image are None.
    """

    def __init__(self, data: bytes):
        self.header = SmxHeader(data)
        self._by_name: Dict[str, SectionEntry] = {s.name: s for s in self.header.sections}

        self.names = self._build('.names', NameTable)
        self.debug_names = self._build('.dbg.strings', NameTable) or self._build('.dbg.names', NameTable)

        # Referenced by the type decoder
        self.rtti_enums = self._build_named('rtti.enums', RttiEnumTable)
        self.rtti_typedefs = self._build_named('rtti.typedefs', RttiTypedefTable)
        self.rtti_typesets = self._build_named('rtti.typesets', RttiTypesetTable)
        self.rtti_classdefs = self._build_named('rtti.classdefs', RttiClassDefTable)
        self.rtti_enum_structs = self._build_named('rtti.enumstructs', RttiEnumStructTable)

        refs = TypeReferences.from_tables(
            enums=self.rtti_enums,
            typedefs=self.rtti_typedefs,
            typesets=self.rtti_typesets,
            classdefs=self.rtti_classdefs,
            enum_structs=self.rtti_enum_structs,
        )
        section = self._by_name.get('rtti.data')
        self.rtti_data: Optional[RttiData] = RttiData(self.header, section, refs) if section else None

        self.rtti_methods = self._build_named('rtti.methods', RttiMethodTable)
        self.rtti_natives = self._build_named('rtti.natives', RttiNativeTable)
        self.rtti_fields = self._build_named('rtti.fields', RttiFieldTable)
        self.rtti_enum_struct_fields = self._build_named('rtti.enumstruct_fields', RttiEnumStructFieldTable)

        self.natives = self._build_named('.natives', NativeTable)
        self.publics = self._build_named('.publics', PublicTable)
        self.pubvars = self._build_named('.pubvars', PubvarTable)
        self.tags = self._build_named('.tags', TagTable)
        self.called_functions = CalledFunctionsTable()

        self.data_section = self._build('.data', DataSection)
        self.code_section = self._build('.code', CodeSection)

        section = self._by_name.get('.dbg.info')
        self.debug_info = read_debug_info(self.header, section) if section else None

        section = self._by_name.get('.dbg.files')
        if section and self.debug_names is None:
            raise SmxError("Section '.dbg.files' requires a debug string table")
        self.debug_files = DebugFileTable(self.header, section, self.debug_names) if section else None
        self.debug_lines = self._build('.dbg.lines', DebugLineTable)
        self.debug_methods = self._build('.dbg.methods', DebugMethodTable)
        self.debug_globals = self._build_named('.dbg.globals', DebugVarTable)
        self.debug_locals = self._build_named('.dbg.locals', DebugVarTable)

        self.resolver = DebugResolver(
            files=self.debug_files,
            lines=self.debug_lines,
            globals_=self.debug_globals,
            locals_=self.debug_locals,
            methods=self.debug_methods,
            rtti_methods=self.rtti_methods,
            rtti_data=self.rtti_data,
        )

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> 'SmxFile':
        """Load and decode an .smx file from disk."""
        try:
            data = Path(path).read_bytes()
        except OSError as e:
            raise SmxIOError(f"Cannot read {path}: {e}") from e
        return cls(data)

    def _build(self, name: str, table_cls):
        section = self._by_name.get(name)
        if section is None:
            return None
        return table_cls(self.header, section)

    def _build_named(self, name: str, table_cls):
        section = self._by_name.get(name)
        if section is None:
            return None
        if self.names is None:
            raise SmxError(f"Section '{name}' requires a .names table")
        return table_cls(self.header, section, self.names)

    # ========== Convenience ==========

    def native_signature(self, index: int) -> Optional[str]:
        """Signature of .natives[index] from rtti.natives, when present."""
        if self.rtti_natives is None or self.rtti_data is None or index >= len(self.rtti_natives):
            return None
        return self.rtti_data.function_type_from_offset(self.rtti_natives[index].signature)

    def method_signature(self, index: int) -> Optional[str]:
        if self.rtti_methods is None or self.rtti_data is None:
            return None
        return self.rtti_data.function_type_from_offset(self.rtti_methods[index].signature)
