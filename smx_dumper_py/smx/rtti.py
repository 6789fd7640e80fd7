"""
RTTI tables and the type-signature decoder.

RTTI sections share one layout: a 12-byte header (header_size, row_size,
row_count) followed by row_count rows of row_size bytes each. The rtti.data
section is a blob of type signatures that the other tables point into by
offset; TypeBuilder turns those bytes back into SourcePawn type strings.
"""

from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Tuple, Type, TypeVar, TYPE_CHECKING

if TYPE_CHECKING:
    from .file import SmxHeader

from ..errors import InvalidIndexError, InvalidSizeError, SizeOverflowError
from ..io.binary_stream import BinaryStream
from .enums import PRIMITIVE_NAMES, TypeCode, TypeIdKind
from .sections import BaseSection, NameTable, RecordTable
from .structures import (
    SectionEntry,
    RttiEnum,
    RttiMethod,
    RttiNative,
    RttiTypedef,
    RttiTypeset,
    RttiClassDef,
    RttiField,
    RttiEnumStruct,
    RttiEnumStructField,
)

T = TypeVar('T')


class RowTableHeader:
    """The header shared by every RTTI-style row table."""

    SIZE = 12

    def __init__(self):
        self.header_size = 0
        self.row_size = 0
        self.row_count = 0

    def init(self, data: bytes) -> 'RowTableHeader':
        """
        Read header_size, row_size and row_count from the first 12 bytes.

        Raises:
            InvalidSizeError: If the header is truncated or too small
            SizeOverflowError: If the declared rows do not fit in `data`
        """
        if len(data) < self.SIZE:
            raise InvalidSizeError(f"Row table header needs {self.SIZE} bytes, got {len(data)}")

        stream = BinaryStream(data)
        self.header_size = stream.read_uint32()
        self.row_size = stream.read_uint32()
        self.row_count = stream.read_uint32()

        if self.header_size < self.SIZE:
            raise InvalidSizeError(f"Row table header_size {self.header_size} is smaller than {self.SIZE}")
        if self.table_size > len(data):
            raise SizeOverflowError(
                f"Row table needs {self.table_size} bytes ({self.row_count} rows of {self.row_size}), "
                f"section has {len(data)}"
            )
        return self

    @property
    def table_size(self) -> int:
        return self.header_size + self.row_count * self.row_size

    def row_offsets(self) -> Iterator[int]:
        for i in range(self.row_count):
            yield self.header_size + i * self.row_size


def read_row_table(header: 'SmxHeader', section: SectionEntry, cls: Type[T]) -> List[T]:
    """
    Decode every row of an RTTI-style section as `cls`.

    Rows are read at their declared stride, so trailing per-row bytes the
    record does not describe are skipped.
    """
    data = BaseSection(header, section).get_data()
    table = RowTableHeader().init(data)

    stream = BinaryStream(data)
    record_size = stream.size_of(cls)
    if table.row_count and table.row_size < record_size:
        raise InvalidSizeError(
            f"Section '{section.name}' row_size {table.row_size} is smaller than {cls.__name__} ({record_size})"
        )

    return [stream.read_class(cls, offset) for offset in table.row_offsets()]


class NamedRowTable(RecordTable[T]):
    """An RTTI row table whose rows carry a name offset into .names."""

    row_class: Type[T]

    def __init__(self, header: 'SmxHeader', section: SectionEntry, names: NameTable):
        rows = read_row_table(header, section, self.row_class)
        for row in rows:
            row.name = names.string_at(row.name_offset)
        super().__init__(rows)

    def name_at(self, index: int) -> str:
        """
        Return the name of row `index`.

        Raises:
            InvalidIndexError: If the index is out of range
        """
        if index < 0 or index >= len(self._rows):
            raise InvalidIndexError(
                f"{type(self).__name__} index {index} out of range ({len(self._rows)} rows)"
            )
        return self._rows[index].name


class RttiEnumTable(NamedRowTable[RttiEnum]):
    """rtti.enums"""
    row_class = RttiEnum

    def enums(self) -> List[str]:
        return [row.name for row in self._rows]


class RttiMethodTable(NamedRowTable[RttiMethod]):
    """rtti.methods"""
    row_class = RttiMethod

    def find_method(self, code_addr: int) -> Optional[Tuple[int, RttiMethod]]:
        """Return (index, method) whose pcode range contains code_addr."""
        for index, method in enumerate(self._rows):
            if method.contains(code_addr):
                return index, method
        return None


class RttiNativeTable(NamedRowTable[RttiNative]):
    """rtti.natives"""
    row_class = RttiNative


class RttiTypedefTable(NamedRowTable[RttiTypedef]):
    """rtti.typedefs"""
    row_class = RttiTypedef


class RttiTypesetTable(NamedRowTable[RttiTypeset]):
    """rtti.typesets"""
    row_class = RttiTypeset


class RttiFieldTable(NamedRowTable[RttiField]):
    """rtti.fields"""
    row_class = RttiField


class RttiEnumStructFieldTable(NamedRowTable[RttiEnumStructField]):
    """rtti.enumstruct_fields"""
    row_class = RttiEnumStructField


def _field_slice(first_fields: List[int], index: int, total: int) -> range:
    """Rows [first_field, next owner's first_field) of a field table."""
    start = first_fields[index]
    end = first_fields[index + 1] if index + 1 < len(first_fields) else total
    return range(start, end)


class RttiClassDefTable(NamedRowTable[RttiClassDef]):
    """rtti.classdefs"""
    row_class = RttiClassDef

    def fields_of(self, index: int, fields: RttiFieldTable) -> List[RttiField]:
        first_fields = [row.first_field for row in self._rows]
        return [fields[i] for i in _field_slice(first_fields, index, len(fields))]


class RttiEnumStructTable(NamedRowTable[RttiEnumStruct]):
    """rtti.enumstructs"""
    row_class = RttiEnumStruct

    def fields_of(self, index: int, fields: RttiEnumStructFieldTable) -> List[RttiEnumStructField]:
        first_fields = [row.first_field for row in self._rows]
        return [fields[i] for i in _field_slice(first_fields, index, len(fields))]


# ============================================================
# Type signature decoding
# ============================================================

def _missing_table(kind: str) -> Callable[[int], str]:
    def lookup(index: int) -> str:
        raise InvalidIndexError(f"Type references {kind} #{index} but the image has no {kind} table")
    return lookup


@dataclass
class TypeReferences:
    """
    Name lookups the decoder needs, one per referenced RTTI table.

    Each lookup maps a row index to a name and raises InvalidIndexError when
    the index is out of range.
    """
    enum_name: Callable[[int], str] = _missing_table("enum")
    typedef_name: Callable[[int], str] = _missing_table("typedef")
    typeset_name: Callable[[int], str] = _missing_table("typeset")
    classdef_name: Callable[[int], str] = _missing_table("classdef")
    enum_struct_name: Callable[[int], str] = _missing_table("enum struct")

    @classmethod
    def from_tables(
        cls,
        enums: Optional[RttiEnumTable] = None,
        typedefs: Optional[RttiTypedefTable] = None,
        typesets: Optional[RttiTypesetTable] = None,
        classdefs: Optional[RttiClassDefTable] = None,
        enum_structs: Optional[RttiEnumStructTable] = None,
    ) -> 'TypeReferences':
        refs = cls()
        if enums is not None:
            refs.enum_name = enums.name_at
        if typedefs is not None:
            refs.typedef_name = typedefs.name_at
        if typesets is not None:
            refs.typeset_name = typesets.name_at
        if classdefs is not None:
            refs.classdef_name = classdefs.name_at
        if enum_structs is not None:
            refs.enum_struct_name = enum_structs.name_at
        return refs


class TypeBuilder:
    """
    Recursive-descent decoder for one type-signature byte stream.

    The cursor is the stream position. The const flag is not stored on the
    builder: decode() returns whether it consumed a CONST marker, and
    decode_new() is the only place that turns that into a "const " prefix.
    """

    def __init__(self, refs: TypeReferences, data: bytes, offset: int = 0):
        self.refs = refs
        self.stream = BinaryStream(data)
        self.stream.position = offset

    @property
    def offset(self) -> int:
        return self.stream.position

    def decode_new(self) -> str:
        """Decode a type that owns its own const flag."""
        text, is_const = self.decode()
        if is_const:
            text = f"const {text}"
        return text

    def decode(self) -> Tuple[str, bool]:
        """
        Decode one type in the caller's const frame.

        Returns:
            (text, is_const) where is_const is True if a CONST marker was
            consumed here or by a dependent element type
        """
        is_const = self._match(TypeCode.CONST)
        b = self.stream.read_byte()

        if b in PRIMITIVE_NAMES:
            return PRIMITIVE_NAMES[b], is_const

        if b == TypeCode.FIXEDARRAY:
            size = self.stream.read_uleb128()
            inner, inner_const = self.decode()
            return f"{inner}[{size}]", is_const or inner_const

        if b == TypeCode.ARRAY:
            inner, inner_const = self.decode()
            return f"{inner}[]", is_const or inner_const

        if b == TypeCode.ENUM:
            return self.refs.enum_name(self.stream.read_uleb128()), is_const
        if b == TypeCode.TYPEDEF:
            return self.refs.typedef_name(self.stream.read_uleb128()), is_const
        if b == TypeCode.TYPESET:
            return self.refs.typeset_name(self.stream.read_uleb128()), is_const
        if b == TypeCode.STRUCT:
            return self.refs.classdef_name(self.stream.read_uleb128()), is_const
        if b == TypeCode.ENUMSTRUCT:
            return self.refs.enum_struct_name(self.stream.read_uleb128()), is_const

        if b == TypeCode.FUNCTION:
            return self.decode_function(), is_const

        return f"unknown type code: {b}", is_const

    def decode_function(self) -> str:
        """Decode argc, optional variadic marker, return type and arguments."""
        argc = self.stream.read_byte()
        variadic = self._match(TypeCode.VARIADIC)

        if self._match(TypeCode.VOID):
            return_type = "void"
        else:
            return_type = self.decode_new()

        argv = []
        for _ in range(argc):
            is_byref = self._match(TypeCode.BYREF)
            text = self.decode_new()
            if is_byref:
                text += "&"
            argv.append(text)

        signature = f"function {return_type} ({', '.join(argv)}"
        if variadic:
            signature += "..."
        return signature + ")"

    def _match(self, code: int) -> bool:
        if self.stream.peek_byte() != code:
            return False
        self.stream.position += 1
        return True


class RttiData:
    """The rtti.data blob plus the entry points that decode it."""

    def __init__(self, header: 'SmxHeader', section: SectionEntry, refs: TypeReferences):
        self.refs = refs
        self.bytes = BaseSection(header, section).get_data()

    @classmethod
    def from_bytes(cls, data: bytes, refs: TypeReferences) -> 'RttiData':
        instance = cls.__new__(cls)
        instance.refs = refs
        instance.bytes = bytes(data)
        return instance

    def type_from_id(self, type_id: int) -> str:
        """
        Render a 32-bit type id.

        Inline ids carry up to four type bytes in their payload; complex ids
        carry an offset into this blob.
        """
        kind = type_id & 0xF
        payload = (type_id >> 4) & 0xFFFFFFF

        if kind == TypeIdKind.INLINE:
            inline = payload.to_bytes(4, 'little')
            return TypeBuilder(self.refs, inline).decode_new()

        if kind != TypeIdKind.COMPLEX:
            return f"unknown type_id kind: {kind}"

        return self.build_type_name(payload)[0]

    def build_type_name(self, offset: int) -> Tuple[str, int]:
        """Decode one type at `offset`; returns (text, offset after it)."""
        builder = TypeBuilder(self.refs, self.bytes, offset)
        text = builder.decode_new()
        return text, builder.offset

    def function_type_from_offset(self, offset: int) -> str:
        return TypeBuilder(self.refs, self.bytes, offset).decode_function()

    def typeset_types_from_offset(self, offset: int) -> List[str]:
        builder = TypeBuilder(self.refs, self.bytes, offset)
        count = builder.stream.read_uleb128()
        return [builder.decode_new() for _ in range(count)]
