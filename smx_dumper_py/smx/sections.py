"""
Section views and flat record tables.

Every table is built from a (header, section) pair: the header owns the
decompressed image and the section entry locates the table's bytes inside it.
Rows are decoded once at construction; names are resolved against a NameTable
at the same time.
"""

from typing import Dict, Generic, Iterator, List, Optional, Tuple, Type, TypeVar, TYPE_CHECKING

if TYPE_CHECKING:
    from .file import SmxHeader

from ..errors import InvalidIndexError, InvalidSizeError, SizeOverflowError
from ..io.binary_stream import BinaryStream
from .enums import TagFlags
from .structures import (
    SectionEntry,
    NativeEntry,
    PublicEntry,
    PubvarEntry,
    TagEntry,
    CalledFunctionEntry,
    DataHeader,
    CodeHeader,
)

T = TypeVar('T')


class BaseSection:
    """A bounded view of one section's bytes inside the image."""

    def __init__(self, header: 'SmxHeader', section: SectionEntry):
        self.header = header
        self.section = section

    def get_data(self) -> bytes:
        """
        Return exactly `section.size` bytes starting at `section.data_offset`.

        Raises:
            SizeOverflowError: If the section runs past the end of the image
        """
        start = self.section.data_offset
        end = start + self.section.size
        if end > len(self.header.data):
            raise SizeOverflowError(
                f"Section '{self.section.name}' [{start:#x}, {end:#x}) exceeds image size {len(self.header.data):#x}"
            )
        return self.header.data[start:end]


class RecordTable(Generic[T]):
    """Read-only, index-addressable sequence of decoded rows."""

    def __init__(self, rows: List[T]):
        self._rows: Tuple[T, ...] = tuple(rows)

    def entries(self) -> Tuple[T, ...]:
        return self._rows

    def get_entry(self, index: int) -> T:
        return self._rows[index]

    def __getitem__(self, index: int) -> T:
        return self._rows[index]

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[T]:
        return iter(self._rows)


def read_flat_records(base: BaseSection, cls: Type[T]) -> List[T]:
    """
    Read a headerless section as an array of fixed-size records.

    The record count is the section size divided by the record size; a
    trailing partial record is an error.
    """
    stream = BinaryStream(base.get_data())
    record_size = stream.size_of(cls)
    if stream.length % record_size != 0:
        raise InvalidSizeError(
            f"Section '{base.section.name}' size {stream.length} is not a multiple of {record_size}"
        )
    return stream.read_class_array(cls, addr=0, count=stream.length // record_size)


# ============================================================
# Name tables
# ============================================================

class NameTable:
    """
    A pool of NUL-terminated strings (.names, .dbg.strings, .dbg.names).

    Strings are looked up by byte offset and memoized per offset.
    """

    def __init__(self, header: 'SmxHeader', section: SectionEntry):
        self._base = BaseSection(header, section)
        self._stream = BinaryStream(self._base.get_data())
        self._names: Dict[int, str] = {}
        self._extends: Optional[List[int]] = None

    @property
    def size(self) -> int:
        return self._stream.length

    def string_at(self, offset: int) -> str:
        """
        Get the string starting at `offset`.

        Raises:
            InvalidIndexError: If offset is outside the table
        """
        if offset in self._names:
            return self._names[offset]

        if offset < 0 or offset >= self.size:
            raise InvalidIndexError(
                f"Name offset {offset} outside table '{self._base.section.name}' of size {self.size}"
            )

        result = self._scan(offset)
        self._names[offset] = result
        return result

    def _scan(self, offset: int) -> str:
        return self._stream.read_string_to_null(offset)

    def get_extends(self) -> List[int]:
        """
        Return the offsets at which NUL-terminated strings begin.

        Computed once; later calls return the cached list.
        """
        if self._extends is None:
            self._extends = self._compute_extends()
        return list(self._extends)

    def _compute_extends(self) -> List[int]:
        extends = []
        last_index = 0
        for i, b in enumerate(self._stream.get_data()):
            if b == 0:
                extends.append(last_index)
                last_index = i + 1
        return extends


# ============================================================
# Flat tables
# ============================================================

class NativeTable(RecordTable[NativeEntry]):
    """The .natives table."""

    def __init__(self, header: 'SmxHeader', section: SectionEntry, names: NameTable):
        natives = read_flat_records(BaseSection(header, section), NativeEntry)
        for native in natives:
            native.name = names.string_at(native.name_offset)
        super().__init__(natives)


class PublicTable(RecordTable[PublicEntry]):
    """The .publics table."""

    def __init__(self, header: 'SmxHeader', section: SectionEntry, names: NameTable):
        publics = read_flat_records(BaseSection(header, section), PublicEntry)
        for public in publics:
            public.name = names.string_at(public.name_offset)
        super().__init__(publics)

    def find_by_address(self, address: int) -> Optional[PublicEntry]:
        for public in self._rows:
            if public.address == address:
                return public
        return None


class PubvarTable(RecordTable[PubvarEntry]):
    """The .pubvars table."""

    def __init__(self, header: 'SmxHeader', section: SectionEntry, names: NameTable):
        pubvars = read_flat_records(BaseSection(header, section), PubvarEntry)
        for pubvar in pubvars:
            pubvar.name = names.string_at(pubvar.name_offset)
        super().__init__(pubvars)


class Tag:
    """A .tags entry split into id and flag bits."""

    def __init__(self, entry: TagEntry):
        self.entry = entry

    @property
    def id(self) -> int:
        return self.entry.tag & ~TagEntry.FLAGMASK & 0xFFFFFFFF

    @property
    def value(self) -> int:
        return self.entry.tag

    @property
    def flags(self) -> int:
        return self.entry.tag & TagEntry.FLAGMASK

    @property
    def name(self) -> str:
        return self.entry.name

    def flag_names(self) -> List[str]:
        return [flag.name for flag in TagFlags if self.flags & flag]

    def __repr__(self) -> str:
        return f"Tag(id={self.id}, name={self.name!r}, flags={self.flags:#x})"


class TagTable(RecordTable[Tag]):
    """The .tags table, with a memoized lookup by tag id."""

    def __init__(self, header: 'SmxHeader', section: SectionEntry, names: NameTable):
        entries = read_flat_records(BaseSection(header, section), TagEntry)
        for entry in entries:
            entry.name = names.string_at(entry.name_offset)
        super().__init__([Tag(entry) for entry in entries])
        self._cache: Dict[int, Tag] = {}

    def find_tag(self, tag: int) -> Optional[Tag]:
        """Find a tag by its 16-bit id."""
        tag &= 0xFFFF
        if tag in self._cache:
            return self._cache[tag]

        for candidate in self._rows:
            if candidate.id & 0xFFFF == tag:
                self._cache[tag] = candidate
                return candidate

        return None


class CalledFunctionsTable(RecordTable[CalledFunctionEntry]):
    """Call targets recorded while walking .code; append-only."""

    def __init__(self):
        super().__init__([])
        self._addresses: Dict[int, CalledFunctionEntry] = {}

    def add_function(self, addr: int) -> CalledFunctionEntry:
        if addr in self._addresses:
            return self._addresses[addr]
        entry = CalledFunctionEntry(address=addr, name=f"sub_{addr:x}")
        self._addresses[addr] = entry
        self._rows = self._rows + (entry,)
        return entry

    def find(self, addr: int) -> Optional[CalledFunctionEntry]:
        return self._addresses.get(addr)


# ============================================================
# .data / .code
# ============================================================

class DataSection:
    """The .data section: a header followed by initialized data."""

    def __init__(self, header: 'SmxHeader', section: SectionEntry):
        self._base = BaseSection(header, section)
        stream = BinaryStream(self._base.get_data())
        if stream.length < stream.size_of(DataHeader):
            raise InvalidSizeError(f".data section too small ({stream.length} bytes)")
        self.data_header: DataHeader = stream.read_class(DataHeader, 0)
        if self.data_header.data + self.data_header.datasize > section.size:
            raise SizeOverflowError(".data payload exceeds section size")

    def get_data_bytes(self) -> bytes:
        start = self.data_header.data
        return self._base.get_data()[start:start + self.data_header.datasize]


class CodeSection:
    """The .code section: a versioned header followed by bytecode."""

    def __init__(self, header: 'SmxHeader', section: SectionEntry):
        self._base = BaseSection(header, section)
        stream = BinaryStream(self._base.get_data())
        # codeversion sits at byte 5; it selects the header layout
        if stream.length < 6:
            raise InvalidSizeError(f".code section too small ({stream.length} bytes)")
        stream.position = 5
        stream.version = stream.read_byte()
        if stream.length < stream.size_of(CodeHeader):
            raise InvalidSizeError(f".code section too small ({stream.length} bytes)")
        self.code_header: CodeHeader = stream.read_class(CodeHeader, 0)
        if self.code_header.code < 0 or self.code_header.codesize < 0 or \
                self.code_header.code + self.code_header.codesize > section.size:
            raise SizeOverflowError(".code payload exceeds section size")

    def get_code_bytes(self) -> bytes:
        start = self.code_header.code
        return self._base.get_data()[start:start + self.code_header.codesize]
