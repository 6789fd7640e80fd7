"""
Debug tables and address resolution.

.dbg.files and .dbg.lines map code addresses to source positions and are
stored in ascending address order. .dbg.globals and .dbg.locals describe
variables; .dbg.methods tells which slice of .dbg.locals belongs to which
rtti.methods entry.
"""

from bisect import bisect_left, bisect_right
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar, TYPE_CHECKING

if TYPE_CHECKING:
    from .file import SmxHeader
    from .rtti import RttiData, RttiMethodTable

from ..errors import InvalidSizeError
from ..io.binary_stream import BinaryStream
from .rtti import read_row_table
from .sections import BaseSection, NameTable, RecordTable, read_flat_records
from .structures import (
    SectionEntry,
    DebugInfo,
    DebugFileEntry,
    DebugLineEntry,
    DebugMethodEntry,
    DebugVarEntry,
    RttiMethod,
)

T = TypeVar('T')


class _KeyView(Sequence[int]):
    """Read-only view applying `key` on access, for bisecting rows directly."""

    def __init__(self, rows: Sequence[T], key: Callable[[T], int]):
        self._rows = rows
        self._key = key

    def __len__(self) -> int:
        return len(self._rows)

    def __getitem__(self, index):
        return self._key(self._rows[index])


def interval_lookup(
    rows: Sequence[T],
    addr: int,
    key: Optional[Callable[[T], int]] = None
) -> Optional[int]:
    """
    Index of the last row whose key is <= addr.

    Rows must be in ascending key order. Each row covers [key, next key);
    the last row is unbounded above. Without `key` the rows are the keys
    themselves; tables pass their precomputed address lists that way.

    Returns:
        The row index, or None if addr is below the first row
    """
    keys = rows if key is None else _KeyView(rows, key)
    i = bisect_right(keys, addr) - 1
    if i < 0:
        return None
    return i


def read_debug_info(header: 'SmxHeader', section: SectionEntry) -> DebugInfo:
    stream = BinaryStream(BaseSection(header, section).get_data())
    if stream.length < stream.size_of(DebugInfo):
        raise InvalidSizeError(f".dbg.info section too small ({stream.length} bytes)")
    return stream.read_class(DebugInfo, 0)


class DebugFileTable(RecordTable[DebugFileEntry]):
    """.dbg.files: code address -> source file name."""

    def __init__(self, header: 'SmxHeader', section: SectionEntry, names: NameTable):
        files = read_flat_records(BaseSection(header, section), DebugFileEntry)
        for entry in files:
            entry.name = names.string_at(entry.name_offset)
        super().__init__(files)
        self._addresses = [entry.address for entry in files]

    def find_file(self, addr: int) -> Optional[str]:
        i = interval_lookup(self._addresses, addr)
        if i is None:
            return None
        return self._rows[i].name


class DebugLineTable(RecordTable[DebugLineEntry]):
    """.dbg.lines: code address -> zero-based source line."""

    def __init__(self, header: 'SmxHeader', section: SectionEntry):
        lines = read_flat_records(BaseSection(header, section), DebugLineEntry)
        super().__init__(lines)
        self._addresses = [entry.address for entry in lines]

    def find_line(self, addr: int) -> Optional[int]:
        """Return the one-based line for addr, or None."""
        i = interval_lookup(self._addresses, addr)
        if i is None:
            return None
        return self._rows[i].line + 1


class DebugMethodTable(RecordTable[DebugMethodEntry]):
    """.dbg.methods: per method, the index of its first row in .dbg.locals."""

    def __init__(self, header: 'SmxHeader', section: SectionEntry):
        super().__init__(read_row_table(header, section, DebugMethodEntry))

    def locals_window(self, index: int, locals_count: int) -> range:
        start = self._rows[index].first_local
        if index + 1 < len(self._rows):
            end = self._rows[index + 1].first_local
        else:
            end = locals_count
        return range(start, min(end, locals_count))


class DebugVarTable(RecordTable[DebugVarEntry]):
    """
    .dbg.globals or .dbg.locals.

    Rows keep their stored order (.dbg.methods indexes into it); an
    address-ascending ordering is computed on the first query and reused.
    """

    def __init__(self, header: 'SmxHeader', section: SectionEntry, names: NameTable):
        rows = read_row_table(header, section, DebugVarEntry)
        for row in rows:
            row.name = names.string_at(row.name_offset)
        super().__init__(rows)
        self._sorted: Optional[List[Tuple[int, DebugVarEntry]]] = None
        self._sorted_rows: List[DebugVarEntry] = []
        self._sorted_addresses: List[int] = []

    def sort_by_address(self) -> List[Tuple[int, DebugVarEntry]]:
        """(stored index, row) pairs in ascending address order; computed once."""
        if self._sorted is None:
            self._sorted = sorted(enumerate(self._rows), key=lambda pair: pair[1].address)
            self._sorted_rows = [row for _, row in self._sorted]
            self._sorted_addresses = [row.address for row in self._sorted_rows]
        return self._sorted

    def find_global(self, addr: int) -> Optional[DebugVarEntry]:
        self.sort_by_address()
        return _nearest_below(self._sorted_rows, self._sorted_addresses, addr)

    def find_local(
        self,
        code_addr: int,
        addr: int,
        window: Optional[range] = None
    ) -> Optional[DebugVarEntry]:
        """
        Find the local live at code_addr that covers stack address addr.

        Args:
            code_addr: Code address the variable must be live at
            addr: Frame-relative data address
            window: Stored-index range of candidate rows (a method's locals)
        """
        candidates = [
            row for index, row in self.sort_by_address()
            if (window is None or index in window) and row.is_live_at(code_addr)
        ]
        return _nearest_below(candidates, [row.address for row in candidates], addr)


def _nearest_below(
    rows: List[DebugVarEntry],
    addresses: List[int],
    addr: int
) -> Optional[DebugVarEntry]:
    """Exact match (first in sorted order), else the row with the greatest address below addr."""
    i = bisect_left(addresses, addr)
    if i < len(addresses) and addresses[i] == addr:
        return rows[i]
    i = interval_lookup(addresses, addr)
    if i is None:
        return None
    return rows[i]


class DebugResolver:
    """
    Answers which file, line, method or variable is active at an address.

    Any of the tables may be missing; lookups against a missing table
    return None.
    """

    def __init__(
        self,
        files: Optional[DebugFileTable] = None,
        lines: Optional[DebugLineTable] = None,
        globals_: Optional[DebugVarTable] = None,
        locals_: Optional[DebugVarTable] = None,
        methods: Optional[DebugMethodTable] = None,
        rtti_methods: Optional['RttiMethodTable'] = None,
        rtti_data: Optional['RttiData'] = None,
    ):
        self.files = files
        self.lines = lines
        self.globals = globals_
        self.locals = locals_
        self.methods = methods
        self.rtti_methods = rtti_methods
        self.rtti_data = rtti_data

    def find_file(self, code_addr: int) -> Optional[str]:
        if self.files is None:
            return None
        return self.files.find_file(code_addr)

    def find_line(self, code_addr: int) -> Optional[int]:
        if self.lines is None:
            return None
        return self.lines.find_line(code_addr)

    def find_method(self, code_addr: int) -> Optional[RttiMethod]:
        if self.rtti_methods is None:
            return None
        found = self.rtti_methods.find_method(code_addr)
        if found is None:
            return None
        return found[1]

    def find_global(self, addr: int) -> Optional[DebugVarEntry]:
        if self.globals is None:
            return None
        return self.globals.find_global(addr)

    def find_local(self, code_addr: int, addr: int) -> Optional[DebugVarEntry]:
        if self.locals is None:
            return None
        return self.locals.find_local(code_addr, addr, self._locals_window(code_addr))

    def _locals_window(self, code_addr: int) -> Optional[range]:
        """Stored-index range of the enclosing method's locals, if known."""
        if self.methods is None or self.rtti_methods is None:
            return None

        for index, entry in enumerate(self.methods):
            if entry.method_index >= len(self.rtti_methods):
                continue
            if self.rtti_methods[entry.method_index].contains(code_addr):
                return self.methods.locals_window(index, len(self.locals))

        return None

    def variable_type(self, var: DebugVarEntry) -> Optional[str]:
        if self.rtti_data is None:
            return None
        return self.rtti_data.type_from_id(var.type_id)
