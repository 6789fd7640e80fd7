"""
Binary stream reader with version-aware struct parsing.

This module provides a BinaryStream class that reads little-endian SMX
records. Records are dataclasses whose fields carry their on-disk width in
field metadata; fields without a binary width (resolved names, for example)
are skipped by the reader.
"""

import struct
from io import BytesIO
from typing import TypeVar, Type, List, Optional, Dict, Tuple, Union
from dataclasses import fields, is_dataclass

from ..errors import InvalidOffsetError
from .version_aware import should_read_field

T = TypeVar('T')

# Cache for compiled struct reading strategies
# Key: (dataclass_type, version) -> (struct_format, field_names, struct_size)
_STRUCT_CACHE: Dict[Tuple[type, int], Tuple[str, List[str], int]] = {}

_SIZE_FORMATS = {
    (1, True): 'B', (1, False): 'b',
    (2, True): 'H', (2, False): 'h',
    (4, True): 'I', (4, False): 'i',
    (8, True): 'Q', (8, False): 'q',
}


class BinaryStream:
    """
    Little-endian binary reader over an in-memory buffer.

    Attributes:
        version: Record version used to select version_field() members
    """

    def __init__(self, data: Union[bytes, bytearray, memoryview, BytesIO]):
        """
        Initialize a BinaryStream.

        Args:
            data: Either raw bytes or a BytesIO stream
        """
        if isinstance(data, BytesIO):
            self._stream = data
        else:
            self._stream = BytesIO(bytes(data))

        self.version: int = 0

    def _get_struct_format(self, cls: Type[T]) -> Tuple[str, List[str], int]:
        """
        Get or compute the struct format for a dataclass at the current version.

        Returns:
            Tuple of (struct_format, field_names, struct_size)
        """
        cache_key = (cls, self.version)
        if cache_key in _STRUCT_CACHE:
            return _STRUCT_CACHE[cache_key]

        format_parts = ['<']  # Little endian
        field_names = []

        for field_info in fields(cls):
            if not should_read_field(field_info, self.version):
                continue

            binary_size = None
            unsigned = True
            if field_info.metadata:
                binary_size = field_info.metadata.get('binary_size')
                unsigned = field_info.metadata.get('unsigned', True)

            if binary_size is None:
                # Derived fields (resolved names and the like) are not on disk
                continue

            format_parts.append(_SIZE_FORMATS[(binary_size, unsigned)])
            field_names.append(field_info.name)

        format_str = ''.join(format_parts)
        struct_size = struct.calcsize(format_str)

        result = (format_str, field_names, struct_size)
        _STRUCT_CACHE[cache_key] = result
        return result

    def read_class(self, cls: Type[T], addr: Optional[int] = None) -> T:
        """
        Read a dataclass instance from the stream.

        Args:
            cls: The dataclass type to read
            addr: Optional address to seek to before reading

        Returns:
            An instance of the dataclass with on-disk fields populated
        """
        if addr is not None:
            self.position = addr

        if not is_dataclass(cls):
            raise TypeError(f"{cls!r} is not a dataclass")

        format_str, field_names, struct_size = self._get_struct_format(cls)

        instance = cls()
        if struct_size > 0:
            values = struct.unpack(format_str, self.read_bytes(struct_size))
            for name, value in zip(field_names, values):
                setattr(instance, name, value)

        return instance

    def read_class_array(
        self,
        cls: Type[T],
        addr: Optional[int] = None,
        count: Optional[int] = None
    ) -> List[T]:
        """
        Read `count` consecutive dataclass instances.
        """
        if addr is not None:
            self.position = addr

        if count is None or count <= 0:
            return []

        return [self.read_class(cls) for _ in range(count)]

    def size_of(self, cls: Type) -> int:
        """
        Calculate the on-disk size of a dataclass for the current version.
        """
        return self._get_struct_format(cls)[2]

    # ========== Position and Length ==========

    @property
    def position(self) -> int:
        """Get current stream position."""
        return self._stream.tell()

    @position.setter
    def position(self, value: int) -> None:
        """Set stream position."""
        self._stream.seek(value)

    @property
    def length(self) -> int:
        """Get stream length."""
        return len(self._stream.getbuffer())

    # ========== Primitive Readers ==========

    def read_bytes(self, count: int) -> bytes:
        """Read exactly `count` raw bytes."""
        start = self.position
        data = self._stream.read(count)
        if len(data) != count:
            raise InvalidOffsetError(
                f"Read of {count} bytes at offset {start} runs past end of data ({self.length})"
            )
        return data

    def peek_byte(self) -> int:
        """Return the next unsigned byte without consuming it."""
        value = self.read_byte()
        self.position -= 1
        return value

    def read_byte(self) -> int:
        """Read an unsigned byte."""
        return self.read_bytes(1)[0]

    def read_uint16(self) -> int:
        """Read an unsigned 16-bit integer."""
        return struct.unpack('<H', self.read_bytes(2))[0]

    def read_int32(self) -> int:
        """Read a signed 32-bit integer."""
        return struct.unpack('<i', self.read_bytes(4))[0]

    def read_uint32(self) -> int:
        """Read an unsigned 32-bit integer."""
        return struct.unpack('<I', self.read_bytes(4))[0]

    # ========== String Readers ==========

    def read_string_to_null(self, addr: Optional[int] = None) -> str:
        """
        Read a null-terminated UTF-8 string.

        Reading stops at the first NUL or at the end of the data. Invalid
        UTF-8 sequences are replaced.

        Args:
            addr: Optional address to seek to before reading

        Returns:
            The decoded string
        """
        if addr is not None:
            self.position = addr

        # Read in chunks for better performance
        chunks = []
        while True:
            chunk = self._stream.read(256)
            if not chunk:
                break
            null_pos = chunk.find(b'\x00')
            if null_pos != -1:
                chunks.append(chunk[:null_pos])
                # Seek back to position after null
                self._stream.seek(self._stream.tell() - len(chunk) + null_pos + 1)
                break
            chunks.append(chunk)

        return b''.join(chunks).decode('utf-8', errors='replace')

    # ========== Compressed Integer Readers ==========

    def read_uleb128(self) -> int:
        """
        Read an unsigned LEB128 encoded integer.

        Each byte contributes its low 7 bits; bit 7 marks a continuation.
        Values are truncated to 32 bits.
        """
        result = 0
        shift = 0
        while True:
            b = self.read_byte()
            result |= (b & 0x7F) << shift
            if (b & 0x80) == 0:
                break
            shift += 7
        return result & 0xFFFFFFFF

    # ========== Utility Methods ==========

    def get_data(self) -> bytes:
        """Get the underlying data."""
        return self._stream.getvalue()

    def dispose(self) -> None:
        """Close the stream."""
        self._stream.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.dispose()
