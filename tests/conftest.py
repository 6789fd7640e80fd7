"""
Shared fixtures: an in-memory SMX image builder and a sample plugin.
"""

import struct
import zlib
from typing import Dict, List, Tuple

import pytest

from smx_dumper_py.smx.enums import SMX_MAGIC, CompressionType, TypeCode as TC


class NamePool:
    """Builds a NUL-separated string table and remembers offsets."""

    def __init__(self):
        self.data = bytearray()
        self.offsets: Dict[str, int] = {}

    def add(self, name: str) -> int:
        if name not in self.offsets:
            self.offsets[name] = len(self.data)
            self.data += name.encode('utf-8') + b'\x00'
        return self.offsets[name]

    def __bytes__(self) -> bytes:
        return bytes(self.data)


def row_table(row_size: int, rows: List[bytes], header_size: int = 12) -> bytes:
    """RTTI-style table: (header_size, row_size, row_count) then padded rows."""
    out = struct.pack('<III', header_size, row_size, len(rows))
    out += b'\x00' * (header_size - 12)
    for row in rows:
        assert len(row) <= row_size
        out += row + b'\x00' * (row_size - len(row))
    return out


def type_id_inline(*codes: int) -> int:
    payload = int.from_bytes(bytes(codes).ljust(4, b'\x00'), 'little')
    return (payload << 4) & 0xFFFFFFFF


def type_id_complex(offset: int) -> int:
    return (offset << 4) | 1


class SmxBuilder:
    """Assembles sections into a valid .smx file."""

    def __init__(self, version: int = 0x0102):
        self.version = version
        self.sections: List[Tuple[str, bytes]] = []

    def add(self, name: str, data: bytes) -> 'SmxBuilder':
        self.sections.append((name, bytes(data)))
        return self

    def build(self, compress: bool = False) -> bytes:
        header_size = 24
        stringtab = header_size + 12 * len(self.sections)

        section_names = NamePool()
        for name, _ in self.sections:
            section_names.add(name)
        dataoffs = stringtab + len(section_names.data)

        directory = b''
        body = b''
        for name, data in self.sections:
            directory += struct.pack('<III', section_names.offsets[name], dataoffs + len(body), len(data))
            body += data

        prefix_len = dataoffs
        imagesize = prefix_len + len(body)
        payload = zlib.compress(body) if compress else body
        disksize = prefix_len + len(payload)
        compression = CompressionType.GZ if compress else CompressionType.NONE

        header = struct.pack(
            '<IHBIIBII', SMX_MAGIC, self.version, compression,
            disksize, imagesize, len(self.sections), stringtab, dataoffs
        )
        return header + directory + bytes(section_names) + payload


# ============================================================
# Sample plugin
# ============================================================

# rtti.data layout used by the sample plugin
SIG_VOID = 0        # function void ()
SIG_PRINT = 2       # function void (const char[]...)
SIG_CONNECT = 8     # function Action (int, Point&)
SIG_TYPESET = 15    # 2 x function
TYPE_CHAR64 = 23    # char[64]
TYPE_INTFUNC = 26   # function int ()

RTTI_DATA = bytes([
    0x00, TC.VOID,
    0x01, TC.VARIADIC, TC.VOID, TC.CONST, TC.ARRAY, TC.CHAR8,
    0x02, TC.ENUM, 0x00, TC.INT32, TC.BYREF, TC.ENUMSTRUCT, 0x00,
    0x02, TC.FUNCTION, 0x00, TC.VOID, TC.FUNCTION, 0x01, TC.INT32, TC.BOOL,
    TC.FIXEDARRAY, 0x40, TC.CHAR8,
    TC.FUNCTION, 0x00, TC.INT32,
])

TYPE_INT = type_id_inline(TC.INT32)
TYPE_FLOAT = type_id_inline(TC.FLOAT32)


def debug_var(address, vclass, name, code_start, code_end, type_id) -> bytes:
    return struct.pack('<iBIIII', address, vclass, name, code_start, code_end, type_id)


def build_sample(compress: bool = False) -> bytes:
    names = NamePool()
    n = names.add

    dbg = NamePool()

    builder = SmxBuilder()

    builder.add('.natives', struct.pack('<I', n('PrintToServer')))
    builder.add('.publics', struct.pack('<II', 0x10, n('OnPluginStart')) +
                struct.pack('<II', 0x40, n('OnClientConnect')))
    builder.add('.pubvars', struct.pack('<II', 0x0, n('g_Count')))
    builder.add('.tags', struct.pack('<II', 0x40000001, n('Float')) +
                struct.pack('<II', 0x08000002, n('Action')))

    builder.add('.data', struct.pack('<III', 8, 16, 12) + b'ABCDEFGH')
    builder.add('.code', struct.pack('<iBBHiii', 4, 4, 13, 0, 0, 20, 3) + b'\x01\x02\x03\x04')

    builder.add('rtti.data', RTTI_DATA)
    builder.add('rtti.enums', row_table(16, [struct.pack('<iiii', n('Action'), 0, 0, 0)]))
    builder.add('rtti.typedefs', row_table(8, [struct.pack('<iI', n('IntFunc'), type_id_complex(TYPE_INTFUNC))]))
    builder.add('rtti.typesets', row_table(8, [struct.pack('<ii', n('Callback'), SIG_TYPESET)]))
    builder.add('rtti.classdefs', row_table(28, [struct.pack('<iiiiiii', 0, n('Vec'), 0, 0, 0, 0, 0)]))
    builder.add('rtti.fields', row_table(10, [struct.pack('<HiI', 0, n('len'), TYPE_INT)]))
    builder.add('rtti.enumstructs', row_table(12, [struct.pack('<iii', n('Point'), 0, 2)]))
    builder.add('rtti.enumstruct_fields', row_table(12, [
        struct.pack('<iIi', n('x'), TYPE_INT, 0),
        struct.pack('<iIi', n('y'), TYPE_FLOAT, 1),
    ]))
    builder.add('rtti.methods', row_table(16, [
        struct.pack('<iiii', n('OnPluginStart'), 0x10, 0x40, SIG_VOID),
        struct.pack('<iiii', n('OnClientConnect'), 0x40, 0x90, SIG_CONNECT),
    ]))
    builder.add('rtti.natives', row_table(8, [struct.pack('<ii', n('PrintToServer'), SIG_PRINT)]))

    builder.add('.dbg.info', struct.pack('<IIII', 2, 4, 6, 0))
    builder.add('.dbg.files', struct.pack('<II', 0x10, dbg.add('plugin.sp')) +
                struct.pack('<II', 0x80, dbg.add('helper.inc')))
    builder.add('.dbg.lines', b''.join(struct.pack('<II', addr, line) for addr, line in [
        (0x10, 9), (0x20, 10), (0x40, 14), (0x50, 15),
    ]))
    builder.add('.dbg.globals', row_table(21, [
        debug_var(4, 0, n('g_Name'), 0, 0, type_id_complex(TYPE_CHAR64)),
        debug_var(0, 0, n('g_Count'), 0, 0, TYPE_INT),
    ]))
    builder.add('.dbg.locals', row_table(21, [
        debug_var(-4, 1, n('i'), 0x10, 0x40, TYPE_INT),
        debug_var(12, 3, n('client'), 0x40, 0x90, TYPE_INT),
        debug_var(-8, 1, n('pt'), 0x48, 0x90, TYPE_INT),
        debug_var(-4, 1, n('tmp'), 0x60, 0x70, TYPE_FLOAT),
    ]))
    builder.add('.dbg.methods', row_table(8, [
        struct.pack('<II', 0, 0),
        struct.pack('<II', 1, 1),
    ]))

    builder.add('.names', bytes(names))
    builder.add('.dbg.strings', bytes(dbg))

    return builder.build(compress=compress)


def build_broken_types() -> bytes:
    """Signatures that reference a missing enum table, plus a negative global."""
    names = NamePool()
    n = names.add

    return (
        SmxBuilder()
        .add('.natives', struct.pack('<I', n('PrintToServer')))
        # offset 0: function with an enum return type; offset 1: the enum alone
        .add('rtti.data', bytes([0x00, TC.ENUM, 0x05]))
        .add('rtti.methods', row_table(16, [struct.pack('<iiii', n('Broken'), 0x10, 0x20, 0)]))
        .add('rtti.natives', row_table(8, [struct.pack('<ii', n('PrintToServer'), 0)]))
        .add('rtti.typedefs', row_table(8, [
            struct.pack('<iI', n('BadDef'), type_id_complex(1)),
            struct.pack('<iI', n('Ok'), TYPE_INT),
        ]))
        .add('.dbg.globals', row_table(21, [debug_var(-4, 0, n('g_Neg'), 0, 0, TYPE_INT)]))
        .add('.names', bytes(names))
        .build()
    )


@pytest.fixture
def broken_types_bytes() -> bytes:
    return build_broken_types()


@pytest.fixture
def sample_bytes() -> bytes:
    return build_sample()


@pytest.fixture
def sample_smx(sample_bytes):
    from smx_dumper_py.smx.file import SmxFile
    return SmxFile(sample_bytes)


@pytest.fixture
def sample_path(tmp_path, sample_bytes):
    path = tmp_path / "sample.smx"
    path.write_bytes(sample_bytes)
    return path
