import struct
from types import SimpleNamespace

import pytest

from smx_dumper_py.errors import InvalidIndexError, InvalidOffsetError, InvalidSizeError, SizeOverflowError
from smx_dumper_py.smx.enums import TypeCode as TC
from smx_dumper_py.smx.rtti import (
    RowTableHeader,
    RttiData,
    TypeBuilder,
    TypeReferences,
    read_row_table,
)
from smx_dumper_py.smx.structures import RttiTypeset, SectionEntry

from conftest import row_table, type_id_complex, type_id_inline


def refs_with(**names):
    """TypeReferences backed by plain lists of names."""
    refs = TypeReferences()
    for attr, values in names.items():
        def lookup(index, values=values, attr=attr):
            if index >= len(values):
                raise InvalidIndexError(f"{attr} #{index}")
            return values[index]
        setattr(refs, attr, lookup)
    return refs


def decode(*codes, refs=None):
    return TypeBuilder(refs or TypeReferences(), bytes(codes)).decode_new()


# ========== Row table header ==========

def test_row_table_header_fields():
    data = row_table(8, [b'\x01' * 8, b'\x02' * 8])
    table = RowTableHeader().init(data)
    assert (table.header_size, table.row_size, table.row_count) == (12, 8, 2)
    assert list(table.row_offsets()) == [12, 20]


def test_row_reads_consume_whole_table():
    data = row_table(8, [struct.pack('<ii', 1, 2), struct.pack('<ii', 3, 4)], header_size=16) + b'junk'
    table = RowTableHeader().init(data)
    offsets = list(table.row_offsets())
    assert offsets[-1] + table.row_size == table.table_size == 16 + 2 * 8


def test_row_table_skips_padding_and_header_extension():
    data = row_table(12, [struct.pack('<ii', 5, 6), struct.pack('<ii', 7, 8)], header_size=20)
    header = SimpleNamespace(data=data)
    section = SectionEntry(name_offset=0, data_offset=0, size=len(data), name='rtti.typesets')
    rows = read_row_table(header, section, RttiTypeset)
    assert [(r.name_offset, r.signature) for r in rows] == [(5, 6), (7, 8)]


def test_row_table_header_truncated():
    with pytest.raises(InvalidSizeError):
        RowTableHeader().init(b'\x0c\x00\x00\x00')


def test_row_table_header_too_small():
    with pytest.raises(InvalidSizeError):
        RowTableHeader().init(struct.pack('<III', 8, 4, 0))


def test_row_table_rows_overflow():
    with pytest.raises(SizeOverflowError):
        RowTableHeader().init(struct.pack('<III', 12, 8, 3) + b'\x00' * 16)


def test_row_size_smaller_than_record():
    data = row_table(4, [b'\x00' * 4])
    header = SimpleNamespace(data=data)
    section = SectionEntry(name_offset=0, data_offset=0, size=len(data), name='rtti.typesets')
    with pytest.raises(InvalidSizeError):
        read_row_table(header, section, RttiTypeset)


# ========== Type decoder ==========

@pytest.mark.parametrize("codes, expected", [
    ((TC.INT32,), "int"),
    ((TC.BOOL,), "bool"),
    ((TC.ANY,), "any"),
    ((TC.TOPFUNCTION,), "Function"),
    ((TC.ARRAY, TC.INT32), "int[]"),
    ((TC.CONST, TC.INT32), "const int"),
    ((TC.FIXEDARRAY, 4, TC.INT32), "int[4]"),
    ((TC.FIXEDARRAY, 0x81, 0x01, TC.CHAR8), "char[129]"),
    ((TC.ARRAY, TC.ARRAY, TC.FLOAT32), "float[][]"),
    ((TC.CONST, TC.ARRAY, TC.CHAR8), "const char[]"),
    ((TC.ARRAY, TC.CONST, TC.CHAR8), "const char[]"),
])
def test_decode_simple_types(codes, expected):
    assert decode(*codes) == expected


def test_decode_unknown_code():
    assert decode(0x7f) == "unknown type code: 127"


def test_decode_named_references():
    refs = refs_with(
        enum_name=['Action', 'Color'],
        typedef_name=['Callback'],
        typeset_name=['SortFunc'],
        classdef_name=['Vec'],
        enum_struct_name=['Point'],
    )
    assert decode(TC.ENUM, 1, refs=refs) == "Color"
    assert decode(TC.TYPEDEF, 0, refs=refs) == "Callback"
    assert decode(TC.TYPESET, 0, refs=refs) == "SortFunc"
    assert decode(TC.STRUCT, 0, refs=refs) == "Vec"
    assert decode(TC.ARRAY, TC.ENUMSTRUCT, 0, refs=refs) == "Point[]"


def test_decode_missing_reference():
    refs = refs_with(enum_name=['Action'])
    with pytest.raises(InvalidIndexError):
        decode(TC.ENUM, 3, refs=refs)


def test_decode_without_reference_table():
    with pytest.raises(InvalidIndexError):
        decode(TC.TYPEDEF, 0)


def test_decode_truncated_stream():
    with pytest.raises(InvalidOffsetError):
        decode(TC.ARRAY)


def test_decode_function_with_byref():
    codes = (TC.FUNCTION, 0x02, TC.VOID, TC.INT32, TC.BYREF, TC.FLOAT32)
    assert decode(*codes) == "function void (int, float&)"


def test_decode_variadic_function():
    codes = (TC.FUNCTION, 0x01, TC.VARIADIC, TC.CHAR8, TC.ANY)
    assert decode(*codes) == "function char (any...)"


def test_function_arguments_have_own_const_frame():
    # const applies to the first argument only
    codes = (TC.FUNCTION, 0x02, TC.VOID, TC.CONST, TC.ARRAY, TC.CHAR8, TC.INT32)
    assert decode(*codes) == "function void (const char[], int)"


def test_const_return_type():
    codes = (TC.FUNCTION, 0x00, TC.CONST, TC.ARRAY, TC.CHAR8)
    assert decode(*codes) == "function const char[] ()"


def test_decoder_offset_after_type():
    builder = TypeBuilder(TypeReferences(), bytes([TC.FIXEDARRAY, 4, TC.INT32, TC.BOOL]))
    builder.decode_new()
    assert builder.offset == 3


# ========== Type ids and rtti.data entry points ==========

def test_inline_type_ids():
    data = RttiData.from_bytes(b'', TypeReferences())
    assert data.type_from_id(type_id_inline(TC.INT32)) == "int"
    assert data.type_from_id(type_id_inline(TC.ARRAY, TC.CHAR8)) == "char[]"
    assert data.type_from_id(type_id_inline(TC.FIXEDARRAY, 8, TC.FLOAT32)) == "float[8]"


def test_complex_type_id():
    blob = bytes([TC.BOOL, TC.FIXEDARRAY, 0x20, TC.CHAR8])
    data = RttiData.from_bytes(blob, TypeReferences())
    assert data.type_from_id(type_id_complex(1)) == "char[32]"
    assert data.type_from_id(type_id_complex(0)) == "bool"


def test_unknown_type_id_kind():
    data = RttiData.from_bytes(b'', TypeReferences())
    assert data.type_from_id(0x12) == "unknown type_id kind: 2"


def test_build_type_name_reports_end():
    blob = bytes([TC.ARRAY, TC.INT32, TC.FLOAT32])
    data = RttiData.from_bytes(blob, TypeReferences())
    assert data.build_type_name(0) == ("int[]", 2)
    assert data.build_type_name(2) == ("float", 3)


def test_function_type_from_offset():
    blob = bytes([TC.BOOL, 0x01, TC.INT32, TC.BOOL])
    data = RttiData.from_bytes(blob, TypeReferences())
    assert data.function_type_from_offset(1) == "function int (bool)"


def test_typeset_types_from_offset():
    blob = bytes([
        0x02,
        TC.FUNCTION, 0x00, TC.VOID,
        TC.FUNCTION, 0x01, TC.INT32, TC.BOOL,
    ])
    data = RttiData.from_bytes(blob, TypeReferences())
    assert data.typeset_types_from_offset(0) == ["function void ()", "function int (bool)"]


# ========== Decoded sample tables ==========

def test_sample_signatures(sample_smx):
    assert sample_smx.method_signature(0) == "function void ()"
    assert sample_smx.method_signature(1) == "function Action (int, Point&)"
    assert sample_smx.native_signature(0) == "function void (const char[]...)"


def test_sample_typesets_and_typedefs(sample_smx):
    typeset = sample_smx.rtti_typesets[0]
    assert typeset.name == 'Callback'
    assert sample_smx.rtti_data.typeset_types_from_offset(typeset.signature) == [
        "function void ()", "function int (bool)",
    ]

    typedef = sample_smx.rtti_typedefs[0]
    assert typedef.name == 'IntFunc'
    assert sample_smx.rtti_data.type_from_id(typedef.type_id) == "function int ()"


def test_sample_enum_struct_fields(sample_smx):
    fields = sample_smx.rtti_enum_structs.fields_of(0, sample_smx.rtti_enum_struct_fields)
    types = [sample_smx.rtti_data.type_from_id(f.type_id) for f in fields]
    assert [f.name for f in fields] == ['x', 'y']
    assert types == ['int', 'float']


def test_sample_classdef_fields(sample_smx):
    assert sample_smx.rtti_classdefs.name_at(0) == 'Vec'
    fields = sample_smx.rtti_classdefs.fields_of(0, sample_smx.rtti_fields)
    assert [f.name for f in fields] == ['len']


def test_sample_method_lookup(sample_smx):
    index, method = sample_smx.rtti_methods.find_method(0x50)
    assert (index, method.name) == (1, 'OnClientConnect')
    assert sample_smx.rtti_methods.find_method(0x90) is None
    assert sample_smx.rtti_enums.enums() == ['Action']


def test_name_at_out_of_range(sample_smx):
    with pytest.raises(InvalidIndexError):
        sample_smx.rtti_enums.name_at(1)
