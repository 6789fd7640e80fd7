"""
SMX constants and enumerations.
"""

from enum import IntEnum, IntFlag


SMX_MAGIC = 0x53504646  # "FFPS"

# Code version that introduced the `features` field in the .code header
CODE_VERSION_FEATURES = 13


class CompressionType(IntEnum):
    """Compression applied to the image after `dataoffs`."""
    NONE = 0
    GZ = 1


class TypeCode(IntEnum):
    """Single-byte tags of the RTTI type-signature encoding."""
    BOOL = 0x01
    INT32 = 0x06
    FLOAT32 = 0x0C
    CHAR8 = 0x0E
    ANY = 0x10
    TOPFUNCTION = 0x11

    FIXEDARRAY = 0x30
    ARRAY = 0x31
    FUNCTION = 0x32

    ENUM = 0x42
    TYPEDEF = 0x43
    TYPESET = 0x44
    STRUCT = 0x45
    ENUMSTRUCT = 0x46

    VOID = 0x70
    VARIADIC = 0x71
    BYREF = 0x72
    CONST = 0x73


class TypeIdKind(IntEnum):
    """Low 4 bits of a type id."""
    INLINE = 0x0
    COMPLEX = 0x1


# Display names of the primitive type codes
PRIMITIVE_NAMES = {
    TypeCode.BOOL: "bool",
    TypeCode.INT32: "int",
    TypeCode.FLOAT32: "float",
    TypeCode.CHAR8: "char",
    TypeCode.ANY: "any",
    TypeCode.TOPFUNCTION: "Function",
}


class TagFlags(IntFlag):
    """High bits of a .tags entry."""
    FIXED = 0x40000000
    FUNCTION = 0x20000000
    OBJECT = 0x10000000
    ENUM = 0x08000000
    METHODMAP = 0x04000000
    STRUCT = 0x02000000


TAG_FLAG_MASK = (
    TagFlags.FIXED | TagFlags.FUNCTION | TagFlags.OBJECT |
    TagFlags.ENUM | TagFlags.METHODMAP | TagFlags.STRUCT
)


class VarClass(IntEnum):
    """Storage class of a debug variable (low 2 bits of vclass)."""
    GLOBAL = 0x0
    LOCAL = 0x1
    STATIC = 0x2
    ARG = 0x3


class ClassDefFlags(IntEnum):
    """Kind of an rtti.classdefs entry."""
    STRUCT = 0x0
