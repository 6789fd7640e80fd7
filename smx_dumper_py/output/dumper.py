"""
SMX Dumper - generates dump.sp output.

This module writes a SourcePawn-like listing of everything the image
declares: natives, publics, public variables, tags, RTTI types, methods with
their signatures and source positions, and global variables.
"""

from typing import Callable, TextIO, TypeVar, TYPE_CHECKING
from pathlib import Path
from io import StringIO

if TYPE_CHECKING:
    from ..smx.file import SmxFile
    from ..config import Config

from ..errors import SmxError
from ..smx.enums import ClassDefFlags

T = TypeVar('T')

UNDECODABLE_SIGNATURE = "/* undecodable signature */"
UNDECODABLE_TYPE = "/* undecodable type */"


def _hex(value: int) -> str:
    """Hex address; signed cells are shown as their 32-bit pattern."""
    return f"0x{value & 0xFFFFFFFF:x}"


class SmxDumper:
    """
    Generates a pseudo-source dump from a decoded SMX image.
    """

    def __init__(self, smx: 'SmxFile'):
        self.smx = smx
        self.resolver = smx.resolver

    def dump(self, config: 'Config', output_dir: str) -> Path:
        """
        Generate the dump.sp file.

        Args:
            config: Configuration options
            output_dir: Output directory path

        Returns:
            Path of the written file
        """
        output_path = Path(output_dir) / "dump.sp"

        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(self.render(config))

        return output_path

    def render(self, config: 'Config') -> str:
        """Render the whole dump to a string."""
        buffer = StringIO()

        self._write_header(buffer)

        if config.dump_natives:
            self._write_natives(buffer, config)
        if config.dump_publics:
            self._write_publics(buffer, config)
        if config.dump_pubvars:
            self._write_pubvars(buffer, config)
        if config.dump_tags:
            self._write_tags(buffer)
        if config.dump_rtti:
            self._write_types(buffer)
            self._write_methods(buffer, config)
        if config.dump_debug:
            self._write_globals(buffer, config)

        return buffer.getvalue()

    def _write_header(self, writer: TextIO) -> None:
        h = self.smx.header.file_header
        writer.write(f"// SMX version 0x{h.version:04x}, compression {h.compression}, "
                     f"disk size {h.disksize}, image size {h.imagesize}\n")
        for section in self.smx.header.sections:
            writer.write(f"// Section {section.name}: offset 0x{section.data_offset:x}, size {section.size}\n")

        code = self.smx.code_section
        if code is not None:
            c = code.code_header
            writer.write(f"// Code version {c.codeversion}, cell size {c.cellsize}, "
                         f"flags 0x{c.flags:x}, features 0x{c.features:x}\n")
        data = self.smx.data_section
        if data is not None:
            d = data.data_header
            writer.write(f"// Data size {d.datasize}, memory size {d.memsize}\n")
        writer.write("\n")

    def _decode(self, what: str, decode: Callable[[], T], fallback: T) -> T:
        """Run one type decode; a failure is reported and the dump goes on."""
        try:
            return decode()
        except SmxError as e:
            print(f"ERROR: Error decoding {what}: {e}")
            return fallback

    def _write_natives(self, writer: TextIO, config: 'Config') -> None:
        if self.smx.natives is None:
            return
        writer.write("// Natives\n")
        for index, native in enumerate(self.smx.natives):
            signature = self._decode(
                f"signature of {native.name}",
                lambda: self.smx.native_signature(index),
                UNDECODABLE_SIGNATURE,
            )
            prefix = f"/* {index} */ " if config.dump_addresses else ""
            if signature:
                writer.write(f"{prefix}native {native.name}; // {signature}\n")
            else:
                writer.write(f"{prefix}native {native.name};\n")
        writer.write("\n")

    def _write_publics(self, writer: TextIO, config: 'Config') -> None:
        if self.smx.publics is None:
            return
        writer.write("// Publics\n")
        for public in self.smx.publics:
            prefix = f"/* {_hex(public.address)} */ " if config.dump_addresses else ""
            writer.write(f"{prefix}public {public.name};{self._source_comment(public.address)}\n")
        writer.write("\n")

    def _write_pubvars(self, writer: TextIO, config: 'Config') -> None:
        if self.smx.pubvars is None:
            return
        writer.write("// Public variables\n")
        for pubvar in self.smx.pubvars:
            prefix = f"/* {_hex(pubvar.address)} */ " if config.dump_addresses else ""
            writer.write(f"{prefix}public {pubvar.name};\n")
        writer.write("\n")

    def _write_tags(self, writer: TextIO) -> None:
        if self.smx.tags is None:
            return
        writer.write("// Tags\n")
        for tag in self.smx.tags:
            flags = " | ".join(tag.flag_names()) or "none"
            writer.write(f"// tag {tag.id}: {tag.name} ({flags})\n")
        writer.write("\n")

    def _write_types(self, writer: TextIO) -> None:
        smx = self.smx
        rtti = smx.rtti_data

        if smx.rtti_enums is not None:
            for name in smx.rtti_enums.enums():
                writer.write(f"enum {name} {{}}\n")
            writer.write("\n")

        if rtti is None:
            return

        def type_name(what: str, type_id: int) -> str:
            return self._decode(what, lambda: rtti.type_from_id(type_id), UNDECODABLE_TYPE)

        if smx.rtti_typedefs is not None:
            for typedef in smx.rtti_typedefs:
                writer.write(f"typedef {typedef.name} = {type_name(typedef.name, typedef.type_id)};\n")
            writer.write("\n")

        if smx.rtti_typesets is not None:
            for typeset in smx.rtti_typesets:
                writer.write(f"typeset {typeset.name}\n{{\n")
                types = self._decode(
                    typeset.name,
                    lambda: rtti.typeset_types_from_offset(typeset.signature),
                    [UNDECODABLE_SIGNATURE],
                )
                for name in types:
                    writer.write(f"    {name};\n")
                writer.write("};\n\n")

        if smx.rtti_classdefs is not None and smx.rtti_fields is not None:
            for index, classdef in enumerate(smx.rtti_classdefs):
                keyword = "struct" if classdef.flags & 0xF == ClassDefFlags.STRUCT else "class"
                writer.write(f"{keyword} {classdef.name}\n{{\n")
                for rtti_field in smx.rtti_classdefs.fields_of(index, smx.rtti_fields):
                    field_type = type_name(f"{classdef.name}.{rtti_field.name}", rtti_field.type_id)
                    writer.write(f"    {field_type} {rtti_field.name};\n")
                writer.write("};\n\n")

        if smx.rtti_enum_structs is not None and smx.rtti_enum_struct_fields is not None:
            for index, enum_struct in enumerate(smx.rtti_enum_structs):
                writer.write(f"enum struct {enum_struct.name} // size {enum_struct.size}\n{{\n")
                for es_field in smx.rtti_enum_structs.fields_of(index, smx.rtti_enum_struct_fields):
                    field_type = type_name(f"{enum_struct.name}.{es_field.name}", es_field.type_id)
                    writer.write(f"    {field_type} {es_field.name}; // offset {es_field.offset}\n")
                writer.write("}\n\n")

    def _write_methods(self, writer: TextIO, config: 'Config') -> None:
        if self.smx.rtti_methods is None:
            return
        writer.write("// Methods\n")
        for index, method in enumerate(self.smx.rtti_methods):
            signature = self._decode(
                f"signature of {method.name}",
                lambda: self.smx.method_signature(index) or "function ?",
                UNDECODABLE_SIGNATURE,
            )
            prefix = f"/* {_hex(method.pcode_start)}-{_hex(method.pcode_end)} */ " if config.dump_addresses else ""
            writer.write(f"{prefix}{method.name}: {signature}{self._source_comment(method.pcode_start)}\n")
        writer.write("\n")

    def _write_globals(self, writer: TextIO, config: 'Config') -> None:
        if self.smx.debug_globals is None:
            return
        writer.write("// Globals\n")
        for _, var in self.smx.debug_globals.sort_by_address():
            type_name = self._decode(var.name, lambda: self.resolver.variable_type(var), None) or "any"
            prefix = f"/* {_hex(var.address)} */ " if config.dump_addresses else ""
            writer.write(f"{prefix}{type_name} {var.name};\n")
        writer.write("\n")

    def _source_comment(self, code_addr: int) -> str:
        file_name = self.resolver.find_file(code_addr)
        if file_name is None:
            return ""
        line = self.resolver.find_line(code_addr)
        if line is None:
            return f" // {file_name}"
        return f" // {file_name}:{line}"
