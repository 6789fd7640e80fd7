"""
Script JSON output structures.

These structures define the JSON symbol export consumed by disassembler
annotation scripts and returned by the HTTP API.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any, TYPE_CHECKING
import json

if TYPE_CHECKING:
    from ..smx.file import SmxFile


@dataclass
class ScriptMethod:
    """Method information for script.json."""
    Address: int = 0
    EndAddress: int = 0
    Name: str = ""
    Signature: str = ""
    File: Optional[str] = None
    Line: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "Address": self.Address,
            "EndAddress": self.EndAddress,
            "Name": self.Name,
            "Signature": self.Signature,
            "File": self.File,
            "Line": self.Line
        }


@dataclass
class ScriptNative:
    """Native information for script.json."""
    Index: int = 0
    Name: str = ""
    Signature: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "Index": self.Index,
            "Name": self.Name,
            "Signature": self.Signature
        }


@dataclass
class ScriptGlobal:
    """Global variable information for script.json."""
    Address: int = 0
    Name: str = ""
    Type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "Address": self.Address,
            "Name": self.Name,
            "Type": self.Type
        }


@dataclass
class ScriptFile:
    """Source file start address."""
    Address: int = 0
    Name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "Address": self.Address,
            "Name": self.Name
        }


@dataclass
class ScriptJson:
    """
    Complete script.json structure.

    Methods come from rtti.methods when present and fall back to .publics.
    """
    ScriptMethod: List[ScriptMethod] = field(default_factory=list)
    ScriptNative: List[ScriptNative] = field(default_factory=list)
    ScriptGlobal: List[ScriptGlobal] = field(default_factory=list)
    ScriptFile: List[ScriptFile] = field(default_factory=list)

    @classmethod
    def from_file(cls, smx: 'SmxFile') -> 'ScriptJson':
        """Collect every exported symbol of a decoded image."""
        script = cls()
        resolver = smx.resolver

        if smx.rtti_methods is not None:
            for index, method in enumerate(smx.rtti_methods):
                script.ScriptMethod.append(ScriptMethod(
                    Address=method.pcode_start,
                    EndAddress=method.pcode_end,
                    Name=method.name,
                    Signature=smx.method_signature(index) or "",
                    File=resolver.find_file(method.pcode_start),
                    Line=resolver.find_line(method.pcode_start),
                ))
        elif smx.publics is not None:
            for public in smx.publics:
                script.ScriptMethod.append(ScriptMethod(
                    Address=public.address,
                    Name=public.name,
                    File=resolver.find_file(public.address),
                    Line=resolver.find_line(public.address),
                ))

        if smx.natives is not None:
            for index, native in enumerate(smx.natives):
                script.ScriptNative.append(ScriptNative(
                    Index=index,
                    Name=native.name,
                    Signature=smx.native_signature(index),
                ))

        if smx.debug_globals is not None:
            for _, var in smx.debug_globals.sort_by_address():
                script.ScriptGlobal.append(ScriptGlobal(
                    Address=var.address,
                    Name=var.name,
                    Type=resolver.variable_type(var),
                ))

        if smx.debug_files is not None:
            for entry in smx.debug_files:
                script.ScriptFile.append(ScriptFile(Address=entry.address, Name=entry.name))

        return script

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ScriptMethod": [m.to_dict() for m in self.ScriptMethod],
            "ScriptNative": [n.to_dict() for n in self.ScriptNative],
            "ScriptGlobal": [g.to_dict() for g in self.ScriptGlobal],
            "ScriptFile": [f.to_dict() for f in self.ScriptFile]
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def save(self, path: str) -> None:
        """Save to file."""
        with open(path, 'w', encoding='utf-8') as f:
            f.write(self.to_json())
