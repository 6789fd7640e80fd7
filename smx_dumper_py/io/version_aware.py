"""
Version-aware field decorators and utilities.

Some SMX records grew fields over time: the `.code` section header only
carries `features` from code version 13 onward. Fields declared with
version_field() are skipped when the stream's version is out of range.
"""

from dataclasses import field
from typing import Any, Optional


class VersionRange:
    """Represents a version range for conditional fields."""

    def __init__(self, min_ver: int = 0, max_ver: int = 0xFFFF):
        self.min = min_ver
        self.max = max_ver

    def contains(self, version: int) -> bool:
        """Check if version is within this range."""
        return self.min <= version <= self.max

    def __repr__(self) -> str:
        return f"VersionRange({self.min}, {self.max})"


def version_field(
    min_ver: int = 0,
    max_ver: int = 0xFFFF,
    default: Any = None,
    binary_size: Optional[int] = None,
    unsigned: bool = True
):
    """
    Create a dataclass field with version metadata.

    Args:
        min_ver: Minimum version (inclusive)
        max_ver: Maximum version (inclusive)
        default: Default value when the field is absent
        binary_size: Explicit size in bytes (1, 2, 4, or 8)
        unsigned: Whether to read as unsigned (default True)

    Example:
        @dataclass
        class CodeHeader:
            codesize: int = u32_field()
            # Only present from code version 13
            features: int = version_field(min_ver=13, binary_size=4)
    """
    metadata = {
        'version': VersionRange(min_ver, max_ver),
        'versioned': True
    }

    if binary_size is not None:
        metadata['binary_size'] = binary_size
        metadata['unsigned'] = unsigned

    return field(default=default if default is not None else 0, metadata=metadata)


def get_version_range(field_info) -> Optional[VersionRange]:
    """Get the version range from a field's metadata."""
    if hasattr(field_info, 'metadata') and field_info.metadata:
        return field_info.metadata.get('version')
    return None


def should_read_field(field_info, version: int) -> bool:
    """
    Determine if a field should be read for the given version.

    Args:
        field_info: The dataclass field info
        version: The record version being parsed

    Returns:
        True if the field should be read, False otherwise
    """
    version_range = get_version_range(field_info)
    if version_range is None:
        return True  # No version constraint, always read
    return version_range.contains(version)
