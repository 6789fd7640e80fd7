#!/usr/bin/env python3
"""
SMX Dumper

Command-line interface for extracting symbols from compiled SourcePawn plugins.

Usage:
    smx-dumper <plugin.smx> [output-directory]
    smx-dumper <plugin.smx> --lookup CODE_ADDR [--data-addr ADDR]
    smx-dumper -h | --help
    smx-dumper --version

Arguments:
    plugin.smx         Path to the compiled plugin
    output-directory   Output directory for dump files (default: current directory)

Options:
    -h --help          Show this help message
    --version          Show version
"""

import sys
import argparse
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import Config
from .errors import SmxError
from .smx.file import SmxFile
from .output.dumper import SmxDumper
from .output.script_json import ScriptJson


def parse_address(text: str) -> int:
    """Parse a decimal or 0x-prefixed address."""
    try:
        return int(text, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid address: {text!r}")


def init(smx_path: str) -> SmxFile:
    """
    Load and decode an SMX file.

    Args:
        smx_path: Path to the .smx file

    Returns:
        The decoded file
    """
    print("Initializing smx file...")
    smx = SmxFile.from_path(smx_path)
    print(f"SMX Version: 0x{smx.header.version:04x}")
    print(f"Found {len(smx.header.sections)} sections")
    return smx


def dump(smx: SmxFile, output_dir: str, config: Config) -> None:
    """
    Perform the dump operation.

    Args:
        smx: Decoded file
        output_dir: Output directory
        config: Configuration
    """
    print("Dumping...")
    SmxDumper(smx).dump(config, output_dir)
    print("Done!")

    if config.generate_script_json:
        print("Generate script.json...")
        ScriptJson.from_file(smx).save(str(Path(output_dir) / "script.json"))
        print("Done!")


def lookup(smx: SmxFile, code_addr: int, data_addr: Optional[int]) -> List[str]:
    """
    Resolve a code address (and optionally a data address) to source symbols.

    Returns:
        Report lines
    """
    resolver = smx.resolver
    lines = [
        f"file:   {resolver.find_file(code_addr) or '?'}",
        f"line:   {resolver.find_line(code_addr) or '?'}",
    ]

    method = resolver.find_method(code_addr)
    lines.append(f"method: {method.name if method else '?'}")

    if data_addr is not None:
        var = resolver.find_global(data_addr)
        lines.append(f"global: {var.name if var else '?'}")
        var = resolver.find_local(code_addr, data_addr)
        lines.append(f"local:  {var.name if var else '?'}")

    return lines


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="SMX Dumper - Extract symbols and types from SourcePawn plugins",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument('file', help='Compiled plugin (.smx)')
    parser.add_argument('output', nargs='?', default='.', help='Output directory')
    parser.add_argument('--version', action='version', version=f'smx_dumper {__version__}')
    parser.add_argument('--config', type=str, help='Path to config.json')
    parser.add_argument('--lookup', type=parse_address, metavar='CODE_ADDR',
                        help='Resolve a code address instead of dumping')
    parser.add_argument('--data-addr', type=parse_address, metavar='ADDR',
                        help='Data address to resolve to a global/local (with --lookup)')

    args = parser.parse_args(argv)

    # Load config
    config_path = Path(args.config) if args.config else None
    config = Config.load(config_path)

    try:
        smx = init(args.file)

        if args.lookup is not None:
            for line in lookup(smx, args.lookup, args.data_addr):
                print(line)
            return 0

        # Ensure output directory exists
        Path(args.output).mkdir(parents=True, exist_ok=True)
        dump(smx, args.output, config)
    except SmxError as e:
        print(f"ERROR: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
