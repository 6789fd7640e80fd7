"""
SMX Dumper Flask Server

Features:
- Upload a compiled plugin and get its symbols as JSON
- Resolve code/data addresses to source file, line and variables
- Magic-number validation and size limits on uploads
"""

from typing import Optional, Tuple

from flask import Flask, request, jsonify

from smx_dumper_py import __version__
from smx_dumper_py.errors import SmxError
from smx_dumper_py.smx.enums import SMX_MAGIC
from smx_dumper_py.smx.file import SmxFile
from smx_dumper_py.output.script_json import ScriptJson

app = Flask(__name__)

# Configuration
app.config['MAX_CONTENT_LENGTH'] = 64 * 1024 * 1024  # 64MB max upload


def validate_file_magic(data: bytes) -> Optional[str]:
    """Validate uploaded bytes by checking the magic number."""
    if len(data) < 4:
        return "File too small"

    magic = int.from_bytes(data[:4], 'little')
    if magic != SMX_MAGIC:
        return f"Not an SMX file (magic 0x{magic:08X})"
    return None


def load_upload() -> Tuple[Optional[SmxFile], Optional[str]]:
    """Decode the file uploaded under the 'file' form field."""
    if 'file' not in request.files:
        return None, 'No file provided'

    data = request.files['file'].read()
    error = validate_file_magic(data)
    if error:
        return None, f'Invalid file: {error}'

    try:
        return SmxFile(data), None
    except SmxError as e:
        return None, f'Decode failed: {e}'


def parse_address(name: str, required: bool) -> Tuple[Optional[int], Optional[str]]:
    text = request.form.get(name)
    if text is None or text == '':
        return None, (f'Missing {name}' if required else None)
    try:
        return int(text, 0), None
    except ValueError:
        return None, f'Invalid {name}: {text!r}'


# ============== Routes ==============

@app.route('/api/health')
def health():
    """Liveness probe."""
    return jsonify({'status': 'ok', 'version': __version__})


@app.route('/api/dump', methods=['POST'])
def dump_file():
    """Decode an uploaded plugin and return its symbols."""
    smx, error = load_upload()
    if error:
        return jsonify({'error': error}), 400

    # Signatures are decoded here, after the file itself loaded
    try:
        return jsonify(ScriptJson.from_file(smx).to_dict())
    except SmxError as e:
        return jsonify({'error': f'Decode failed: {e}'}), 400


@app.route('/api/resolve', methods=['POST'])
def resolve_address():
    """Resolve code_addr (and optionally data_addr) against an uploaded plugin."""
    code_addr, error = parse_address('code_addr', required=True)
    if error:
        return jsonify({'error': error}), 400
    data_addr, error = parse_address('data_addr', required=False)
    if error:
        return jsonify({'error': error}), 400

    smx, error = load_upload()
    if error:
        return jsonify({'error': error}), 400

    resolver = smx.resolver
    method = resolver.find_method(code_addr)
    result = {
        'file': resolver.find_file(code_addr),
        'line': resolver.find_line(code_addr),
        'method': method.name if method else None,
        'global': None,
        'local': None,
    }

    if data_addr is not None:
        var = resolver.find_global(data_addr)
        result['global'] = var.name if var else None
        var = resolver.find_local(code_addr, data_addr)
        result['local'] = var.name if var else None

    return jsonify(result)


@app.errorhandler(413)
def too_large(e):
    """Handle file too large error."""
    return jsonify({'error': 'File too large'}), 413


if __name__ == '__main__':
    app.run(host='0.0.0.0', port=5000, debug=False)
