"""
Output generation module.
"""

from .dumper import SmxDumper
from .script_json import ScriptJson, ScriptMethod, ScriptNative, ScriptGlobal, ScriptFile

__all__ = ['SmxDumper', 'ScriptJson', 'ScriptMethod', 'ScriptNative', 'ScriptGlobal', 'ScriptFile']
