"""
G-code sanitization module.

Rewrites uploaded gcode files into a command stream the hot-wire
firmware accepts: comments stripped, unknown commands dropped, and
unsupported ``E``/``A`` parameters folded into the feed rate.
"""

from hotwire_control.gcode.sanitizer import (
    GCodeFileNotFound,
    GCodeFileUnreadable,
    GCodeSanitizer,
    SanitizerError,
    SanitizeStats,
    filter_commands,
    load_lines,
    normalize_lines,
    remap_line,
    remap_parameters,
    sanitize_file,
    sanitize_files,
    sanitize_lines,
)

__all__ = [
    "GCodeFileNotFound",
    "GCodeFileUnreadable",
    "GCodeSanitizer",
    "SanitizerError",
    "SanitizeStats",
    "filter_commands",
    "load_lines",
    "normalize_lines",
    "remap_line",
    "remap_parameters",
    "sanitize_file",
    "sanitize_files",
    "sanitize_lines",
]
