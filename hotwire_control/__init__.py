"""
Hot-wire Control Package.

Prepares gcode for a GRBL-driven hot-wire foam cutter.  Uploaded files are
sanitized into a command stream the motion firmware is guaranteed to
accept before they are handed to the streaming component.

Subpackages:
    gcode: G-code sanitization pipeline
    configs: Sanitizer vocabulary loading and validation
    utils: Atomic file writes, YAML loading, logging setup
    scripts: Command-line entrypoints
"""

__all__ = ["gcode", "configs", "utils", "scripts"]

__version__ = "0.1.0"
