"""Cross-cutting utilities (lowest dependency layer).

    - Atomic file writes and YAML loading (fs)
    - Unified logging for entrypoints (logging_config)

No module in utils/ may import from gcode/ or configs/.
"""

from . import fs
from . import logging_config

from .logging_config import pop_context, push_context, setup_logging

__all__ = [
    'fs',
    'logging_config',
    'pop_context',
    'push_context',
    'setup_logging',
]
