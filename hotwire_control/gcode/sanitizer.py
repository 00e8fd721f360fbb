"""G-code sanitizer -- uploaded gcode file to firmware-safe command stream.

Slicer output is full of comments, extruder words and commands the
hot-wire firmware rejects.  This module rewrites a file into a stream the
firmware is guaranteed to accept, in four strictly ordered phases::

    load_lines -> normalize_lines -> filter_commands -> remap_parameters

Only the loader can fail.  Every later phase is total: malformed input
degrades to a dropped line, never to an exception.

Filtering:
    A line survives only when it contains a space and the text before the
    first space is in ``SanitizerConfig.accepted_commands``.  A bare
    opcode such as ``G90`` or ``M3`` is therefore always dropped, even
    though it is in the vocabulary.  Downstream tooling relies on this,
    so it is kept as-is.

Parameter remapping:
    The firmware has no ``E``/``A`` axis and accepts one feed word per
    line.  The first disallowed word on a line is renamed to the feed
    letter (``E2.5`` -> ``F2.5``).  A genuine ``F`` word always wins: it
    removes a previously synthesized feed word, and any disallowed word
    after it is discarded.

    With several disallowed words before any genuine feed word the
    ``synthesized_feed_policy`` decides:

    ``collapse`` (default)
        Each new synthesized word replaces the previous one, so a line
        carries at most one.  ``G1 E1 A2 X3`` -> ``G1 F2 X3``.
    ``preserve``
        Legacy behaviour: all of them are converted but only the latest
        is tracked for removal.  ``G1 E1 E2 F5`` -> ``G1 F1 F5``.

Usage::

    from hotwire_control.gcode import GCodeSanitizer
    sanitizer = GCodeSanitizer("slice_01.gcode")
    commands = sanitizer.run()
    sanitizer.write_commands("slice_01.clean.gcode")
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, TextIO

from hotwire_control.configs.loader import SanitizerConfig, default_sanitizer_config
from hotwire_control.utils.fs import atomic_write_text

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class SanitizerError(Exception):
    """Base exception for gcode sanitizer failures."""

    pass


class GCodeFileNotFound(SanitizerError):
    """The gcode path does not resolve to an existing file."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(
            f"Cannot modify gcode file: {path}. File does not exist!"
        )


class GCodeFileUnreadable(SanitizerError):
    """The gcode file exists but its content could not be read."""

    def __init__(self, path: Path, reason: str = "") -> None:
        self.path = path
        msg = f"Cannot modify gcode file: {path}. File cannot be read!"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


# ---------------------------------------------------------------------------
# Data containers
# ---------------------------------------------------------------------------


@dataclass
class SanitizeStats:
    """Counters for one sanitizer run."""

    lines_read: int = 0
    dropped_by_filter: int = 0
    dropped_by_remap: int = 0
    emitted: int = 0
    tokens_remapped: int = 0
    tokens_discarded: int = 0


@dataclass
class _RemapState:
    """Per-line state threaded across tokens; discarded after the line."""

    seen_real_feed: bool = False
    last_synthesized_index: int | None = None


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------


def load_lines(path: str | Path, encoding: str = "utf-8") -> list[str]:
    """Read a gcode file into trimmed lines, order and count preserved.

    Raises
    ------
    GCodeFileNotFound
        If *path* does not exist.
    GCodeFileUnreadable
        If *path* exists but cannot be opened or decoded.
    """
    path = Path(path).absolute()
    try:
        exists = path.exists()
    except OSError as exc:
        raise GCodeFileUnreadable(path, exc.strerror or str(exc)) from exc
    if not exists:
        raise GCodeFileNotFound(path)

    try:
        with open(path, "r", encoding=encoding) as f:
            lines = [line.strip() for line in f]
    except UnicodeDecodeError as exc:
        raise GCodeFileUnreadable(path, f"not valid {encoding}") from exc
    except OSError as exc:
        raise GCodeFileUnreadable(path, exc.strerror or str(exc)) from exc

    logger.debug("Read %d lines from %s", len(lines), path)
    return lines


def normalize_lines(lines: Iterable[str], comment_char: str = ";") -> list[str]:
    """Strip line comments and surrounding whitespace from every line."""
    return [line.split(comment_char, 1)[0].strip() for line in lines]


def filter_commands(lines: Iterable[str], accepted: frozenset[str]) -> list[str]:
    """Keep lines whose leading opcode is accepted and that have parameters.

    Dropped: empty lines, lines without a space, and lines whose text
    before the first space is not in *accepted*.
    """
    kept = []
    for line in lines:
        if " " not in line:
            continue
        if line.split(" ", 1)[0] not in accepted:
            continue
        kept.append(line)
    return kept


def remap_line(
    line: str,
    config: SanitizerConfig,
    stats: SanitizeStats | None = None,
) -> str:
    """Rewrite disallowed parameter words on one line.

    Returns the rewritten line, or ``""`` if every token was removed.
    """
    feed = config.feed_letter
    collapse = config.synthesized_feed_policy == "collapse"
    state = _RemapState()
    out: list[str] = []
    remapped = discarded = 0

    for token in line.split():
        if config.is_disallowed(token):
            if state.seen_real_feed:
                discarded += 1
                continue
            if collapse and state.last_synthesized_index is not None:
                del out[state.last_synthesized_index]
                discarded += 1
            out.append(feed + token[1:])
            state.last_synthesized_index = len(out) - 1
            remapped += 1
        elif token[0] == feed:
            state.seen_real_feed = True
            if state.last_synthesized_index is not None:
                del out[state.last_synthesized_index]
                state.last_synthesized_index = None
                discarded += 1
            out.append(token)
        else:
            out.append(token)

    if stats is not None:
        stats.tokens_remapped += remapped
        stats.tokens_discarded += discarded
    return " ".join(out)


def remap_parameters(
    lines: Iterable[str],
    config: SanitizerConfig,
    stats: SanitizeStats | None = None,
) -> list[str]:
    """Apply ``remap_line`` to every line, dropping lines left empty."""
    remapped = []
    for line in lines:
        new_line = remap_line(line, config, stats)
        if new_line:
            remapped.append(new_line)
        elif stats is not None:
            stats.dropped_by_remap += 1
    return remapped


def sanitize_lines(
    lines: Iterable[str],
    config: SanitizerConfig | None = None,
    stats: SanitizeStats | None = None,
) -> list[str]:
    """Run normalize -> filter -> remap over in-memory lines."""
    cfg = config or default_sanitizer_config()
    normalized = normalize_lines(lines, cfg.comment_char)
    filtered = filter_commands(normalized, cfg.accepted_commands)
    if stats is not None:
        stats.dropped_by_filter += len(normalized) - len(filtered)
    return remap_parameters(filtered, cfg, stats)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class GCodeSanitizer:
    """Sanitize one gcode file into a firmware-safe command stream.

    Parameters
    ----------
    path : str | Path
        Gcode file to sanitize.
    config : SanitizerConfig | None
        Vocabulary and remapping rules.  ``None`` uses the shipped
        default.

    Notes
    -----
    Create one instance per file.  The command stream is owned by the
    instance and is replaced on every run; ``commands`` hands out copies.
    """

    def __init__(
        self,
        path: str | Path,
        config: SanitizerConfig | None = None,
    ) -> None:
        self._path = Path(path)
        self._cfg = config or default_sanitizer_config()
        self._commands: list[str] = []
        self._stats = SanitizeStats()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def path(self) -> Path:
        return self._path

    @property
    def commands(self) -> list[str]:
        """Copy of the command stream from the last successful run."""
        return list(self._commands)

    @property
    def stats(self) -> SanitizeStats:
        return self._stats

    def run(self) -> list[str]:
        """Load, normalize, filter and remap the file.

        Returns
        -------
        list[str]
            The sanitized command stream (also retained on the instance).

        Raises
        ------
        GCodeFileNotFound
            If the file does not exist.
        GCodeFileUnreadable
            If the file cannot be read.
        """
        stats = SanitizeStats()
        lines = load_lines(self._path, self._cfg.encoding)
        stats.lines_read = len(lines)

        commands = sanitize_lines(lines, self._cfg, stats)
        stats.emitted = len(commands)

        self._commands = commands
        self._stats = stats
        logger.info(
            "Sanitized %s: %d lines read, %d commands emitted "
            "(%d filtered, %d tokens remapped, %d tokens discarded)",
            self._path.name,
            stats.lines_read,
            stats.emitted,
            stats.dropped_by_filter,
            stats.tokens_remapped,
            stats.tokens_discarded,
        )
        return list(commands)

    def modify(self) -> bool:
        """Run the pipeline, reporting load failures instead of raising.

        Returns
        -------
        bool
            ``True`` if the file was sanitized, ``False`` if it could not
            be loaded.
        """
        try:
            self.run()
        except SanitizerError as exc:
            logger.error("%s", exc)
            return False
        return True

    def print_commands(self, stream: TextIO | None = None) -> None:
        """Write the command stream, one command per line."""
        out = stream if stream is not None else sys.stdout
        for command in self._commands:
            print(command, file=out)

    def write_commands(self, dest: str | Path) -> Path:
        """Write the command stream to *dest* atomically.

        Returns
        -------
        Path
            The written file.
        """
        dest = Path(dest)
        text = "".join(f"{command}\n" for command in self._commands)
        atomic_write_text(dest, text, encoding=self._cfg.encoding)
        logger.info("Wrote %d commands to %s", len(self._commands), dest)
        return dest


# ---------------------------------------------------------------------------
# Convenience wrappers
# ---------------------------------------------------------------------------


def sanitize_file(
    path: str | Path,
    config: SanitizerConfig | None = None,
) -> list[str]:
    """Sanitize one file and return its command stream."""
    return GCodeSanitizer(path, config).run()


def sanitize_files(
    paths: Iterable[str | Path],
    config: SanitizerConfig | None = None,
) -> dict[str, list[str]]:
    """Sanitize a batch of slice files, in order.

    Each file gets its own ``GCodeSanitizer``.  The first load failure
    propagates.

    Returns
    -------
    dict[str, list[str]]
        Command stream keyed by the path as given.
    """
    results: dict[str, list[str]] = {}
    for path in paths:
        results[str(path)] = GCodeSanitizer(path, config).run()
    return results
