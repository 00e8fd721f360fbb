"""Configuration loader for the gcode sanitizer.

Loads and validates ``sanitizer.yaml`` into a typed, frozen dataclass.
The command vocabulary and the disallowed parameter letters come from
the config -- nothing is hardcoded in the pipeline.

The config is immutable once loaded, so a single instance is shared by
every ``GCodeSanitizer`` in the process.

Usage::

    from hotwire_control.configs.loader import load_sanitizer_config
    cfg = load_sanitizer_config()                        # default path
    cfg = load_sanitizer_config("/custom/sanitizer.yaml") # explicit path
"""

from __future__ import annotations

import codecs
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml

from hotwire_control.utils.fs import load_yaml

logger = logging.getLogger(__name__)

FeedPolicy = Literal["collapse", "preserve"]

FEED_POLICIES: tuple[str, ...] = ("collapse", "preserve")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


# ---------------------------------------------------------------------------
# Dataclasses -- mirror the YAML structure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SanitizerConfig:
    """Rules the sanitizer applies to every uploaded gcode file.

    Parameters
    ----------
    accepted_commands : frozenset[str]
        Opcode vocabulary.  A line survives filtering only if the text
        before its first space is a member.
    disallowed_parameters : frozenset[str]
        Single parameter letters the firmware rejects (``E``, ``A``).
        They are folded into the feed rate or discarded.
    feed_letter : str
        The firmware's feed-rate parameter letter.
    comment_char : str
        Line-comment introducer.
    encoding : str
        Text encoding used to read gcode files.
    synthesized_feed_policy : ``"collapse"`` | ``"preserve"``
        How repeated disallowed words before a genuine feed word are
        handled.  ``collapse`` keeps only the latest synthesized feed
        word; ``preserve`` converts them all and only tracks the latest,
        matching the legacy controller.
    """

    accepted_commands: frozenset[str]
    disallowed_parameters: frozenset[str]
    feed_letter: str = "F"
    comment_char: str = ";"
    encoding: str = "utf-8"
    synthesized_feed_policy: FeedPolicy = "collapse"

    def is_disallowed(self, token: str) -> bool:
        """Return whether *token* starts with a disallowed letter."""
        return bool(token) and token[0] in self.disallowed_parameters


# ---------------------------------------------------------------------------
# Internal parsing helpers
# ---------------------------------------------------------------------------


def _parse_commands(raw: Any) -> frozenset[str]:
    """Flatten the command vocabulary (list, or mapping of group -> list)."""
    if isinstance(raw, dict):
        groups = list(raw.values())
    else:
        groups = [raw]

    commands: set[str] = set()
    for group in groups:
        if not isinstance(group, (list, tuple)):
            raise ConfigError(
                f"accepted_commands entries must be lists, got {type(group).__name__}"
            )
        for cmd in group:
            if not isinstance(cmd, str):
                raise ConfigError(
                    f"Command {cmd!r} must be a string (quote it in YAML)"
                )
            commands.add(cmd.strip())
    return frozenset(commands)


def _parse_letters(raw: Any) -> frozenset[str]:
    """Parse the disallowed parameter letters."""
    if not isinstance(raw, (list, tuple)):
        raise ConfigError(
            f"disallowed_parameters must be a list, got {type(raw).__name__}"
        )
    return frozenset(str(letter) for letter in raw)


def _validate_config(cfg: SanitizerConfig) -> None:
    """Validate cross-field consistency.

    Raises
    ------
    ConfigError
        On any invalid combination.
    """
    if not cfg.accepted_commands:
        raise ConfigError("accepted_commands must not be empty")

    for cmd in cfg.accepted_commands:
        if not cmd or any(ch.isspace() for ch in cmd):
            raise ConfigError(f"Invalid command {cmd!r}: empty or contains whitespace")

    if len(cfg.feed_letter) != 1:
        raise ConfigError(
            f"feed_letter must be a single character, got {cfg.feed_letter!r}"
        )
    if len(cfg.comment_char) != 1:
        raise ConfigError(
            f"comment_char must be a single character, got {cfg.comment_char!r}"
        )

    for letter in cfg.disallowed_parameters:
        if len(letter) != 1:
            raise ConfigError(
                f"Disallowed parameter must be a single letter, got {letter!r}"
            )
        if letter == cfg.feed_letter:
            raise ConfigError(
                f"Feed letter '{cfg.feed_letter}' cannot also be disallowed"
            )

    try:
        codecs.lookup(cfg.encoding)
    except LookupError as exc:
        raise ConfigError(f"Unknown encoding '{cfg.encoding}'") from exc

    if cfg.synthesized_feed_policy not in FEED_POLICIES:
        raise ConfigError(
            f"Unknown synthesized_feed_policy '{cfg.synthesized_feed_policy}'. "
            f"Expected one of {list(FEED_POLICIES)}"
        )

    # Disallowed letters that are also whole opcodes would be rewritten
    # after passing the filter.
    overlap = sorted(cfg.disallowed_parameters & cfg.accepted_commands)
    if overlap:
        logger.warning(
            "Disallowed parameters %s are also accepted opcodes", overlap
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_sanitizer_config(path: str | Path | None = None) -> SanitizerConfig:
    """Load and validate sanitizer configuration from YAML.

    Parameters
    ----------
    path : str | Path | None
        Path to ``sanitizer.yaml``.  ``None`` loads the default shipped
        alongside this module.

    Returns
    -------
    SanitizerConfig
        Fully validated, frozen configuration object.

    Raises
    ------
    ConfigError
        If any field is missing or fails validation.
    FileNotFoundError
        If *path* does not exist.
    """
    if path is None:
        path = Path(__file__).parent / "sanitizer.yaml"
    else:
        path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    logger.info("Loading sanitizer configuration from %s", path)

    try:
        data: dict[str, Any] = load_yaml(path)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Malformed configuration file {path}: {exc}") from exc

    if data is None:
        raise ConfigError(f"Empty configuration file: {path}")
    if not isinstance(data, dict) or not isinstance(data.get("sanitizer"), dict):
        raise ConfigError(
            f"Configuration file {path} must contain a 'sanitizer' mapping"
        )

    try:
        sd = data["sanitizer"]
        config = SanitizerConfig(
            accepted_commands=_parse_commands(sd["accepted_commands"]),
            disallowed_parameters=_parse_letters(sd["disallowed_parameters"]),
            feed_letter=str(sd.get("feed_letter", "F")),
            comment_char=str(sd.get("comment_char", ";")),
            encoding=str(sd.get("encoding", "utf-8")),
            synthesized_feed_policy=str(
                sd.get("synthesized_feed_policy", "collapse")
            ),
        )
    except KeyError as exc:
        raise ConfigError(
            f"Missing required configuration key: {exc}"
        ) from exc
    except (TypeError, AttributeError) as exc:
        raise ConfigError(
            f"Invalid configuration value: {exc}"
        ) from exc

    _validate_config(config)
    logger.info(
        "Sanitizer configuration loaded: %d commands, disallowed=%s, policy=%s",
        len(config.accepted_commands),
        "".join(sorted(config.disallowed_parameters)),
        config.synthesized_feed_policy,
    )
    return config


@lru_cache(maxsize=1)
def default_sanitizer_config() -> SanitizerConfig:
    """Return the shipped configuration, loaded once per process."""
    return load_sanitizer_config()
