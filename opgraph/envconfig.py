"""Environment and file-based configuration for opgraph.

This module loads :py:class:`OpgraphConfig` from a TOML file and environment
variables. Example file::

    [io]
    file_mode = "0644"
    text_as_utf8 = true

    [fatal]
    action = "raise"

    [logging]
    level = "INFO"
"""

from __future__ import annotations

import dataclasses
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union, cast

from typing_extensions import Self, TypeAlias, TypedDict

from opgraph.fatal import FatalAction

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

DataSource: TypeAlias = Union[
    Path, str, bytes
]  # str represents a file contents, bytes represents raw data

CONFIG_FILE_ENV_VAR = "OPGRAPH_CONFIG_FILE"

_ENV_FATAL_ACTION = "OPGRAPH_FATAL_ACTION"
_ENV_FILE_MODE = "OPGRAPH_FILE_MODE"
_ENV_TEXT_AS_UTF8 = "OPGRAPH_TEXT_AS_UTF8"
_ENV_LOG_LEVEL = "OPGRAPH_LOG_LEVEL"

_FATAL_ACTIONS = ("raise", "exit")


# We define typed dictionaries for what the config looks like as TOML.
class IOConfigDict(TypedDict, total=False):
    """Dictionary representation of the ``[io]`` table."""

    file_mode: Union[str, int]
    text_as_utf8: bool


class FatalConfigDict(TypedDict, total=False):
    """Dictionary representation of the ``[fatal]`` table."""

    action: str


class LoggingConfigDict(TypedDict, total=False):
    """Dictionary representation of the ``[logging]`` table."""

    level: str


class OpgraphConfigDict(TypedDict, total=False):
    """Dictionary representation of a whole config file."""

    io: IOConfigDict
    fatal: FatalConfigDict
    logging: LoggingConfigDict


_KNOWN_KEYS: Mapping[str, tuple] = {
    "io": ("file_mode", "text_as_utf8"),
    "fatal": ("action",),
    "logging": ("level",),
}


def _read_source(source: Optional[DataSource]) -> Optional[bytes]:
    if source is None:
        return None
    if isinstance(source, Path):
        with open(source, "rb") as f:
            return f.read()
    if isinstance(source, str):
        return source.encode("utf-8")
    if isinstance(source, bytes):
        return source
    raise TypeError(
        f"Source must be one of pathlib.Path, str, or bytes, but got {type(source).__name__}"
    )


def _parse_file_mode(value: Union[str, int]) -> int:
    # Strings are octal, as written in a shell: "644", "0644" or "0o644"
    if isinstance(value, bool):
        raise ValueError(f"Invalid file mode {value!r}")
    if isinstance(value, int):
        mode = value
    else:
        try:
            mode = int(value, 8)
        except ValueError:
            raise ValueError(f"Invalid file mode {value!r}") from None
    if not 0 <= mode <= 0o7777:
        raise ValueError(f"File mode {value!r} out of range")
    return mode


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Invalid boolean {value!r}")


def _check_strict(d: Mapping[str, Any]) -> None:
    for table, values in d.items():
        if table not in _KNOWN_KEYS:
            raise ValueError(f"Unrecognized config table [{table}]")
        if not isinstance(values, Mapping):
            raise ValueError(f"Config key {table!r} must be a table")
        for key in values:
            if key not in _KNOWN_KEYS[table]:
                raise ValueError(f"Unrecognized config key {table}.{key}")


@dataclass(frozen=True)
class OpgraphConfig:
    """Configuration for the message file codec and fatal reporting.

    Decode size limits are not configurable here; they are fixed policy
    constants in :py:mod:`opgraph.fileio`.
    """

    fatal_action: FatalAction = "raise"
    """What a fatal condition does after it is logged: ``"raise"`` raises
    :py:class:`opgraph.exceptions.FatalError`, ``"exit"`` exits the process."""
    file_mode: int = 0o644
    """Permission bits for files created by the codec."""
    text_as_utf8: bool = True
    """Whether text format output keeps non-ASCII characters unescaped."""
    log_level: Optional[str] = None
    """Level applied to the ``opgraph`` logger by :py:func:`configure_logging`."""

    def __post_init__(self) -> None:
        if self.fatal_action not in _FATAL_ACTIONS:
            raise ValueError(
                f"Invalid fatal action {self.fatal_action!r}, expected one of {_FATAL_ACTIONS}"
            )
        _parse_file_mode(self.file_mode)

    @classmethod
    def from_dict(cls, d: OpgraphConfigDict) -> Self:
        """Create a config from a dictionary in the TOML shape."""
        io = d.get("io") or {}
        fatal = d.get("fatal") or {}
        log = d.get("logging") or {}
        kwargs: Dict[str, Any] = {}
        if "file_mode" in io:
            kwargs["file_mode"] = _parse_file_mode(io["file_mode"])
        if "text_as_utf8" in io:
            text_as_utf8 = io["text_as_utf8"]
            if not isinstance(text_as_utf8, bool):
                raise ValueError(
                    f"Config key io.text_as_utf8 must be a boolean, got {text_as_utf8!r}"
                )
            kwargs["text_as_utf8"] = text_as_utf8
        if "action" in fatal:
            kwargs["fatal_action"] = fatal["action"]
        if "level" in log:
            kwargs["log_level"] = log["level"]
        return cls(**kwargs)

    def to_dict(self) -> OpgraphConfigDict:
        """Convert to a dictionary that can be used for TOML serialization."""
        d: OpgraphConfigDict = {
            "io": {
                "file_mode": f"{self.file_mode:04o}",
                "text_as_utf8": self.text_as_utf8,
            },
            "fatal": {"action": self.fatal_action},
        }
        if self.log_level is not None:
            d["logging"] = {"level": self.log_level}
        return d

    @staticmethod
    def load(
        *,
        config_source: Optional[DataSource] = None,
        disable_file: bool = False,
        disable_env: bool = False,
        config_file_strict: bool = False,
        override_env_vars: Optional[Mapping[str, str]] = None,
    ) -> OpgraphConfig:
        """Load config from the given sources, applying env overrides.

        Args:
            config_source: If present, this is used as the configuration source
                instead of the file named by ``OPGRAPH_CONFIG_FILE``. This can be
                a path to the file or the string/byte contents of the file.
            disable_file: If true, file loading is disabled. This is only used
                when ``config_source`` is not present.
            disable_env: If true, environment variable loading and overriding
                is disabled. This takes precedence over the ``override_env_vars``
                parameter.
            config_file_strict: If true, will error on unrecognized tables or
                keys.
            override_env_vars: The environment to use for loading and overrides.
                If not provided, the current process's environment is used.

        Returns:
            The loaded configuration.

        Raises:
            ValueError: Invalid TOML, unrecognized keys in strict mode, or
                invalid values.
        """
        env: Mapping[str, str] = {}
        if not disable_env:
            env = os.environ if override_env_vars is None else override_env_vars

        source = config_source
        if source is None and not disable_file and env.get(CONFIG_FILE_ENV_VAR):
            source = Path(env[CONFIG_FILE_ENV_VAR])

        raw: Dict[str, Any] = {}
        data = _read_source(source)
        if data is not None:
            try:
                raw = tomllib.loads(data.decode("utf-8"))
            except tomllib.TOMLDecodeError as err:
                raise ValueError(f"Invalid config TOML: {err}") from err
            if config_file_strict:
                _check_strict(raw)

        config = OpgraphConfig.from_dict(cast(OpgraphConfigDict, raw))
        overrides: Dict[str, Any] = {}
        if _ENV_FATAL_ACTION in env:
            overrides["fatal_action"] = env[_ENV_FATAL_ACTION].strip().lower()
        if _ENV_FILE_MODE in env:
            overrides["file_mode"] = _parse_file_mode(env[_ENV_FILE_MODE])
        if _ENV_TEXT_AS_UTF8 in env:
            overrides["text_as_utf8"] = _parse_bool(env[_ENV_TEXT_AS_UTF8])
        if _ENV_LOG_LEVEL in env:
            overrides["log_level"] = env[_ENV_LOG_LEVEL]
        if not overrides:
            return config
        return dataclasses.replace(config, **overrides)


def configure_logging(config: OpgraphConfig) -> None:
    """Apply the configured level to the ``opgraph`` logger.

    No handlers are installed; that is left to the application.
    """
    if config.log_level is not None:
        logging.getLogger("opgraph").setLevel(config.log_level.upper())
