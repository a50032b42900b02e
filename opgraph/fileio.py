"""Reading and writing protobuf messages to files.

Two codecs share one interface. :py:class:`LiteProtoFileCodec` only reads the
binary encoding, for deployments that ship a minimal protobuf runtime.
:py:class:`ProtoFileCodec` adds binary writes and the text format. Pick one
by importing it; neither switches behavior at runtime.

Every read is bounded by :py:class:`DecodeLimits`. A file larger than the hard
limit fails before its contents are handed to the parser, so a truncated or
hostile length prefix cannot make the process allocate without bound.
"""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass
from logging import getLogger
from typing import NoReturn, Optional, TypeVar

import google.protobuf.message
import google.protobuf.text_format
from typing_extensions import Self

from opgraph.envconfig import OpgraphConfig
from opgraph.exceptions import (
    ProtoEncoding,
    ProtoFileNotFoundError,
    ProtoParseError,
    ProtoSizeLimitError,
    StrPath,
)
from opgraph.fatal import FatalReporter, report_fatal, reporter_for_action

logger = getLogger(__name__)

DEFAULT_TOTAL_BYTES_LIMIT = 1 << 30
"""Hard limit on decoded bytes, 1 GiB."""

DEFAULT_TOTAL_BYTES_WARNING_THRESHOLD = 512 << 20
"""Decoded bytes above which a warning is logged, 512 MiB."""

DEFAULT_FILE_MODE = 0o644

_READ_CHUNK_SIZE = 1 << 20

_WRITE_FLAGS = os.O_WRONLY | os.O_CREAT | os.O_TRUNC | getattr(os, "O_BINARY", 0)

MessageT = TypeVar("MessageT", bound=google.protobuf.message.Message)


@dataclass(frozen=True)
class DecodeLimits:
    """Bounds on the number of bytes a single read may decode."""

    total_bytes_limit: int = DEFAULT_TOTAL_BYTES_LIMIT
    """Reads of more bytes than this fail with
    :py:class:`opgraph.exceptions.ProtoSizeLimitError`."""

    total_bytes_warning_threshold: int = DEFAULT_TOTAL_BYTES_WARNING_THRESHOLD
    """Reads of more bytes than this log a warning and continue."""

    def __post_init__(self) -> None:
        if self.total_bytes_limit <= 0:
            raise ValueError("Total bytes limit must be positive")
        if self.total_bytes_warning_threshold > self.total_bytes_limit:
            raise ValueError(
                "Total bytes warning threshold cannot be above the total bytes limit"
            )


DEFAULT_DECODE_LIMITS = DecodeLimits()


class LiteProtoFileCodec:
    """Binary-only message reader."""

    def __init__(self, *, limits: DecodeLimits = DEFAULT_DECODE_LIMITS) -> None:
        """Create a codec with the given decode limits."""
        self._limits = limits

    @property
    def limits(self) -> DecodeLimits:
        """Decode limits applied to every read."""
        return self._limits

    def read_binary(self, path: StrPath, message: MessageT) -> MessageT:
        """Parse the binary encoding of a message from a file.

        Args:
            path: File to read.
            message: Message to populate. Existing contents are cleared.

        Returns:
            The given message, populated.

        Raises:
            ProtoFileNotFoundError: The file cannot be opened.
            ProtoSizeLimitError: The file exceeds the total bytes limit.
            ProtoParseError: The bytes are not a valid encoding of the message.
        """
        data = self._read_bounded(path, "binary")
        try:
            message.ParseFromString(data)
        except google.protobuf.message.DecodeError as err:
            raise ProtoParseError(
                f"Failed to parse {message.DESCRIPTOR.full_name} from {os.fspath(path)}: {err}",
                path=path,
                encoding="binary",
            ) from err
        self._check_initialized(message, path, "binary")
        logger.debug(
            "Read %s from %s (%d bytes)",
            message.DESCRIPTOR.full_name,
            os.fspath(path),
            len(data),
        )
        return message

    @staticmethod
    def _check_initialized(
        message: google.protobuf.message.Message,
        path: StrPath,
        encoding: ProtoEncoding,
    ) -> None:
        # A parse that leaves required fields unset is a failed parse
        if not message.IsInitialized():
            raise ProtoParseError(
                f"Failed to parse {message.DESCRIPTOR.full_name} from {os.fspath(path)}: "
                "missing required fields: "
                + ", ".join(message.FindInitializationErrors()),
                path=path,
                encoding=encoding,
            )

    def _read_bounded(self, path: StrPath, encoding: ProtoEncoding) -> bytes:
        try:
            f = open(path, "rb")
        except OSError as err:
            raise ProtoFileNotFoundError(path) from err
        limit = self._limits.total_bytes_limit
        threshold = self._limits.total_bytes_warning_threshold
        with f:
            st = os.fstat(f.fileno())
            if stat.S_ISREG(st.st_mode) and st.st_size > limit:
                raise ProtoSizeLimitError(
                    path=path, encoding=encoding, limit=limit, size=st.st_size
                )
            buf = bytearray()
            warned = False
            while True:
                # Never ask for more than one byte past the limit
                chunk = f.read(min(_READ_CHUNK_SIZE, limit + 1 - len(buf)))
                if not chunk:
                    break
                buf += chunk
                if len(buf) > limit:
                    raise ProtoSizeLimitError(
                        path=path, encoding=encoding, limit=limit, size=len(buf)
                    )
                if not warned and len(buf) > threshold:
                    warned = True
                    logger.warning(
                        "Reading %s has passed %d bytes. The read will fail above %d bytes.",
                        os.fspath(path),
                        threshold,
                        limit,
                    )
        return bytes(buf)


class ProtoFileCodec(LiteProtoFileCodec):
    """Message reader and writer for the binary and text encodings."""

    def __init__(
        self,
        *,
        limits: DecodeLimits = DEFAULT_DECODE_LIMITS,
        file_mode: int = DEFAULT_FILE_MODE,
        fatal_reporter: Optional[FatalReporter] = None,
        text_as_utf8: bool = True,
    ) -> None:
        """Create a codec.

        Args:
            limits: Decode limits applied to every read.
            file_mode: Permission bits for created files, before the umask.
            fatal_reporter: Notified of fatal write failures before
                :py:class:`opgraph.exceptions.FatalError` is raised. Defaults
                to :py:func:`opgraph.fatal.log_fatal`.
            text_as_utf8: Keep non-ASCII characters unescaped in text output.
        """
        super().__init__(limits=limits)
        self._file_mode = file_mode
        self._fatal_reporter = fatal_reporter
        self._text_as_utf8 = text_as_utf8

    @classmethod
    def from_config(
        cls, config: OpgraphConfig, *, limits: DecodeLimits = DEFAULT_DECODE_LIMITS
    ) -> Self:
        """Create a codec from loaded configuration."""
        return cls(
            limits=limits,
            file_mode=config.file_mode,
            fatal_reporter=reporter_for_action(config.fatal_action),
            text_as_utf8=config.text_as_utf8,
        )

    def write_binary(self, message: google.protobuf.message.Message, path: StrPath) -> None:
        """Write the binary encoding of a message to a file.

        The file is created or truncated. A message with unset required fields,
        or a file that cannot be created, is fatal.

        Raises:
            FatalError: After the fatal reporter has been notified.
        """
        name = message.DESCRIPTOR.full_name
        if not message.IsInitialized():
            self._fatal(
                f"Cannot serialize {name}, missing required fields: "
                + ", ".join(message.FindInitializationErrors())
            )
        try:
            data = message.SerializeToString()
        except google.protobuf.message.EncodeError as err:
            self._fatal(f"Cannot serialize {name}: {err}")
        self._write(path, data)
        logger.debug("Wrote %s to %s (%d bytes)", name, os.fspath(path), len(data))

    def read_text(self, path: StrPath, message: MessageT) -> MessageT:
        """Parse the text format of a message from a file.

        Args:
            path: File to read.
            message: Message to populate. Existing contents are cleared.

        Returns:
            The given message, populated.

        Raises:
            ProtoFileNotFoundError: The file cannot be opened.
            ProtoSizeLimitError: The file exceeds the total bytes limit.
            ProtoParseError: The content is not UTF-8 or not a valid text
                rendering of the message.
        """
        data = self._read_bounded(path, "text")
        name = message.DESCRIPTOR.full_name
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as err:
            raise ProtoParseError(
                f"Failed to parse {name} from {os.fspath(path)}: not valid UTF-8",
                path=path,
                encoding="text",
            ) from err
        message.Clear()
        try:
            google.protobuf.text_format.Parse(text, message)
        except google.protobuf.text_format.ParseError as err:
            raise ProtoParseError(
                f"Failed to parse {name} from {os.fspath(path)}: {err}",
                path=path,
                encoding="text",
            ) from err
        self._check_initialized(message, path, "text")
        logger.debug("Read %s text from %s", name, os.fspath(path))
        return message

    def write_text(self, message: google.protobuf.message.Message, path: StrPath) -> None:
        """Write the text format of a message to a file.

        Raises:
            FatalError: The message cannot be rendered or the file cannot be
                created.
        """
        name = message.DESCRIPTOR.full_name
        try:
            text = google.protobuf.text_format.MessageToString(
                message, as_utf8=self._text_as_utf8
            )
        except (TypeError, ValueError) as err:
            self._fatal(f"Cannot render {name} as text: {err}")
        self._write(path, text.encode("utf-8"))
        logger.debug("Wrote %s text to %s", name, os.fspath(path))

    def _write(self, path: StrPath, data: bytes) -> None:
        try:
            fd = os.open(path, _WRITE_FLAGS, self._file_mode)
        except OSError as err:
            self._fatal(
                f"File cannot be created: {os.fspath(path)} error number: {err.errno}"
            )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
        except OSError as err:
            self._fatal(
                f"File cannot be written: {os.fspath(path)} error number: {err.errno}"
            )

    def _fatal(self, message: str) -> NoReturn:
        report_fatal(message, self._fatal_reporter)


_default_codec = ProtoFileCodec()


def read_proto_from_binary_file(path: StrPath, message: MessageT) -> MessageT:
    """Read a binary message file with the default codec."""
    return _default_codec.read_binary(path, message)


def write_proto_to_binary_file(
    message: google.protobuf.message.Message, path: StrPath
) -> None:
    """Write a binary message file with the default codec."""
    _default_codec.write_binary(message, path)


def read_proto_from_text_file(path: StrPath, message: MessageT) -> MessageT:
    """Read a text format message file with the default codec."""
    return _default_codec.read_text(path, message)


def write_proto_to_text_file(
    message: google.protobuf.message.Message, path: StrPath
) -> None:
    """Write a text format message file with the default codec."""
    _default_codec.write_text(message, path)
