"""Common opgraph exceptions."""

from __future__ import annotations

import os
from typing import Literal, Union

ProtoEncoding = Literal["binary", "text"]

StrPath = Union[str, "os.PathLike[str]"]


class OpgraphError(Exception):
    """Base for all opgraph exceptions."""

    @property
    def cause(self) -> BaseException | None:
        """Cause of the exception.

        This is the same as ``Exception.__cause__``.
        """
        return self.__cause__


class ProtoFileNotFoundError(OpgraphError):
    """Raised when a message file cannot be opened for reading.

    Attributes:
        path: Path that could not be opened.
    """

    def __init__(self, path: StrPath) -> None:
        """Initialize a file not found error."""
        super().__init__(f"File not found: {os.fspath(path)}")
        self.path = os.fspath(path)


class ProtoParseError(OpgraphError):
    """Raised when file contents are not a valid encoding of the message.

    Attributes:
        path: Path that was being read.
        encoding: Either ``"binary"`` or ``"text"``.
    """

    def __init__(
        self,
        message: str,
        *,
        path: StrPath,
        encoding: ProtoEncoding,
    ) -> None:
        """Initialize a parse error."""
        super().__init__(message)
        self._message = message
        self.path = os.fspath(path)
        self.encoding = encoding

    @property
    def message(self) -> str:
        """Message."""
        return self._message


class ProtoSizeLimitError(ProtoParseError):
    """Raised when a file holds more bytes than the decode hard limit.

    Attributes:
        limit: Hard limit in bytes that was exceeded.
        size: Number of bytes seen when decoding stopped.
    """

    def __init__(
        self,
        *,
        path: StrPath,
        encoding: ProtoEncoding,
        limit: int,
        size: int,
    ) -> None:
        """Initialize a size limit error."""
        super().__init__(
            f"{os.fspath(path)} exceeds the total bytes limit of {limit} "
            f"(read at least {size} bytes)",
            path=path,
            encoding=encoding,
        )
        self.limit = limit
        self.size = size


class FatalError(OpgraphError):
    """A configuration invariant was violated.

    Raised after the fatal reporter has been notified, for conditions that
    indicate a programming or configuration error: a required argument that
    does not exist, an output file that cannot be created, or a message that
    cannot be serialized.
    """
