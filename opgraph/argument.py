"""Named, typed arguments on operator and net definitions.

An :py:class:`opgraph.proto.Argument` carries a name and exactly one payload
among a float, an int, a byte string, or a repeated list of floats, ints or
byte strings. Strings are stored UTF-8 encoded and nested messages are stored
serialized in the byte string slot.

Lookups scan ``descriptor.arg`` in order and stop at the first entry with a
matching name. Duplicate names are never rejected; later duplicates are
simply unreachable by name.
"""

from __future__ import annotations

import collections.abc
import numbers
from enum import Enum
from typing import Any, Iterable, List, Optional, Union

import google.protobuf.message

from opgraph.fatal import FatalReporter, report_fatal
from opgraph.proto import Argument

ArgumentValue = Union[
    float,
    int,
    str,
    bytes,
    google.protobuf.message.Message,
    Iterable[float],
    Iterable[int],
    Iterable[Union[str, bytes]],
]
"""Values accepted by :py:func:`make_argument`."""


class ArgumentKind(Enum):
    """Payload slot populated on an argument."""

    FLOAT = "f"
    INT = "i"
    STRING = "s"
    FLOATS = "floats"
    INTS = "ints"
    STRINGS = "strings"

    @property
    def field_name(self) -> str:
        """Name of the protobuf field backing this kind."""
        return self.value


_SINGULAR_KINDS = (ArgumentKind.FLOAT, ArgumentKind.INT, ArgumentKind.STRING)
_REPEATED_KINDS = (ArgumentKind.FLOATS, ArgumentKind.INTS, ArgumentKind.STRINGS)


def _to_bytes(value: Union[str, bytes, bytearray]) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def make_float_argument(name: str, value: float) -> Argument:
    """Create an argument with the float payload set."""
    return Argument(name=name, f=float(value))


def make_int_argument(name: str, value: int) -> Argument:
    """Create an argument with the int payload set."""
    return Argument(name=name, i=int(value))


def make_string_argument(name: str, value: str) -> Argument:
    """Create an argument with the string payload set to UTF-8 bytes."""
    return Argument(name=name, s=value.encode("utf-8"))


def make_bytes_argument(name: str, value: Union[bytes, bytearray]) -> Argument:
    """Create an argument with the string payload set to raw bytes."""
    return Argument(name=name, s=bytes(value))


def make_message_argument(
    name: str, value: google.protobuf.message.Message
) -> Argument:
    """Create an argument holding a serialized message in the string payload.

    Required fields are not checked; the payload is opaque to the argument.
    """
    return Argument(name=name, s=value.SerializePartialToString())


def make_floats_argument(name: str, values: Iterable[float]) -> Argument:
    """Create an argument with the repeated float payload set, in order."""
    return Argument(name=name, floats=[float(v) for v in values])


def make_ints_argument(name: str, values: Iterable[int]) -> Argument:
    """Create an argument with the repeated int payload set, in order."""
    return Argument(name=name, ints=[int(v) for v in values])


def make_strings_argument(
    name: str, values: Iterable[Union[str, bytes]]
) -> Argument:
    """Create an argument with the repeated string payload set, in order."""
    return Argument(name=name, strings=[_to_bytes(v) for v in values])


def _make_repeated_argument(name: str, values: List[Any]) -> Argument:
    if not values:
        # All repeated slots look the same when empty
        return Argument(name=name)
    if all(isinstance(v, (str, bytes, bytearray)) for v in values):
        return make_strings_argument(name, values)
    if all(isinstance(v, numbers.Integral) for v in values):
        return make_ints_argument(name, values)
    if all(isinstance(v, numbers.Real) for v in values):
        return make_floats_argument(name, values)
    raise TypeError(
        f"Argument {name!r} has a list value that is not all float, all int, or all str"
    )


def make_argument(name: str, value: ArgumentValue) -> Argument:
    """Create an argument, choosing the payload slot from the value's type.

    ``float`` sets ``f``; ``int`` and ``bool`` set ``i``; ``str`` (UTF-8
    encoded), ``bytes`` and protobuf messages (serialized) set ``s``. Lists
    and other ordered iterables set ``ints`` when every item is an int,
    ``floats`` when every item is a real number, and ``strings`` when every
    item is ``str`` or ``bytes``. An empty iterable produces an argument with
    only its name set.

    The name is not validated.

    Args:
        name: Argument name.
        value: Payload value.

    Returns:
        A new argument, not attached to any descriptor.

    Raises:
        TypeError: The value is not one of the supported types.
    """
    if isinstance(value, google.protobuf.message.Message):
        return make_message_argument(name, value)
    if isinstance(value, str):
        return make_string_argument(name, value)
    if isinstance(value, (bytes, bytearray)):
        return make_bytes_argument(name, value)
    if isinstance(value, numbers.Integral):
        return make_int_argument(name, int(value))
    if isinstance(value, numbers.Real):
        return make_float_argument(name, float(value))
    if isinstance(value, collections.abc.Iterable) and not isinstance(
        value, (collections.abc.Mapping, collections.abc.Set)
    ):
        return _make_repeated_argument(name, list(value))
    raise TypeError(
        f"Argument {name!r} of type {type(value).__name__} not one of float, int, "
        "str, bytes, protobuf message, or a list of float, int or str"
    )


def has_argument(descriptor: google.protobuf.message.Message, name: str) -> bool:
    """Whether any argument on the descriptor has the given name."""
    return any(arg.name == name for arg in descriptor.arg)


def get_argument(
    descriptor: google.protobuf.message.Message,
    name: str,
    *,
    fatal_reporter: Optional[FatalReporter] = None,
) -> Argument:
    """Return the first argument with the given name.

    The argument is required. Use :py:func:`has_argument` or
    :py:func:`get_or_create_argument` when it may be absent.

    Args:
        descriptor: An ``OperatorDef`` or ``NetDef``.
        name: Argument name.
        fatal_reporter: Notified when the argument does not exist.

    Raises:
        FatalError: No argument has the name.
    """
    for arg in descriptor.arg:
        if arg.name == name:
            return arg
    report_fatal(f"Argument named {name} does not exist.", fatal_reporter)


def get_or_create_argument(
    descriptor: google.protobuf.message.Message,
    name: str,
    create_if_missing: bool,
) -> Optional[Argument]:
    """Return the first argument with the given name for in-place mutation.

    If there is none and ``create_if_missing`` is set, an argument with only
    the name set is appended to the descriptor and returned. Otherwise
    ``None`` is returned.

    Not safe for concurrent use on the same descriptor.
    """
    for arg in descriptor.arg:
        if arg.name == name:
            return arg
    if create_if_missing:
        return descriptor.arg.add(name=name)
    return None


get_mutable_argument = get_or_create_argument


def argument_kind(arg: Argument) -> Optional[ArgumentKind]:
    """Return the populated payload slot, or ``None`` for a name-only argument."""
    for kind in _SINGULAR_KINDS:
        if arg.HasField(kind.field_name):
            return kind
    for kind in _REPEATED_KINDS:
        if len(getattr(arg, kind.field_name)):
            return kind
    return None


def argument_value(arg: Argument) -> Any:
    """Return the populated payload as a Python value.

    Singular payloads are returned as ``float``, ``int`` or ``bytes``;
    repeated payloads as a list. Returns ``None`` for a name-only argument.
    """
    kind = argument_kind(arg)
    if kind is None:
        return None
    value = getattr(arg, kind.field_name)
    if kind in _REPEATED_KINDS:
        return list(value)
    return value
