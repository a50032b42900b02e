import logging
from fractions import Fraction

import pytest

from opgraph.argument import (
    ArgumentKind,
    argument_kind,
    argument_value,
    get_argument,
    get_mutable_argument,
    get_or_create_argument,
    has_argument,
    make_argument,
    make_bytes_argument,
    make_float_argument,
    make_floats_argument,
    make_int_argument,
    make_ints_argument,
    make_message_argument,
    make_string_argument,
    make_strings_argument,
)
from opgraph.exceptions import FatalError
from opgraph.proto import Argument, DeviceOption, NetDef, OperatorDef
from tests.helpers import FatalCapturer, LogCapturer, required_field_message_class


def _payload_fields(arg: Argument) -> set:
    return {f.name for f, _ in arg.ListFields()} - {"name"}


class TestMakeArgument:
    def test_float(self):
        arg = make_argument("x", 3.14)
        assert arg.name == "x"
        assert arg.f == pytest.approx(3.14)
        assert _payload_fields(arg) == {"f"}
        assert argument_kind(arg) is ArgumentKind.FLOAT

    def test_int(self):
        arg = make_argument("n", 42)
        assert arg.i == 42
        assert _payload_fields(arg) == {"i"}
        assert argument_kind(arg) is ArgumentKind.INT

    def test_large_int(self):
        assert make_argument("n", 1 << 40).i == 1 << 40

    def test_bool_is_int(self):
        arg = make_argument("flag", True)
        assert arg.i == 1
        assert _payload_fields(arg) == {"i"}

    def test_zero_values_still_set(self):
        assert _payload_fields(make_argument("z", 0)) == {"i"}
        assert _payload_fields(make_argument("z", 0.0)) == {"f"}
        assert _payload_fields(make_argument("z", "")) == {"s"}

    def test_string(self):
        arg = make_argument("order", "NCHW")
        assert arg.s == b"NCHW"
        assert _payload_fields(arg) == {"s"}
        assert argument_kind(arg) is ArgumentKind.STRING

    def test_string_utf8(self):
        assert make_argument("label", "schön").s == "schön".encode("utf-8")

    def test_bytes(self):
        arg = make_argument("blob", b"\x00\x01\xff")
        assert arg.s == b"\x00\x01\xff"
        assert _payload_fields(arg) == {"s"}

    def test_message_is_serialized_into_string_slot(self):
        device = DeviceOption(device_type=1, cuda_gpu_id=3)
        arg = make_argument("device", device)
        assert arg.s == device.SerializeToString()
        assert _payload_fields(arg) == {"s"}
        assert DeviceOption.FromString(arg.s) == device

    def test_message_with_unset_required_field(self):
        Required = required_field_message_class()
        arg = make_argument("partial", Required(note="no id"))
        assert Required.FromString(arg.s).note == "no id"

    def test_repeated_floats_preserve_order(self):
        arg = make_argument("scales", [0.5, 2.0, 1.25])
        assert list(arg.floats) == [0.5, 2.0, 1.25]
        assert _payload_fields(arg) == {"floats"}
        assert argument_kind(arg) is ArgumentKind.FLOATS

    def test_repeated_ints_preserve_order(self):
        arg = make_argument("xs", [1, 2, 3])
        assert list(arg.ints) == [1, 2, 3]
        assert _payload_fields(arg) == {"ints"}
        assert argument_kind(arg) is ArgumentKind.INTS

        assert list(make_argument("xs", (3, 1, 2)).ints) == [3, 1, 2]

    def test_repeated_mixed_numbers_are_floats(self):
        arg = make_argument("mixed", [1, 2.5, 3])
        assert list(arg.floats) == [1.0, 2.5, 3.0]
        assert _payload_fields(arg) == {"floats"}

    def test_repeated_strings_preserve_order(self):
        arg = make_argument("names", ["b", "a", b"c"])
        assert list(arg.strings) == [b"b", b"a", b"c"]
        assert _payload_fields(arg) == {"strings"}
        assert argument_kind(arg) is ArgumentKind.STRINGS

    def test_repeated_from_generator(self):
        arg = make_argument("squares", (i * i for i in range(4)))
        assert list(arg.ints) == [0, 1, 4, 9]

    def test_empty_sequence_is_name_only(self):
        arg = make_argument("empty", [])
        assert arg.name == "empty"
        assert _payload_fields(arg) == set()
        assert argument_kind(arg) is None
        assert argument_value(arg) is None

    def test_empty_name_allowed(self):
        assert make_argument("", 1).name == ""

    def test_unsupported_type(self):
        with pytest.raises(TypeError, match="of type dict not one of"):
            make_argument("bad", {"a": 1})
        with pytest.raises(TypeError, match="of type NoneType not one of"):
            make_argument("bad", None)  # type: ignore[arg-type]
        with pytest.raises(TypeError, match="of type set not one of"):
            make_argument("bad", {1, 2})

    def test_mixed_list(self):
        with pytest.raises(TypeError, match="not all float, all int, or all str"):
            make_argument("bad", [1, "a"])

    def test_number_types(self):
        # Any real number becomes a float
        arg = make_argument("ratio", Fraction(1, 4))
        assert arg.f == 0.25


def test_explicit_constructors():
    assert make_float_argument("f", 1).f == 1.0
    assert _payload_fields(make_float_argument("f", 1)) == {"f"}
    assert make_int_argument("i", 7).i == 7
    assert make_string_argument("s", "abc").s == b"abc"
    assert make_bytes_argument("b", bytearray(b"xy")).s == b"xy"
    device = DeviceOption(device_type=2)
    assert make_message_argument("m", device).s == device.SerializeToString()
    assert list(make_floats_argument("fs", [1, 2]).floats) == [1.0, 2.0]
    assert list(make_ints_argument("is", [True, 5]).ints) == [1, 5]
    assert list(make_strings_argument("ss", ["a", b"b"]).strings) == [b"a", b"b"]
    # Explicit constructors never infer a kind, even when empty
    assert _payload_fields(make_ints_argument("none", [])) == set()


def test_argument_value():
    assert argument_value(make_argument("f", 0.5)) == 0.5
    assert argument_value(make_argument("i", 9)) == 9
    assert argument_value(make_argument("s", "v")) == b"v"
    assert argument_value(make_argument("xs", [1, 2])) == [1, 2]
    assert argument_value(make_argument("fs", [0.5])) == [0.5]
    assert argument_value(make_argument("ss", ["a"])) == [b"a"]
    assert ArgumentKind.FLOATS.field_name == "floats"


def test_get_argument(op_def: OperatorDef):
    arg = get_argument(op_def, "stride")
    assert arg.i == 1
    # The returned argument is the descriptor's own entry
    arg.i = 2
    assert op_def.arg[1].i == 2


def test_get_argument_first_match_wins():
    op = OperatorDef(arg=[make_argument("a", 1), make_argument("a", 2)])
    assert get_argument(op, "a").i == 1
    assert get_or_create_argument(op, "a", False).i == 1


def test_get_argument_on_net_def(net_def: NetDef):
    assert get_argument(net_def, "scale").f == 0.5


def test_get_argument_missing_is_fatal(op_def: OperatorDef, fatal_capturer: FatalCapturer):
    with pytest.raises(FatalError) as excinfo:
        get_argument(op_def, "absent", fatal_reporter=fatal_capturer)
    assert str(excinfo.value) == "Argument named absent does not exist."
    assert fatal_capturer.messages == ["Argument named absent does not exist."]


def test_get_argument_missing_logs_critical(op_def: OperatorDef):
    with LogCapturer().logs_captured(logging.getLogger("opgraph")) as capturer:
        with pytest.raises(FatalError):
            get_argument(op_def, "absent")
    record = capturer.find_log("Argument named absent does not exist.")
    assert record
    assert record.levelno == logging.CRITICAL


def test_get_argument_missing_with_exit_reporter(op_def: OperatorDef):
    from opgraph.fatal import exit_process

    with pytest.raises(SystemExit):
        get_argument(op_def, "absent", fatal_reporter=exit_process)


def test_get_or_create_argument_existing(op_def: OperatorDef):
    before = len(op_def.arg)
    arg = get_or_create_argument(op_def, "kernel", True)
    assert arg is not None
    assert arg.i == 3
    assert len(op_def.arg) == before


def test_get_or_create_argument_missing_without_create(op_def: OperatorDef):
    before = len(op_def.arg)
    assert get_or_create_argument(op_def, "missing", False) is None
    assert len(op_def.arg) == before


def test_get_or_create_argument_creates_once(op_def: OperatorDef):
    before = len(op_def.arg)
    arg = get_or_create_argument(op_def, "missing", True)
    assert arg is not None
    assert arg.name == "missing"
    assert _payload_fields(arg) == set()
    assert len(op_def.arg) == before + 1
    assert op_def.arg[-1].name == "missing"

    arg.f = 1.5
    again = get_or_create_argument(op_def, "missing", True)
    assert again is not None
    assert again.f == 1.5
    assert len(op_def.arg) == before + 1
    assert get_argument(op_def, "missing").f == 1.5


def test_get_mutable_argument_alias():
    op = OperatorDef()
    arg = get_mutable_argument(op, "axis", True)
    assert arg is not None
    arg.i = -1
    assert op.arg[0] == Argument(name="axis", i=-1)


def test_has_argument(op_def: OperatorDef):
    assert has_argument(op_def, "kernel")
    assert not has_argument(op_def, "absent")
    assert not has_argument(OperatorDef(), "")
