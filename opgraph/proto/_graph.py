"""Descriptor for the opgraph graph schema.

The schema is declared as a ``FileDescriptorProto`` and registered in the
default descriptor pool the same way ``protoc`` generated modules register
theirs, so the message classes produced here support the full protobuf API
including the text format.
"""

from __future__ import annotations

from typing import Dict, Optional, Type

import google.protobuf.descriptor
import google.protobuf.descriptor_pb2
import google.protobuf.descriptor_pool
import google.protobuf.message
import google.protobuf.message_factory

_Field = google.protobuf.descriptor_pb2.FieldDescriptorProto

_OPTIONAL = _Field.LABEL_OPTIONAL
_REPEATED = _Field.LABEL_REPEATED


def _add_field(
    message: google.protobuf.descriptor_pb2.DescriptorProto,
    name: str,
    number: int,
    type: int,
    *,
    label: int = _OPTIONAL,
    type_name: Optional[str] = None,
) -> None:
    field = message.field.add(name=name, number=number, type=type, label=label)
    if type_name:
        field.type_name = type_name


def build_file_proto() -> google.protobuf.descriptor_pb2.FileDescriptorProto:
    """Build the ``opgraph/graph.proto`` file descriptor."""
    file = google.protobuf.descriptor_pb2.FileDescriptorProto(
        name="opgraph/graph.proto", package="opgraph", syntax="proto2"
    )

    # A named variant. Exactly one payload is expected to be set, chosen by
    # the constructor that created it.
    arg = file.message_type.add(name="Argument")
    _add_field(arg, "name", 1, _Field.TYPE_STRING)
    _add_field(arg, "f", 2, _Field.TYPE_FLOAT)
    _add_field(arg, "i", 3, _Field.TYPE_INT64)
    _add_field(arg, "s", 4, _Field.TYPE_BYTES)
    _add_field(arg, "floats", 5, _Field.TYPE_FLOAT, label=_REPEATED)
    _add_field(arg, "ints", 6, _Field.TYPE_INT64, label=_REPEATED)
    _add_field(arg, "strings", 7, _Field.TYPE_BYTES, label=_REPEATED)

    device = file.message_type.add(name="DeviceOption")
    _add_field(device, "device_type", 1, _Field.TYPE_INT32)
    _add_field(device, "cuda_gpu_id", 2, _Field.TYPE_INT32)
    _add_field(device, "random_seed", 3, _Field.TYPE_UINT32)

    op = file.message_type.add(name="OperatorDef")
    _add_field(op, "input", 1, _Field.TYPE_STRING, label=_REPEATED)
    _add_field(op, "output", 2, _Field.TYPE_STRING, label=_REPEATED)
    _add_field(op, "name", 3, _Field.TYPE_STRING)
    _add_field(op, "type", 4, _Field.TYPE_STRING)
    _add_field(
        op,
        "arg",
        5,
        _Field.TYPE_MESSAGE,
        label=_REPEATED,
        type_name=".opgraph.Argument",
    )
    _add_field(
        op, "device_option", 6, _Field.TYPE_MESSAGE, type_name=".opgraph.DeviceOption"
    )
    _add_field(op, "engine", 7, _Field.TYPE_STRING)

    net = file.message_type.add(name="NetDef")
    _add_field(net, "name", 1, _Field.TYPE_STRING)
    _add_field(
        net,
        "op",
        2,
        _Field.TYPE_MESSAGE,
        label=_REPEATED,
        type_name=".opgraph.OperatorDef",
    )
    _add_field(net, "net_type", 3, _Field.TYPE_STRING)
    _add_field(net, "num_workers", 4, _Field.TYPE_INT32)
    _add_field(
        net, "device_option", 5, _Field.TYPE_MESSAGE, type_name=".opgraph.DeviceOption"
    )
    _add_field(
        net,
        "arg",
        6,
        _Field.TYPE_MESSAGE,
        label=_REPEATED,
        type_name=".opgraph.Argument",
    )
    _add_field(net, "external_input", 7, _Field.TYPE_STRING, label=_REPEATED)
    _add_field(net, "external_output", 8, _Field.TYPE_STRING, label=_REPEATED)
    return file


def register_file(
    file_proto: google.protobuf.descriptor_pb2.FileDescriptorProto,
    pool: Optional[google.protobuf.descriptor_pool.DescriptorPool] = None,
) -> google.protobuf.descriptor.FileDescriptor:
    """Add a file descriptor to a pool, the default pool if none is given."""
    pool = pool or google.protobuf.descriptor_pool.Default()
    return pool.AddSerializedFile(file_proto.SerializeToString())


def message_classes(
    file: google.protobuf.descriptor.FileDescriptor,
) -> Dict[str, Type[google.protobuf.message.Message]]:
    """Concrete message classes for every top-level message in a file."""
    return {
        name: google.protobuf.message_factory.GetMessageClass(desc)
        for name, desc in file.message_types_by_name.items()
    }


DESCRIPTOR = register_file(build_file_proto())

_classes = message_classes(DESCRIPTOR)

Argument = _classes["Argument"]
DeviceOption = _classes["DeviceOption"]
OperatorDef = _classes["OperatorDef"]
NetDef = _classes["NetDef"]
