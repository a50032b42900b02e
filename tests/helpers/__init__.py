import logging
import logging.handlers
import queue
from contextlib import contextmanager
from typing import Iterator, List, Optional, Type, cast

import google.protobuf.descriptor_pb2
import google.protobuf.descriptor_pool
import google.protobuf.message

from opgraph.proto._graph import message_classes, register_file


class FatalCapturer:
    """Fatal reporter that records messages instead of terminating."""

    def __init__(self) -> None:
        self.messages: List[str] = []

    def __call__(self, message: str) -> None:
        self.messages.append(message)


class LogCapturer:
    def __init__(self) -> None:
        self.log_queue: queue.Queue[logging.LogRecord] = queue.Queue()

    @contextmanager
    def logs_captured(self, *loggers: logging.Logger) -> Iterator["LogCapturer"]:
        handler = logging.handlers.QueueHandler(self.log_queue)

        prev_levels = [l.level for l in loggers]
        for l in loggers:
            l.setLevel(logging.DEBUG)
            l.addHandler(handler)
        try:
            yield self
        finally:
            for i, l in enumerate(loggers):
                l.removeHandler(handler)
                l.setLevel(prev_levels[i])

    def find_log(self, starts_with: str) -> Optional[logging.LogRecord]:
        for record in cast(List[logging.LogRecord], self.log_queue.queue):
            if record.message.startswith(starts_with):
                return record
        return None


def required_field_message_class() -> Type[google.protobuf.message.Message]:
    """Build a proto2 message with one required field in a private pool."""
    _Field = google.protobuf.descriptor_pb2.FieldDescriptorProto
    file = google.protobuf.descriptor_pb2.FileDescriptorProto(
        name="opgraph_test/required.proto", package="opgraph_test", syntax="proto2"
    )
    msg = file.message_type.add(name="Required")
    msg.field.add(
        name="id", number=1, type=_Field.TYPE_INT32, label=_Field.LABEL_REQUIRED
    )
    msg.field.add(
        name="note", number=2, type=_Field.TYPE_STRING, label=_Field.LABEL_OPTIONAL
    )
    pool = google.protobuf.descriptor_pool.DescriptorPool()
    return message_classes(register_file(file, pool))["Required"]
