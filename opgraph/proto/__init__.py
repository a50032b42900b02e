from ._graph import DESCRIPTOR
from ._graph import Argument
from ._graph import DeviceOption
from ._graph import NetDef
from ._graph import OperatorDef

__all__ = [
    "Argument",
    "DESCRIPTOR",
    "DeviceOption",
    "NetDef",
    "OperatorDef",
]
