import pytest

from opgraph.argument import make_argument
from opgraph.proto import DeviceOption, NetDef, OperatorDef
from tests.helpers import FatalCapturer


@pytest.fixture
def fatal_capturer() -> FatalCapturer:
    return FatalCapturer()


@pytest.fixture
def op_def() -> OperatorDef:
    return OperatorDef(
        name="conv1",
        type="Conv",
        input=["data", "conv1_w", "conv1_b"],
        output=["conv1"],
        engine="CUDNN",
        device_option=DeviceOption(device_type=1, cuda_gpu_id=0),
        arg=[
            make_argument("kernel", 3),
            make_argument("stride", 1),
            make_argument("order", "NCHW"),
            make_argument("pads", [1, 1, 1, 1]),
        ],
    )


@pytest.fixture
def net_def(op_def: OperatorDef) -> NetDef:
    relu = OperatorDef(name="relu1", type="Relu", input=["conv1"], output=["conv1"])
    return NetDef(
        name="tiny_net",
        op=[op_def, relu],
        net_type="simple",
        num_workers=2,
        arg=[make_argument("scale", 0.5)],
        external_input=["data", "conv1_w", "conv1_b"],
        external_output=["conv1"],
    )
