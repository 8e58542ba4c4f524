"""Core module containing framework-agnostic node logic."""
from .codec import GenerationInfo, Img2ImgRequest, Img2ImgResponse
from .errors import BridgeError, NetworkError, PayloadError, RequestBuildError, WorkflowBusyError
from .node import Img2ImgNode
from .ports import ControlNetData, InputSnapshot, NodePorts, OutputStore, Prompt
from .request_builder import RequestBuilder
from .seed import SeedSource
from .transport import PendingResponse, TransportClient
from .workflow import GenerationWorkflow, ProgressReporter, WorkflowState

__all__ = [
    # Node
    "Img2ImgNode",
    "NodePorts",
    "OutputStore",
    "InputSnapshot",
    "Prompt",
    "ControlNetData",
    # Pipeline
    "SeedSource",
    "RequestBuilder",
    "TransportClient",
    "PendingResponse",
    "GenerationWorkflow",
    "WorkflowState",
    "ProgressReporter",
    # Payloads
    "Img2ImgRequest",
    "Img2ImgResponse",
    "GenerationInfo",
    # Errors
    "BridgeError",
    "NetworkError",
    "PayloadError",
    "RequestBuildError",
    "WorkflowBusyError",
]
