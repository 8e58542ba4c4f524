"""Error types raised inside the generation pipeline."""


class BridgeError(Exception):
    """Base class for img2img bridge errors."""


class RequestBuildError(BridgeError):
    """The request could not be assembled from the current inputs."""


class PayloadError(BridgeError):
    """A JSON envelope or image payload could not be decoded."""


class WorkflowBusyError(BridgeError):
    """A generation is already in flight for this node."""


class NetworkError(BridgeError):
    """Network error with status code and details."""

    def __init__(
        self,
        code: int,
        message: str,
        url: str,
        status: int | None = None,
        data: dict | None = None,
    ):
        self.code = code
        self.message = message
        self.url = url
        self.status = status
        self.data = data
        super().__init__(message)

    def __str__(self):
        return self.message
