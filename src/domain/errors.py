from __future__ import annotations


class InvalidOperation(ValueError):
    """Raised when a raw operation dict does not match the operation catalog."""


class UnknownOperation(InvalidOperation):
    pass


class PlanningError(RuntimeError):
    """Base class for planner failures that end in an empty plan set."""


class NoApiKeyConfigured(PlanningError):
    pass


class UpstreamRequestFailed(PlanningError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ToolCallMissing(PlanningError):
    pass


class ArgumentsUnparsable(PlanningError):
    pass


class ImageGenerationError(RuntimeError):
    """Base class for failures of the external image model."""


class ImageModelUnavailable(ImageGenerationError):
    pass


class NoImageReturned(ImageGenerationError):
    pass


class InvalidResponseFormat(ImageGenerationError):
    pass


class CacheUnavailable(RuntimeError):
    pass
