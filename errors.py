class GesturePipelineError(Exception):
    pass


class BindingError(GesturePipelineError):
    """The frame source or the inference service could not be acquired."""


class CameraPermissionError(BindingError):
    pass


class CameraBindingError(BindingError):
    pass


class InferenceBindingError(BindingError):
    pass


class InferenceError(GesturePipelineError):
    """A single pose inference call failed; the next frame is a fresh attempt."""

    def __init__(self, message: str, sequence: int = -1):
        super().__init__(message)
        self.sequence = sequence


class ConfigError(GesturePipelineError, ValueError):
    pass
