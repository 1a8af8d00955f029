"""
Error taxonomy for the classification core
"""


class WasteScanError(Exception):
    """Base class for errors carrying a user-facing message"""

    default_message = "Waste classification failed"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ModelLoadError(WasteScanError):
    """The classifier could not be initialized. Retryable."""

    default_message = (
        "Failed to initialize local AI engine. "
        "Check your internet for the initial download."
    )


class DecodeError(WasteScanError):
    """A still image could not be decoded"""

    default_message = "Failed to process image file"


class DeviceAccessError(WasteScanError):
    """The capture device could not be acquired"""

    default_message = "Camera access blocked. Please enable permissions and refresh."


class InferenceError(WasteScanError):
    """A single inference attempt failed after the model was ready"""

    default_message = "Neural analysis failed"
