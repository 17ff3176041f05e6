"""
Error kinds for the face detection request pipeline.

Every stage raises one of these at the point of failure. The request
handler catches FaceDetectionError once and turns the message into the
plain-text response, so messages are written for the caller to read.
"""


class FaceDetectionError(Exception):
    """Base class for all pipeline failures."""


class AcquisitionError(FaceDetectionError):
    """The image could not be fetched or read."""


class UnsupportedFormatError(FaceDetectionError):
    """The sniffed content type is not JPEG or PNG."""

    def __init__(self, content_type: str) -> None:
        self.content_type = content_type
        super().__init__(
            "Only jpeg or png images, either raw uncompressed bytes or base64 "
            f"encoded are acceptable inputs, you uploaded: {content_type}"
        )


class StagingError(FaceDetectionError):
    """The temporary working copy could not be created or written."""


class ModelLoadError(FaceDetectionError):
    """The cascade model artifact is missing or corrupt."""


class DetectionError(FaceDetectionError):
    """The classifier failed on the staged image."""


class RenderError(FaceDetectionError):
    """Drawing or encoding the annotated image failed."""


class SerializationError(FaceDetectionError):
    """The response payload could not be encoded."""
