from typing import Optional

INVALID_REQUEST_FORMAT = "Invalid request format"
IMAGE_REQUIRED = "image_base64 is required"
CAPTION_FAILED = "Failed to generate caption"


class RelayError(Exception):
    """Base error carrying the status code and the message shown to the client."""

    status_code = 500
    message = CAPTION_FAILED

    def __init__(self, detail: str = "", message: Optional[str] = None):
        super().__init__(detail or message or self.message)
        self.detail = detail
        if message is not None:
            self.message = message


class ClientInputError(RelayError):
    """Malformed body, missing field or empty image. No downstream call is made."""

    status_code = 400
    message = INVALID_REQUEST_FORMAT


class CaptionServiceError(RelayError):
    """Any failure reaching or understanding the captioning service."""

    status_code = 500
    message = CAPTION_FAILED


class DownstreamUnavailable(CaptionServiceError):
    """Transport failure or timeout."""


class DownstreamProtocolError(CaptionServiceError):
    """Non-200 status or unparseable body."""

    def __init__(
        self,
        detail: str,
        status_code_received: Optional[int] = None,
        body: str = "",
    ):
        super().__init__(detail)
        self.status_code_received = status_code_received
        self.body = body
