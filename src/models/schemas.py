from typing import Optional

from pydantic import BaseModel, Field


class CaptionRequest(BaseModel):
    """Inbound image to caption"""

    image_base64: str = Field(..., description="Base64-encoded image data")


class CaptionResult(BaseModel):
    """Body returned by the captioning service"""

    caption: Optional[str] = Field(None, description="Generated caption, may be empty")


class CaptionResponse(BaseModel):
    """Caption returned to the client"""

    caption: str = Field(..., description="Generated caption, never empty")


class ErrorResponse(BaseModel):
    """Error body returned to the client"""

    error: str = Field(..., description="Client-facing error message")


class HealthResponse(BaseModel):
    status: str = "healthy"
