import time

from fastapi import Request
from pydantic import ValidationError
from starlette.requests import ClientDisconnect

from src.clients.caption import CaptionClient
from src.errors import IMAGE_REQUIRED, CaptionServiceError, ClientInputError
from src.logging_utils import StructuredLogger
from src.metrics import (
    relay_caption_requests_total,
    relay_caption_service_duration_seconds,
    relay_fallback_captions_total,
)
from src.models.schemas import CaptionRequest, CaptionResponse

FALLBACK_CAPTION = "No caption generated"

logger = StructuredLogger("relay")


async def read_body_limited(request: Request, max_bytes: int, request_id: str) -> bytes:
    """
    Read the request body, refusing anything larger than max_bytes.

    A declared Content-Length over the limit is rejected before reading. Bodies
    without a usable Content-Length are read chunk by chunk and rejected as soon
    as the running total crosses the limit.

    Raises:
        ClientInputError: If the body exceeds max_bytes or the client
            disconnects mid-body
    """
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > max_bytes:
        logger.warning(
            "Request body too large",
            context={"content_length": declared, "max_bytes": max_bytes},
            request_id=request_id,
        )
        raise ClientInputError(f"declared body size {declared} exceeds {max_bytes}")

    chunks: list[bytes] = []
    received = 0
    try:
        async for chunk in request.stream():
            received += len(chunk)
            if received > max_bytes:
                logger.warning(
                    "Request body too large",
                    context={"received_bytes": received, "max_bytes": max_bytes},
                    request_id=request_id,
                )
                raise ClientInputError(
                    f"body exceeded {max_bytes} bytes while reading"
                )
            chunks.append(chunk)
    except ClientDisconnect as e:
        logger.warning(
            "Client disconnected while sending body",
            context={"received_bytes": received},
            request_id=request_id,
        )
        raise ClientInputError("client disconnected while reading body") from e

    return b"".join(chunks)


def parse_caption_request(body: bytes, request_id: str) -> CaptionRequest:
    """
    Bind a raw body to CaptionRequest and check the image is non-empty.

    Raises:
        ClientInputError: "Invalid request format" for malformed JSON or a
            failed binding, "image_base64 is required" for an empty image
    """
    try:
        caption_request = CaptionRequest.model_validate_json(body)
    except ValidationError as e:
        logger.warning(
            "Invalid request",
            context={"errors": e.error_count(), "first_error": e.errors()[0]["type"]},
            request_id=request_id,
        )
        raise ClientInputError(str(e)) from e

    if len(caption_request.image_base64) == 0:
        logger.warning("Empty image_base64", request_id=request_id)
        raise ClientInputError("image_base64 is empty", message=IMAGE_REQUIRED)

    return caption_request


async def relay_caption(
    body: bytes, caption_client: CaptionClient, request_id: str
) -> CaptionResponse:
    """
    Validate an inbound body, fetch one caption downstream, apply the fallback.

    Exactly one downstream attempt is made, and only after validation passes.

    Args:
        body: Raw request body
        caption_client: Captioning collaborator
        request_id: Request ID for logging and tracing

    Returns:
        CaptionResponse with a non-empty caption

    Raises:
        ClientInputError: Body failed validation
        CaptionServiceError: Downstream call failed
    """
    try:
        caption_request = parse_caption_request(body, request_id)
    except ClientInputError:
        relay_caption_requests_total.labels(outcome="invalid").inc()
        raise

    logger.info(
        "Processing image request",
        context={"size_bytes": len(caption_request.image_base64)},
        request_id=request_id,
    )

    start_time = time.time()
    try:
        caption = await caption_client.get_caption(
            caption_request.image_base64, request_id
        )
    except CaptionServiceError as e:
        relay_caption_requests_total.labels(outcome="failed").inc()
        logger.error(
            "Caption service error",
            context={"error_type": type(e).__name__, "error": e.detail},
            request_id=request_id,
        )
        raise
    finally:
        relay_caption_service_duration_seconds.observe(time.time() - start_time)

    if caption == "":
        relay_fallback_captions_total.inc()
        caption = FALLBACK_CAPTION

    relay_caption_requests_total.labels(outcome="success").inc()
    logger.info(
        "Successfully generated caption",
        context={"caption": caption},
        request_id=request_id,
    )
    return CaptionResponse(caption=caption)
