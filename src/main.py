import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi import Request as FastAPIRequest
from fastapi import Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from src.clients.caption import CaptionClient, HttpCaptionClient
from src.config import Config
from src.errors import CaptionServiceError, RelayError
from src.logging_utils import (
    StructuredLogger,
    generate_request_id,
    get_logs_by_request_id,
)
from src.metrics import (
    http_request_duration_seconds,
    http_requests_total,
    relay_errors_total,
    service_health_status,
)
from src.models.schemas import (
    CaptionRequest,
    CaptionResponse,
    ErrorResponse,
    HealthResponse,
)
from src.services.relay.service import read_body_limited, relay_caption

SERVICE_NAME = "caption_relay"

logger = StructuredLogger(SERVICE_NAME)


def create_app(
    caption_client: Optional[CaptionClient] = None,
    allowed_origin: str = Config.CORS.ALLOWED_ORIGIN,
    max_body_bytes: int = Config.LIMITS.MAX_REQUEST_BYTES,
) -> FastAPI:
    """
    Build the relay application.

    Args:
        caption_client: Captioning collaborator. Defaults to an HttpCaptionClient
            pointed at Config.CAPTION_SERVICE, closed on shutdown.
        allowed_origin: The single origin allowed by CORS
        max_body_bytes: Largest accepted /process body

    Returns:
        Configured FastAPI app
    """
    owned_client: Optional[HttpCaptionClient] = None
    if caption_client is None:
        owned_client = HttpCaptionClient(
            Config.CAPTION_SERVICE.URL, Config.CAPTION_SERVICE.TIMEOUT
        )
        caption_client = owned_client
    client: CaptionClient = caption_client

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Starting relay",
            context={
                "caption_client": type(client).__name__,
                "allowed_origin": allowed_origin,
                "max_body_bytes": max_body_bytes,
            },
        )
        service_health_status.labels(service=SERVICE_NAME).set(2)

        yield

        logger.info("Shutting down...")
        if owned_client is not None:
            await owned_client.aclose()
        service_health_status.labels(service=SERVICE_NAME).set(0)

    app = FastAPI(title="Caption Relay", lifespan=lifespan)

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: FastAPIRequest, exc: RelayError):
        relay_errors_total.labels(error_type=type(exc).__name__).inc()
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=exc.message).model_dump(),
        )

    # Registered first so it runs inside the logging middleware
    @app.middleware("http")
    async def cors_middleware(request: FastAPIRequest, call_next):
        """Fixed-origin CORS headers on every response; OPTIONS short-circuits with 204."""
        cors_headers = {
            "Access-Control-Allow-Origin": allowed_origin,
            "Access-Control-Allow-Credentials": "true",
            "Access-Control-Allow-Headers": Config.CORS.ALLOW_HEADERS,
            "Access-Control-Allow-Methods": Config.CORS.ALLOW_METHODS,
        }

        if request.method == "OPTIONS":
            return Response(status_code=204, headers=cors_headers)

        response = await call_next(request)
        response.headers.update(cors_headers)
        return response

    @app.middleware("http")
    async def logging_and_metrics_middleware(request: FastAPIRequest, call_next):
        """Log requests and record HTTP metrics."""
        request_id = request.headers.get("x-request-id") or generate_request_id()
        start_time = time.time()

        is_metrics_endpoint = request.url.path == "/metrics"

        if not is_metrics_endpoint:
            logger.info(
                "Incoming request",
                context={
                    "endpoint": request.url.path,
                    "method": request.method,
                    "client": request.client.host if request.client else "unknown",
                },
                request_id=request_id,
            )

        request.state.request_id = request_id

        try:
            response = await call_next(request)
            duration = time.time() - start_time

            if not is_metrics_endpoint:
                http_requests_total.labels(
                    service=SERVICE_NAME,
                    endpoint=request.url.path,
                    method=request.method,
                    status=response.status_code,
                ).inc()

                http_request_duration_seconds.labels(
                    service=SERVICE_NAME,
                    endpoint=request.url.path,
                    method=request.method,
                ).observe(duration)

            if not (is_metrics_endpoint and response.status_code == 200):
                logger.info(
                    "Request completed",
                    context={
                        "endpoint": request.url.path,
                        "method": request.method,
                        "status_code": response.status_code,
                        "duration_seconds": round(duration, 3),
                    },
                    request_id=request_id,
                )

            response.headers["X-Request-ID"] = request_id
            return response

        except Exception as e:
            duration = time.time() - start_time

            if not is_metrics_endpoint:
                http_requests_total.labels(
                    service=SERVICE_NAME,
                    endpoint=request.url.path,
                    method=request.method,
                    status=500,
                ).inc()

                http_request_duration_seconds.labels(
                    service=SERVICE_NAME,
                    endpoint=request.url.path,
                    method=request.method,
                ).observe(duration)

                relay_errors_total.labels(error_type=type(e).__name__).inc()

            logger.error(
                "Request failed",
                context={
                    "endpoint": request.url.path,
                    "method": request.method,
                    "error": str(e),
                    "duration_seconds": round(duration, 3),
                },
                request_id=request_id,
            )
            raise

    @app.get("/health", response_model=HealthResponse)
    async def health():
        """Health check; never consults the captioning service."""
        return HealthResponse(status="healthy")

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint"""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/logs/{request_id}")
    async def get_logs(request_id: str):
        """Get logs for a specific request ID"""
        logs = get_logs_by_request_id(request_id)
        return {"request_id": request_id, "logs": logs, "count": len(logs)}

    @app.post(
        "/process",
        response_model=CaptionResponse,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
        openapi_extra={
            "requestBody": {
                "required": True,
                "content": {
                    "application/json": {"schema": CaptionRequest.model_json_schema()}
                },
            }
        },
    )
    async def process_image(fastapi_request: FastAPIRequest):
        """
        Caption a base64-encoded image.

        Body: {"image_base64": "<string>"}. The body is read under the size
        cap, validated, then relayed to the captioning service once. Any
        downstream failure is reported as a generic 500.
        """
        request_id = getattr(
            fastapi_request.state, "request_id", generate_request_id()
        )

        try:
            body = await read_body_limited(fastapi_request, max_body_bytes, request_id)
            return await relay_caption(body, client, request_id)
        except RelayError:
            raise
        except Exception as e:
            logger.error(
                "Unexpected relay failure",
                context={"error": str(e), "error_type": type(e).__name__},
                request_id=request_id,
            )
            raise CaptionServiceError(f"unexpected error: {e}") from e

    return app


app = create_app()
