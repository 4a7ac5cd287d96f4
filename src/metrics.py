from prometheus_client import Counter, Gauge, Histogram

# === Common HTTP Metrics ===

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "endpoint", "method", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["service", "endpoint", "method"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

service_health_status = Gauge(
    "service_health_status",
    "Current health status of the service (2=healthy, 1=degraded, 0=down)",
    ["service"],
)

# === Relay Metrics ===

relay_caption_service_duration_seconds = Histogram(
    "relay_caption_service_duration_seconds",
    "Captioning service call duration in seconds",
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0],
)

relay_caption_requests_total = Counter(
    "relay_caption_requests_total",
    "Caption requests handled by the relay",
    ["outcome"],
)

relay_fallback_captions_total = Counter(
    "relay_fallback_captions_total",
    "Responses where the captioning service returned an empty caption",
)

relay_errors_total = Counter(
    "relay_errors_total",
    "Total errors in the relay",
    ["error_type"],
)
