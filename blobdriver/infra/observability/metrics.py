from prometheus_client import Counter, Histogram, make_asgi_app

# Route labels use the route template (e.g. /api/v1/content/{path:path}) to
# keep cardinality low
REQUESTS = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "route", "status"],
)

LATENCY = Histogram(
    "http_request_duration_seconds",
    "Request latency in seconds",
    ["method", "route"],
)

PARTS_UPLOADED = Counter(
    "storage_parts_uploaded_total",
    "Multipart parts uploaded by stream writes",
)

BYTES_UPLOADED = Counter(
    "storage_bytes_uploaded_total",
    "Bytes uploaded as multipart parts by stream writes",
)

STREAM_WRITES = Counter(
    "storage_stream_writes_total",
    "Stream writes by outcome",
    ["outcome"],
)

# ASGI app served at /metrics
metrics_app = make_asgi_app()
