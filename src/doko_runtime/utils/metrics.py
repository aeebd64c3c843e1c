"""Prometheus metrics for commands, node requests and the HTTP API."""

from prometheus_client import Counter, Histogram

COMMANDS_TOTAL = Counter(
    "doko_commands_total",
    "External commands run",
    ["tool", "status"],
)

COMMAND_DURATION = Histogram(
    "doko_command_duration_seconds",
    "External command duration",
    ["tool"],
)

NODE_REQUESTS_TOTAL = Counter(
    "doko_node_requests_total",
    "Requests sent to the Aleo node API",
    ["operation", "status"],
)

HTTP_REQUESTS_TOTAL = Counter(
    "doko_http_requests_total",
    "HTTP requests served by the API",
    ["method", "endpoint", "status"],
)

HTTP_REQUEST_DURATION = Histogram(
    "doko_http_request_duration_seconds",
    "HTTP request duration",
    ["method", "endpoint"],
)
