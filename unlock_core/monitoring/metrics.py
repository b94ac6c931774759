from prometheus_client import Counter, Gauge, Histogram, Info
from prometheus_fastapi_instrumentator import Instrumentator

# Business metrics
confirm_requests_total = Counter(
    "handcart_confirm_requests_total",
    "Confirm-and-unlock requests by outer result code",
    ["service", "code"],
)

unlock_commands_total = Counter(
    "handcart_unlock_commands_total",
    "Hardware unlock commands issued to the vendor",
    ["service", "outcome"],  # outcome=success/failed
)

order_transitions_total = Counter(
    "handcart_order_transitions_total",
    "Order status transitions",
    ["service", "from_status", "to_status"],
)

# Technical metrics
circuit_breaker_state = Gauge(
    "handcart_circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open, 2=half_open)",
    ["service", "circuit_name"],
)

circuit_breaker_failures = Counter(
    "handcart_circuit_breaker_failures_total",
    "Total circuit breaker failures",
    ["service", "circuit_name"],
)

external_api_duration = Histogram(
    "handcart_external_api_duration_seconds",
    "External API request duration",
    ["service", "api_service", "endpoint"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

app_info = Info("handcart_app_info", "Application information")


def setup_instrumentator() -> Instrumentator:
    return Instrumentator(
        should_group_status_codes=False,
        should_ignore_untemplated=True,
        should_respect_env_var=False,
        should_instrument_requests_inprogress=True,
        excluded_handlers=["/metrics", "/api/v1/health"],
        inprogress_name="http_requests_inprogress",
        inprogress_labels=True,
    )


def init_app_info(version: str = "1.0.0"):
    app_info.info({"version": version, "service": "unlock-core", "component": "api"})
