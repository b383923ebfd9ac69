"""Prometheus metrics definitions."""

from prometheus_client import Counter, Histogram

# =============================================================================
# Histogram Buckets
# =============================================================================
# FAST: DB round trips and hash verification (1ms ~ 5s)
_BUCKETS_FAST = (
    0.001, 0.002, 0.005, 0.01, 0.02,
    0.05, 0.1, 0.2, 0.5, 1,
    2, 5,
)  # 12 buckets

# =============================================================================
# HTTP Metrics
# =============================================================================

HTTP_REQUESTS_TOTAL = Counter(
    "cafeauth_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

HTTP_REQUEST_DURATION = Histogram(
    "cafeauth_http_request_duration_seconds",
    "HTTP request duration",
    ["method", "endpoint"],
    buckets=_BUCKETS_FAST,
)

# =============================================================================
# Authentication Metrics
# =============================================================================
# outcome: LoginOutcome values (success, invalid, locked, cooldown, rejected, error)

LOGIN_ATTEMPTS_TOTAL = Counter(
    "cafeauth_login_attempts_total",
    "Login attempts by outcome",
    ["outcome"],
)

LOCKOUTS_TOTAL = Counter(
    "cafeauth_lockouts_total",
    "Lockouts started by the cooldown policy",
)

SESSIONS_CREATED_TOTAL = Counter(
    "cafeauth_sessions_created_total",
    "Sessions issued",
)

SESSIONS_SWEPT_TOTAL = Counter(
    "cafeauth_sessions_swept_total",
    "Expired sessions deactivated by the sweeper",
)
