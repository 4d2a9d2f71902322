from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import settings


limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit],
    enabled=settings.rate_limit_enabled,
)

# Per-route budgets, per client IP
AUTH_VERIFY_LIMIT = "10/minute"
REGISTER_LIMIT = "5/minute"
WRITE_LIMIT = "10/minute"
SCAN_LIMIT = "20/minute"
CALL_LIMIT = "5/minute"
ALERT_LIMIT = "3/minute"
