"""
Rate Limiting Middleware
Protección contra abuso de la API del ledger (ediciones en ráfaga)
"""
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from config import RATE_LIMIT_DEFAULT, RATE_LIMIT_ENABLED, RATE_LIMIT_STORAGE

# Configurar limiter
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[RATE_LIMIT_DEFAULT],
    storage_uri=RATE_LIMIT_STORAGE,  # Usar Redis con varios workers
    strategy="fixed-window",
    enabled=RATE_LIMIT_ENABLED,
)


def setup_rate_limiting(app):
    """Configurar rate limiting en la aplicación FastAPI"""
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    # default_limits sólo se aplican a través del middleware
    app.add_middleware(SlowAPIMiddleware)

    return limiter
