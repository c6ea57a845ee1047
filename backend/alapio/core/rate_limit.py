# alapio/core/rate_limit.py

from slowapi import Limiter
from slowapi.util import get_remote_address

from alapio.config import settings

# Keyed by client address; in-memory storage, per process
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

LOGIN_LIMIT = settings.login_rate_limit
