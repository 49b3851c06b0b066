"""Shared slowapi limiter, keyed by client address."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from raxnet.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)
