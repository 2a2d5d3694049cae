from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import settings

# Slack calls from a small pool of addresses; this is a flood guard for the
# intake endpoint, not a per-user quota.
limiter = Limiter(key_func=get_remote_address)
intake_limit = settings.INTAKE_RATE_LIMIT
