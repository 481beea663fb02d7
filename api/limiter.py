"""
api/limiter.py -- The slowapi Limiter shared by the whole app.

api/main.py installs SlowAPIMiddleware and stores this instance on
app.state.limiter; api/routes/v1/auth.py decorates login and registration
with the LOGIN_RATE_LIMIT / REGISTER_RATE_LIMIT strings from Settings.

Counters are per client IP and live in process memory, so each worker
counts on its own.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
