"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in both api/main.py (to mount as middleware) and the route modules
(to apply per-route limits with @limiter.limit()).

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.

The login limit comes from Settings.login_rate_limit of the app serving the
request. slowapi passes a dynamic limit provider the result of its key
function, so login_key() folds the configured limit into the counter key and
login_limit() reads it back. Two apps with different limits never share a
counter and nothing is stored at module level.
"""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")

_SEP = "|"


def login_key(request: Request) -> str:
    """Counter key for login attempts: '<configured limit>|<client address>'."""
    return f"{request.app.state.settings.login_rate_limit}{_SEP}{get_remote_address(request)}"


def login_limit(key: str) -> str:
    return key.split(_SEP, 1)[0]
