"""Per-client request limits shared by the routers.

Clients are keyed by remote address. Set SANKEY_PROXY_NO_RATE_LIMIT=true
to switch limiting off (the test suite does).
"""

import os

from slowapi import Limiter
from slowapi.util import get_remote_address

TOKEN_EXCHANGE_LIMIT = "20/minute"
DATA_QUERY_LIMIT = "60/minute"


def limiting_enabled() -> bool:
    return os.environ.get("SANKEY_PROXY_NO_RATE_LIMIT", "").lower() != "true"


limiter = Limiter(key_func=get_remote_address, enabled=limiting_enabled())
