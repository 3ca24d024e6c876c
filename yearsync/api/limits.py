"""Request rate limiting."""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)

# Deleting cloud data is destructive and hits the Drive API twice
CLOUD_DELETE_LIMIT = "5/minute"
