import hmac
from typing import Annotated

from fastapi import HTTPException, status
from fastapi.params import Security
from fastapi.security import APIKeyHeader

from edufund_api.config import settings


api_key_header_scheme = APIKeyHeader(name="x-api-key", auto_error=False)


def get_operator_api_key(api_key_header: Annotated[str | None, Security(api_key_header_scheme)]) -> str:
    """Retrieve and validate the operator API key from the HTTP header.

    Operator endpoints (manual mint retry, stuck mint queue) are disabled when
    no operator key is configured.

    Args:
        api_key_header: The API key passed in the ``x-api-key`` header.

    Returns:
        The validated API key.

    Raises:
        HTTPException: If the API key is invalid or missing.
    """
    key = settings.operator_api_key
    if not api_key_header:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing API Key")
    if key and hmac.compare_digest(api_key_header, key):
        return api_key_header
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or missing API Key")
