"""Auth dependency.

Session verification belongs to the identity provider in front of this
service; requests arrive with ``Authorization: Bearer <owner_id>`` once the
provider has resolved the owner. Missing or malformed credentials fail closed.
"""

import re
from typing import Annotated

from fastapi import Header, HTTPException, status

from docchat.db.context import RequestContext

_OWNER_ID = re.compile(r"^[A-Za-z0-9_\-]{1,128}$")


async def get_current_context(
    authorization: Annotated[str | None, Header()] = None,
) -> RequestContext:
    """Extract request context from authorization header.

    Args:
        authorization: Authorization header (e.g., "Bearer user_2abc")

    Returns:
        RequestContext with owner_id

    Raises:
        HTTPException: 401 if the header is missing or invalid
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
            headers={"WWW-Authenticate": "Bearer"},
        )

    owner_id = authorization[7:].strip()  # Strip "Bearer "

    # Owner IDs become blob path segments, so keep them to a safe alphabet
    if not _OWNER_ID.match(owner_id):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid owner identifier",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return RequestContext(owner_id=owner_id)
