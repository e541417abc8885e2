from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from .models import UserEntity
from .repositories import Store, get_store

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-Id"


# PUBLIC_INTERFACE
def get_current_user(
    x_user_id: Optional[str] = Header(default=None, alias=USER_ID_HEADER),
    store: Store = Depends(get_store),
) -> UserEntity:
    """
    Resolve the caller from the identity header set by the gateway.

    The gateway authenticates credentials; this dependency only checks that
    the id it forwarded belongs to a registered user.

    Raises:
        HTTPException(401) if the header is missing or the user is unknown.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    user = store.users.get(x_user_id.strip())
    if user is None:
        logger.warning("Rejected request for unknown user id %s", x_user_id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        )
    return user
