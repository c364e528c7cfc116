"""Resolution of the calling user's identity.

Authentication itself happens upstream; requests reach this service with the
already-verified user id in the ``X-User-Id`` header.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header

from barter.errors import AuthError


def current_user_id(
    x_user_id: Annotated[str | None, Header()] = None,
) -> str | None:
    """FastAPI dependency returning the resolved user id, if any."""

    if x_user_id is None or not x_user_id.strip():
        return None
    return x_user_id.strip()


def require_user_id(
    user_id: Annotated[str | None, Depends(current_user_id)],
) -> str:
    if user_id is None:
        raise AuthError()
    return user_id


CurrentUserDependency = Annotated[str | None, Depends(current_user_id)]
RequiredUserDependency = Annotated[str, Depends(require_user_id)]
