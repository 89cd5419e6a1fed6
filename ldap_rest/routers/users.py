from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Response, status

from ..ad import Credentials, UserService
from ..deps import get_credentials, get_user_service
from ..errors import NotFoundError

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/dn/{distinguished_name:path}")
def get_user_by_dn(
    distinguished_name: str,
    creds: Credentials = Depends(get_credentials),
    users: UserService = Depends(get_user_service),
):
    """Look up a user by full DN (e.g. ``CN=John Smith,OU=Users,DC=example,DC=com``)."""
    user = users.find_by_distinguished_name(distinguished_name, creds)
    if user is None:
        raise NotFoundError("No user at that distinguished name.")
    return user.as_dict()


@router.get("/{sam_account_name}")
def get_user(
    sam_account_name: str,
    creds: Credentials = Depends(get_credentials),
    users: UserService = Depends(get_user_service),
):
    user = users.find_by_sam_account_name(sam_account_name, creds)
    if user is None:
        raise NotFoundError(f"User '{sam_account_name}' not found.")
    return user.as_dict()


@router.patch("/{sam_account_name}", status_code=status.HTTP_204_NO_CONTENT)
def update_user(
    sam_account_name: str,
    body: Any = Body(...),
    creds: Credentials = Depends(get_credentials),
    users: UserService = Depends(get_user_service),
):
    """Modify allowed attributes; ``null`` or ``""`` removes an attribute.

    Writable: company, department, description, displayname, givenname, sn,
    enabled (bool).
    """
    users.update(sam_account_name, body, creds)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
