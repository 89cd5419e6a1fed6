from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from .ad import Credentials, DirectoryConnector, GroupService, UserService

BASIC_REALM = "LDAP-to-REST"

_basic = HTTPBasic(realm=BASIC_REALM, auto_error=False)


def unauthorized(detail: str = "Not authenticated") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": f'Basic realm="{BASIC_REALM}"'},
    )


def get_credentials(basic: HTTPBasicCredentials | None = Depends(_basic)) -> Credentials:
    """Caller's Basic credentials; they are handed to the LDAP bind as-is."""
    if basic is None:
        raise unauthorized("Missing Authorization header")
    if not (basic.username or "").strip() or not (basic.password or "").strip():
        raise unauthorized("Username and password are required")
    return Credentials(username=basic.username, password=basic.password)


def get_connector(request: Request) -> DirectoryConnector:
    return request.app.state.connector


def get_user_service(connector: DirectoryConnector = Depends(get_connector)) -> UserService:
    return UserService(connector)


def get_group_service(connector: DirectoryConnector = Depends(get_connector)) -> GroupService:
    return GroupService(connector)
