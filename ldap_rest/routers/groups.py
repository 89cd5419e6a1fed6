from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Response, status
from pydantic import BaseModel, Field

from ..ad import Credentials, GroupService
from ..deps import get_credentials, get_group_service
from ..errors import NotFoundError
from ..utils.numbers import DEFAULT_PAGE_SIZE, clamp_page

router = APIRouter(prefix="/api/groups", tags=["groups"])


class AddGroupMemberRequest(BaseModel):
    """DN of the user or group to add (``distinguishedName`` of GET /api/users/{sam})."""

    distinguished_name: str = Field(..., alias="distinguishedName")

    model_config = {"populate_by_name": True}


@router.get("/dn/{distinguished_name:path}")
def get_group_by_dn(
    distinguished_name: str,
    creds: Credentials = Depends(get_credentials),
    groups: GroupService = Depends(get_group_service),
):
    group = groups.find_by_distinguished_name(distinguished_name, creds)
    if group is None:
        raise NotFoundError("No group at that distinguished name.")
    return group.as_dict()


@router.get("/{sam_account_name}")
def get_group(
    sam_account_name: str,
    creds: Credentials = Depends(get_credentials),
    groups: GroupService = Depends(get_group_service),
):
    group = groups.find_by_sam_account_name(sam_account_name, creds)
    if group is None:
        raise NotFoundError(f"Group '{sam_account_name}' not found.")
    return group.as_dict()


@router.patch("/{sam_account_name}", status_code=status.HTTP_204_NO_CONTENT)
def update_group(
    sam_account_name: str,
    body: Any = Body(...),
    creds: Credentials = Depends(get_credentials),
    groups: GroupService = Depends(get_group_service),
):
    """Writable: description, displayname (``null`` removes the value)."""
    groups.update(sam_account_name, body, creds)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{sam_account_name}/members")
def list_group_members(
    sam_account_name: str,
    recursive: bool = False,
    page: int = 1,
    page_size: int = Query(DEFAULT_PAGE_SIZE, alias="pageSize"),
    creds: Credentials = Depends(get_credentials),
    groups: GroupService = Depends(get_group_service),
):
    """Direct members, or all transitive members with ``recursive=true``."""
    page, page_size = clamp_page(page, page_size)
    result = groups.list_members(sam_account_name, recursive, page, page_size, creds)
    return result.as_dict(lambda m: m.as_dict())


@router.get("/{sam_account_name}/members/{member_sam_account_name}")
def check_group_membership(
    sam_account_name: str,
    member_sam_account_name: str,
    creds: Credentials = Depends(get_credentials),
    groups: GroupService = Depends(get_group_service),
):
    return groups.check_membership(sam_account_name, member_sam_account_name, creds).as_dict()


@router.post("/{sam_account_name}/members", status_code=status.HTTP_201_CREATED)
def add_group_member(
    sam_account_name: str,
    request: AddGroupMemberRequest,
    creds: Credentials = Depends(get_credentials),
    groups: GroupService = Depends(get_group_service),
):
    groups.add_member(sam_account_name, request.distinguished_name, creds)
    return Response(status_code=status.HTTP_201_CREATED)


@router.delete("/{sam_account_name}/members/{member_sam_account_name}", status_code=status.HTTP_204_NO_CONTENT)
def remove_group_member(
    sam_account_name: str,
    member_sam_account_name: str,
    creds: Credentials = Depends(get_credentials),
    groups: GroupService = Depends(get_group_service),
):
    groups.remove_member(sam_account_name, member_sam_account_name, creds)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
