"""Directory access layer (Active Directory over ldap3).

Public API:
    - DirectoryConnector / DirectorySession
    - UserService / GroupService
    - record types (UserRecord, GroupRecord, GroupMember, MembershipCheck)
"""

from .connection import DirectoryConnector, DirectorySession
from .groups import GroupService
from .models import (
    Credentials,
    DirectoryEntry,
    GroupMember,
    GroupRecord,
    MembershipCheck,
    UserRecord,
)
from .users import UserService

__all__ = [
    "Credentials",
    "DirectoryConnector",
    "DirectoryEntry",
    "DirectorySession",
    "GroupMember",
    "GroupRecord",
    "GroupService",
    "MembershipCheck",
    "UserRecord",
    "UserService",
]
