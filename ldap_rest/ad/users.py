from __future__ import annotations

from .base import PrincipalService
from .models import UserRecord
from .modifications import USER_RULES

USER_ATTRIBUTES = (
    "company",
    "department",
    "description",
    "distinguishedName",
    "displayName",
    "givenName",
    "sn",
    "mail",
    "manager",
    "memberOf",
    "sAMAccountName",
    "title",
    "userPrincipalName",
    "whenChanged",
    "userAccountControl",
)


class UserService(PrincipalService[UserRecord]):
    """User accounts: lookup by sAMAccountName / DN and attribute updates.

    Writable keys: company, department, description, displayname, givenname,
    sn and the ``enabled`` pseudo-attribute (ACCOUNTDISABLE bit of
    userAccountControl).
    """

    object_class = "user"
    kind = "user"
    attributes = USER_ATTRIBUTES
    rules = USER_RULES
    record_type = UserRecord
