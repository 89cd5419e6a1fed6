from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Tuple

from ldap3.utils.ciDict import CaseInsensitiveDict

# userAccountControl flag: ACCOUNTDISABLE
UAC_ACCOUNT_DISABLE = 0x0002


def _decode(v: Any) -> str:
    if isinstance(v, (bytes, bytearray)):
        return bytes(v).decode("utf-8", errors="replace")
    return str(v)


@dataclass(frozen=True)
class Credentials:
    """Caller credentials, passed verbatim to the bind of one operation."""

    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class DirectoryEntry:
    """One raw search result: DN + case-insensitive multi-valued attributes."""

    dn: str
    attributes: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict, compare=False, hash=False)

    @classmethod
    def from_values(cls, dn: str, values: dict[str, Any]) -> "DirectoryEntry":
        attrs = CaseInsensitiveDict()
        for name, raw in (values or {}).items():
            if raw is None:
                continue
            if isinstance(raw, (list, tuple)):
                attrs[name] = tuple(_decode(x) for x in raw)
            else:
                attrs[name] = (_decode(raw),)
        return cls(dn=str(dn or ""), attributes=attrs)

    @classmethod
    def from_response(cls, item: dict) -> "DirectoryEntry":
        """Build from an ldap3 ``conn.response`` item (uses raw_attributes)."""
        raw = item.get("raw_attributes")
        if raw is None:
            raw = item.get("attributes") or {}
        return cls.from_values(item.get("dn", ""), dict(raw))

    def get(self, name: str) -> Optional[str]:
        values = self.attributes.get(name)
        if not values:
            return None
        return values[0]

    def get_all(self, name: str) -> Optional[Tuple[str, ...]]:
        if name not in self.attributes:
            return None
        return tuple(self.attributes[name])


def derive_enabled(user_account_control: Optional[str]) -> Optional[bool]:
    """ACCOUNTDISABLE set -> False, clear -> True, absent/garbage -> None."""
    if user_account_control is None:
        return None
    try:
        value = int(str(user_account_control).strip())
    except ValueError:
        return None
    return (value & UAC_ACCOUNT_DISABLE) == 0


@dataclass(frozen=True)
class UserRecord:
    distinguished_name: str
    sam_account_name: Optional[str] = None
    company: Optional[str] = None
    department: Optional[str] = None
    description: Optional[str] = None
    display_name: Optional[str] = None
    given_name: Optional[str] = None
    enabled: Optional[bool] = None
    sn: Optional[str] = None
    mail: Optional[str] = None
    manager: Optional[str] = None
    member_of: Optional[Tuple[str, ...]] = None
    title: Optional[str] = None
    user_principal_name: Optional[str] = None
    when_changed: Optional[str] = None

    @classmethod
    def from_entry(cls, entry: DirectoryEntry) -> "UserRecord":
        return cls(
            distinguished_name=entry.dn,
            sam_account_name=entry.get("sAMAccountName"),
            company=entry.get("company"),
            department=entry.get("department"),
            description=entry.get("description"),
            display_name=entry.get("displayName"),
            given_name=entry.get("givenName"),
            enabled=derive_enabled(entry.get("userAccountControl")),
            sn=entry.get("sn"),
            mail=entry.get("mail"),
            manager=entry.get("manager"),
            member_of=entry.get_all("memberOf"),
            title=entry.get("title"),
            user_principal_name=entry.get("userPrincipalName"),
            when_changed=entry.get("whenChanged"),
        )

    def as_dict(self) -> dict:
        return {
            "company": self.company,
            "department": self.department,
            "description": self.description,
            "distinguishedName": self.distinguished_name,
            "displayName": self.display_name,
            "givenName": self.given_name,
            "enabled": self.enabled,
            "sn": self.sn,
            "mail": self.mail,
            "manager": self.manager,
            "memberOf": list(self.member_of) if self.member_of is not None else None,
            "samAccountName": self.sam_account_name,
            "title": self.title,
            "userPrincipalName": self.user_principal_name,
            "whenChanged": self.when_changed,
        }


@dataclass(frozen=True)
class GroupRecord:
    distinguished_name: str
    sam_account_name: Optional[str] = None
    description: Optional[str] = None
    gid_number: Optional[str] = None
    info: Optional[str] = None
    managed_by: Optional[str] = None
    mail: Optional[str] = None
    member_of: Optional[Tuple[str, ...]] = None
    member: Optional[Tuple[str, ...]] = None

    @classmethod
    def from_entry(cls, entry: DirectoryEntry) -> "GroupRecord":
        return cls(
            distinguished_name=entry.dn,
            sam_account_name=entry.get("sAMAccountName"),
            description=entry.get("description"),
            gid_number=entry.get("gidNumber"),
            info=entry.get("info"),
            managed_by=entry.get("managedBy"),
            mail=entry.get("mail"),
            member_of=entry.get_all("memberOf"),
            member=entry.get_all("member"),
        )

    def as_dict(self) -> dict:
        return {
            "description": self.description,
            "distinguishedName": self.distinguished_name,
            "gidNumber": self.gid_number,
            "info": self.info,
            "managedBy": self.managed_by,
            "mail": self.mail,
            "memberOf": list(self.member_of) if self.member_of is not None else None,
            "member": list(self.member) if self.member is not None else None,
            "samAccountName": self.sam_account_name,
        }


@dataclass(frozen=True)
class GroupMember:
    distinguished_name: str
    sam_account_name: Optional[str] = None
    display_name: Optional[str] = None
    object_class: Optional[str] = None

    @classmethod
    def from_entry(cls, entry: DirectoryEntry) -> "GroupMember":
        # objectClass comes back as the full chain (top, person, ..., user);
        # the last value is the most specific one.
        classes = entry.get_all("objectClass") or ()
        return cls(
            distinguished_name=entry.dn,
            sam_account_name=entry.get("sAMAccountName"),
            display_name=entry.get("displayName"),
            object_class=classes[-1] if classes else None,
        )

    def as_dict(self) -> dict:
        return {
            "distinguishedName": self.distinguished_name,
            "samAccountName": self.sam_account_name,
            "displayName": self.display_name,
            "objectClass": self.object_class,
        }


@dataclass(frozen=True)
class MembershipCheck:
    is_member: bool
    member_distinguished_name: str
    group_distinguished_name: str

    def as_dict(self) -> dict:
        return {
            "isMember": self.is_member,
            "memberDistinguishedName": self.member_distinguished_name,
            "groupDistinguishedName": self.group_distinguished_name,
        }
