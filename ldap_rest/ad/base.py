from __future__ import annotations

import logging
from typing import Any, ClassVar, Generic, Mapping, Optional, TypeVar

from ldap3 import BASE, SUBTREE

from ..errors import NotFoundError
from .connection import DirectoryConnector, DirectorySession
from .models import Credentials, DirectoryEntry
from .modifications import Rule, build_changes, parse_modifications, read_attributes_for
from .utils import escape_ldap_filter_value, validate_distinguished_name, validate_sam_account_name

log = logging.getLogger(__name__)

R = TypeVar("R")


class PrincipalService(Generic[R]):
    """Lookup/update operations shared by users and groups.

    Subclasses set the objectClass, the attribute list to fetch, the
    record type and the write rules (which double as the write allow-list).
    """

    object_class: ClassVar[str]
    kind: ClassVar[str]
    attributes: ClassVar[tuple[str, ...]]
    rules: ClassVar[Mapping[str, Rule]]
    record_type: ClassVar[Any]

    def __init__(self, connector: DirectoryConnector) -> None:
        self.connector = connector

    @property
    def base_dn(self) -> str:
        return self.connector.base_dn

    def _session(self, creds: Credentials) -> DirectorySession:
        return self.connector.open(creds.username, creds.password)

    def _sam_filter(self, sam: str, object_class: str | None = None) -> str:
        oc = object_class or self.object_class
        return f"(&(objectClass={oc})(sAMAccountName={escape_ldap_filter_value(sam)}))"

    def _find_entry(
        self,
        session: DirectorySession,
        sam: str,
        attributes,
        object_class: str | None = None,
    ) -> Optional[DirectoryEntry]:
        entries = session.search(self.base_dn, self._sam_filter(sam, object_class), attributes, SUBTREE)
        return entries[0] if entries else None

    def _resolve_entry(
        self,
        session: DirectorySession,
        sam: str,
        attributes=("distinguishedName",),
        object_class: str | None = None,
        kind: str | None = None,
    ) -> DirectoryEntry:
        entry = self._find_entry(session, sam, attributes, object_class)
        if entry is None:
            raise NotFoundError(f"{(kind or self.kind).capitalize()} '{sam}' not found.")
        return entry

    def find_by_sam_account_name(self, sam: str, creds: Credentials) -> Optional[R]:
        validate_sam_account_name(sam)
        with self._session(creds) as session:
            entry = self._find_entry(session, sam, self.attributes)
        return self.record_type.from_entry(entry) if entry else None

    def find_by_distinguished_name(self, dn: str, creds: Credentials) -> Optional[R]:
        validate_distinguished_name(dn)
        with self._session(creds) as session:
            # The DN is the search base here, not a filter token: no escaping.
            entries = session.search(dn, f"(objectClass={self.object_class})", self.attributes, BASE)
        return self.record_type.from_entry(entries[0]) if entries else None

    def update(self, sam: str, modifications: Mapping[str, Any], creds: Credentials) -> None:
        validate_sam_account_name(sam)
        mods = parse_modifications(modifications, self.rules)

        with self._session(creds) as session:
            attrs = ["distinguishedName"] + read_attributes_for(mods, self.rules)
            entry = self._resolve_entry(session, sam, attrs)
            changes = build_changes(mods, self.rules, entry)
            if not changes:
                log.info("%s '%s': nothing to modify", self.kind, sam)
                return
            session.modify(entry.dn, changes)

        log.info("%s '%s' updated: %s", self.kind, sam, ", ".join(sorted(changes)))
