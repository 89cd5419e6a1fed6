from __future__ import annotations

import logging

from ldap3 import BASE, MODIFY_ADD, MODIFY_DELETE, SUBTREE

from ..errors import ConflictError, NotFoundError, ProtocolError
from ..utils.pagination import PagedResult, paginate
from .base import PrincipalService
from .connection import DirectorySession
from .models import Credentials, GroupMember, GroupRecord, MembershipCheck
from .modifications import GROUP_RULES
from .utils import escape_dn_for_filter, validate_distinguished_name, validate_sam_account_name

log = logging.getLogger(__name__)

# LDAP_MATCHING_RULE_IN_CHAIN: server-side transitive membership (AD).
MATCHING_RULE_IN_CHAIN = "1.2.840.113556.1.4.1941"

GROUP_ATTRIBUTES = (
    "description",
    "distinguishedName",
    "gidNumber",
    "info",
    "managedBy",
    "mail",
    "memberOf",
    "member",
    "sAMAccountName",
)

MEMBER_ATTRIBUTES = ("sAMAccountName", "displayName", "objectClass", "distinguishedName")


def chain_membership_filter(group_dn: str) -> str:
    """``(memberOf:<in-chain OID>:=<group dn>)`` with the DN filter-escaped."""
    return f"(memberOf:{MATCHING_RULE_IN_CHAIN}:={escape_dn_for_filter(group_dn)})"


class GroupService(PrincipalService[GroupRecord]):
    object_class = "group"
    kind = "group"
    attributes = GROUP_ATTRIBUTES
    rules = GROUP_RULES
    record_type = GroupRecord

    def _resolve_user_dn(self, session: DirectorySession, sam: str) -> str:
        return self._resolve_entry(session, sam, object_class="user", kind="user").dn

    def list_members(
        self,
        sam: str,
        recursive: bool,
        page: int,
        page_size: int,
        creds: Credentials,
    ) -> PagedResult[GroupMember]:
        """Members of a group, paginated in memory.

        Non-recursive: the group's own ``member`` values, each resolved with a
        base-scoped lookup (DNs that no longer resolve are skipped).
        Recursive: one subtree search with the in-chain matching rule.
        """
        validate_sam_account_name(sam)

        with self._session(creds) as session:
            group = self._resolve_entry(session, sam, GROUP_ATTRIBUTES)

            if recursive:
                entries = session.search(
                    self.base_dn, chain_membership_filter(group.dn), MEMBER_ATTRIBUTES, SUBTREE
                )
                members = [GroupMember.from_entry(e) for e in entries]
            else:
                members = []
                for member_dn in group.get_all("member") or ():
                    member = self._lookup_member(session, member_dn)
                    if member is not None:
                        members.append(member)

        return paginate(members, page, page_size)

    @staticmethod
    def _lookup_member(session: DirectorySession, member_dn: str) -> GroupMember | None:
        try:
            entries = session.search(member_dn, "(objectClass=*)", MEMBER_ATTRIBUTES, BASE)
        except NotFoundError:
            entries = []
        except (ProtocolError, ConflictError) as e:
            # E.g. a referral for a member living in another domain of the forest.
            log.warning("Group member %r lookup failed, skipped: %s", member_dn, e)
            return None
        if not entries:
            log.debug("Group member %r could not be resolved, skipped", member_dn)
            return None
        return GroupMember.from_entry(entries[0])

    def check_membership(self, group_sam: str, member_sam: str, creds: Credentials) -> MembershipCheck:
        """Transitive membership check of a user in a group."""
        validate_sam_account_name(group_sam)
        validate_sam_account_name(member_sam)

        with self._session(creds) as session:
            group_dn = self._resolve_entry(session, group_sam).dn
            member_dn = self._resolve_user_dn(session, member_sam)
            hits = session.search(member_dn, chain_membership_filter(group_dn), ["distinguishedName"], BASE)

        return MembershipCheck(
            is_member=bool(hits),
            member_distinguished_name=member_dn,
            group_distinguished_name=group_dn,
        )

    def add_member(self, group_sam: str, member_dn: str, creds: Credentials) -> None:
        validate_sam_account_name(group_sam)
        validate_distinguished_name(member_dn)

        with self._session(creds) as session:
            group_dn = self._resolve_entry(session, group_sam).dn
            session.modify(group_dn, {"member": [(MODIFY_ADD, [member_dn])]})

        log.info("Group '%s': member %r added", group_sam, member_dn)

    def remove_member(self, group_sam: str, member_sam: str, creds: Credentials) -> None:
        validate_sam_account_name(group_sam)
        validate_sam_account_name(member_sam)

        with self._session(creds) as session:
            group_dn = self._resolve_entry(session, group_sam).dn
            member_dn = self._resolve_user_dn(session, member_sam)
            session.modify(group_dn, {"member": [(MODIFY_DELETE, [member_dn])]})

        log.info("Group '%s': member %r removed", group_sam, member_dn)
