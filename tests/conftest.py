"""Shared fixtures: an in-memory directory that speaks the session interface.

The fake understands exactly the filters the services build:
``(objectClass=*)``, ``(objectClass=X)``, ``(&(objectClass=X)(sAMAccountName=Y))``
and the in-chain ``memberOf`` filter.
"""

import re

import pytest
from ldap3 import BASE, SUBTREE

from ldap_rest.ad import Credentials, DirectoryEntry
from ldap_rest.env_settings import DirectorySettings
from ldap_rest.errors import BindError, classify_result

BASE_DN = "DC=example,DC=com"

_SAM_FILTER = re.compile(r"^\(&\(objectClass=(?P<oc>[^)]+)\)\(sAMAccountName=(?P<sam>.*)\)\)$")
_OC_FILTER = re.compile(r"^\(objectClass=(?P<oc>[^)]+)\)$")
_CHAIN_FILTER = re.compile(r"^\(memberOf:1\.2\.840\.113556\.1\.4\.1941:=(?P<dn>.*)\)$")
_ESCAPED = re.compile(r"\\([0-9a-fA-F]{2})")


def unescape(value: str) -> str:
    return _ESCAPED.sub(lambda m: chr(int(m.group(1), 16)), value)


class FakeDirectory:
    def __init__(self):
        self.entries: dict[str, dict[str, list[str]]] = {}
        self.modifications: list[tuple[str, dict]] = []
        self.searches: list[tuple[str, str, tuple, str]] = []
        # base DN (lower-cased) -> error raised by any search at that base
        self.failures: dict[str, Exception] = {}

    # -- population -------------------------------------------------------

    def add_user(self, sam, cn=None, ou="Users", **attrs):
        dn = f"CN={cn or sam},OU={ou},{BASE_DN}"
        values = {
            "objectClass": ["top", "person", "organizationalPerson", "user"],
            "sAMAccountName": [sam],
            "distinguishedName": [dn],
        }
        for k, v in attrs.items():
            values[k] = v if isinstance(v, list) else [v]
        self.entries[dn.lower()] = {"dn": dn, **values}
        return dn

    def add_group(self, sam, members=(), cn=None, **attrs):
        dn = f"CN={cn or sam},OU=Groups,{BASE_DN}"
        values = {
            "objectClass": ["top", "group"],
            "sAMAccountName": [sam],
            "distinguishedName": [dn],
            "member": list(members),
        }
        for k, v in attrs.items():
            values[k] = v if isinstance(v, list) else [v]
        self.entries[dn.lower()] = {"dn": dn, **values}
        return dn

    def attr(self, dn, name):
        e = self.entries[dn.lower()]
        for k, v in e.items():
            if k.lower() == name.lower():
                return v
        return None

    # -- queries ------------------------------------------------------------

    def _entry(self, raw, attributes):
        wanted = {a.lower() for a in attributes}
        values = {k: v for k, v in raw.items() if k != "dn" and k.lower() in wanted and v}
        return DirectoryEntry.from_values(raw["dn"], values)

    def _member_of_chain(self, dn):
        """DNs of all groups containing ``dn`` directly or transitively."""
        found: set[str] = set()
        frontier = [dn.lower()]
        while frontier:
            cur = frontier.pop()
            for key, raw in self.entries.items():
                members = [m.lower() for m in raw.get("member", [])]
                if cur in members and key not in found:
                    found.add(key)
                    frontier.append(key)
        return found

    def _matches(self, raw, search_filter):
        if search_filter == "(objectClass=*)":
            return True
        m = _OC_FILTER.match(search_filter)
        if m:
            return m.group("oc") in raw["objectClass"]
        m = _SAM_FILTER.match(search_filter)
        if m:
            sam = unescape(m.group("sam"))
            return m.group("oc") in raw["objectClass"] and raw["sAMAccountName"][0].lower() == sam.lower()
        m = _CHAIN_FILTER.match(search_filter)
        if m:
            group_dn = unescape(m.group("dn")).lower()
            return group_dn in self._member_of_chain(raw["dn"])
        raise AssertionError(f"unexpected filter {search_filter!r}")

    def search(self, base, search_filter, attributes, scope):
        self.searches.append((base, search_filter, tuple(attributes), scope))
        if base.lower() in self.failures:
            raise self.failures[base.lower()]
        if scope == BASE:
            raw = self.entries.get(base.lower())
            if raw is None or not self._matches(raw, search_filter):
                return []
            return [self._entry(raw, attributes)]
        assert scope == SUBTREE
        return [self._entry(raw, attributes) for raw in self.entries.values() if self._matches(raw, search_filter)]

    def modify(self, dn, changes):
        self.modifications.append((dn, changes))
        raw = self.entries.get(dn.lower())
        if raw is None:
            raise classify_result({"result": 32, "description": "noSuchObject"}, "modify")
        for name, ops in changes.items():
            for op, values in ops:
                current = self.attr(dn, name) or []
                if op == "MODIFY_ADD":
                    if any(v.lower() in [c.lower() for c in current] for v in values):
                        raise classify_result({"result": 68, "description": "entryAlreadyExists"}, "modify")
                    raw[name] = current + list(values)
                elif op == "MODIFY_DELETE":
                    if values:
                        lowered = [c.lower() for c in current]
                        if not all(v.lower() in lowered for v in values):
                            raise classify_result({"result": 16, "description": "noSuchAttribute"}, "modify")
                        raw[name] = [c for c in current if c.lower() not in {v.lower() for v in values}]
                    else:
                        raw.pop(name, None)
                elif op == "MODIFY_REPLACE":
                    raw[name] = list(values)


class FakeSession:
    def __init__(self, directory):
        self.directory = directory
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        self.closed = True

    def search(self, base, search_filter, attributes, scope):
        assert not self.closed
        return self.directory.search(base, search_filter, attributes, scope)

    def modify(self, dn, changes):
        assert not self.closed
        if changes:
            self.directory.modify(dn, changes)


class FakeConnector:
    def __init__(self, directory, base_dn=BASE_DN):
        self.directory = directory
        self.base_dn = base_dn
        self.sessions: list[FakeSession] = []
        self.binds: list[tuple[str, str]] = []
        self.bind_error: BindError | None = None

    def open(self, username, password):
        self.binds.append((username, password))
        if self.bind_error is not None:
            raise self.bind_error
        session = FakeSession(self.directory)
        self.sessions.append(session)
        return session


@pytest.fixture
def directory():
    return FakeDirectory()


@pytest.fixture
def connector(directory):
    return FakeConnector(directory)


@pytest.fixture
def creds():
    return Credentials(username="EXAMPLE\\admin", password="s3cret")


@pytest.fixture
def settings():
    return DirectorySettings(LDAP_HOST="dc01.example.com", LDAP_BASE_DN=BASE_DN)
