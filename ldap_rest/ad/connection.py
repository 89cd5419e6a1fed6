from __future__ import annotations

import logging
import ssl
from typing import Any, Iterable

from ldap3 import BASE, NONE, Connection, Server, Tls
from ldap3.core.exceptions import (
    LDAPCertificateError,
    LDAPCommunicationError,
    LDAPException,
    LDAPSSLConfigurationError,
    LDAPStartTLSError,
)

from ..env_settings import DirectorySettings
from ..errors import RESULT_NO_SUCH_OBJECT, RESULT_SUCCESS, BindError, ProtocolError, classify_result
from .models import DirectoryEntry

log = logging.getLogger(__name__)

# Socket and TLS failures: the server could not be reached securely.
_TRANSPORT_ERRORS = (
    LDAPCommunicationError,
    LDAPStartTLSError,
    LDAPSSLConfigurationError,
    LDAPCertificateError,
)

# Type of the ``changes`` argument of ldap3 ``Connection.modify``.
Changes = dict[str, list[tuple[str, list[str]]]]


class DirectorySession:
    """One connection bound as the caller. Use as a context manager.

    Never stored or shared: a session lives for exactly one logical
    operation and is unbound on every exit path.
    """

    def __init__(self, conn: Connection) -> None:
        self._conn = conn
        self._closed = False

    def __enter__(self) -> "DirectorySession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._conn.unbind()
        except LDAPException as e:
            # The operation result is already decided; a failing unbind only closes a dead socket.
            log.debug("LDAP unbind failed: %s", e)

    def search(
        self,
        base: str,
        search_filter: str,
        attributes: Iterable[str],
        scope: Any,
    ) -> list[DirectoryEntry]:
        if self._closed:
            raise ProtocolError("Directory session is closed")

        log.debug("LDAP search base=%r scope=%s filter=%r", base, scope, search_filter)
        try:
            ok = self._conn.search(
                search_base=base,
                search_filter=search_filter,
                search_scope=scope,
                attributes=list(attributes),
            )
        except LDAPException as e:
            raise ProtocolError("Directory search failed", detail=str(e)) from e

        if not ok:
            res = dict(self._conn.result or {})
            # An absent search base means "no such entry", not a failure.
            if scope == BASE and res.get("result") == RESULT_NO_SUCH_OBJECT:
                return []
            if res.get("result") not in (RESULT_SUCCESS, None):
                raise classify_result(res, "search")

        entries: list[DirectoryEntry] = []
        for item in self._conn.response or []:
            if item.get("type") != "searchResEntry":
                continue
            entries.append(DirectoryEntry.from_response(item))
        return entries

    def modify(self, dn: str, changes: Changes) -> None:
        if self._closed:
            raise ProtocolError("Directory session is closed")
        if not changes:
            return

        log.debug("LDAP modify dn=%r attributes=%s", dn, sorted(changes))
        try:
            ok = self._conn.modify(dn, changes)
        except LDAPException as e:
            raise ProtocolError("Directory modify failed", detail=str(e)) from e

        if not ok:
            raise classify_result(self._conn.result, "modify")


class DirectoryConnector:
    """Builds per-operation sessions bound with the caller's own credentials.

    Holds only the immutable server description; no connection, bind or
    credential is ever kept between calls.
    """

    def __init__(self, cfg: DirectorySettings) -> None:
        self.cfg = cfg

        tls_kwargs: dict[str, Any] = {
            "validate": ssl.CERT_NONE if cfg.ignore_cert_errors else ssl.CERT_REQUIRED,
        }
        ca_file = (cfg.ca_cert_file or "").strip()
        if ca_file and not cfg.ignore_cert_errors:
            tls_kwargs["ca_certs_file"] = ca_file
        tls = Tls(**tls_kwargs)

        self.server = Server(
            host=cfg.host,
            port=cfg.resolved_port,
            use_ssl=cfg.use_ssl,
            get_info=NONE,
            tls=tls,
            connect_timeout=float(cfg.connect_timeout_s),
        )

    @property
    def base_dn(self) -> str:
        return self.cfg.base_dn

    @property
    def uses_starttls(self) -> bool:
        # Implicit TLS wins when both modes are configured.
        return bool(self.cfg.starttls and not self.cfg.use_ssl)

    def _conn(self, user: str, password: str) -> Connection:
        return Connection(
            self.server,
            user=user,
            password=password,
            auto_bind=False,
            version=self.cfg.protocol_version,
            auto_referrals=self.cfg.auto_referrals,
            raise_exceptions=False,
            read_only=False,
        )

    def open(self, username: str, password: str) -> DirectorySession:
        """Open and bind a session as ``username``; raises BindError on failure."""
        conn: Connection | None = None
        try:
            conn = self._conn(username, password)
            conn.open()
            if self.uses_starttls:
                conn.start_tls()
            ok = bool(conn.bind())
        except _TRANSPORT_ERRORS as e:
            self._release(conn)
            log.warning("LDAP connection to %s:%s failed: %s", self.cfg.host, self.cfg.resolved_port, e)
            raise BindError(
                "Unable to reach directory server",
                detail=str(e),
                unreachable=True,
            ) from e
        except LDAPException as e:
            # Rejected client-side by ldap3 (e.g. empty password in a simple bind).
            self._release(conn)
            log.info("LDAP bind refused before reaching the server: %s", type(e).__name__)
            raise BindError("Invalid credentials", detail=str(e)) from e

        if not ok:
            res = dict(conn.result or {})
            self._release(conn)
            log.info("LDAP bind rejected: code=%s", res.get("result"))
            err = classify_result(res, "bind")
            if isinstance(err, BindError):
                raise err
            raise BindError(
                f"Bind failed: {res.get('description', 'unknown error')}",
                code=err.code,
                detail=err.detail,
            )

        return DirectorySession(conn)

    @staticmethod
    def _release(conn: Connection | None) -> None:
        if conn is None:
            return
        try:
            conn.unbind()
        except LDAPException as e:
            log.debug("LDAP unbind of a failed connection raised: %s", e)
