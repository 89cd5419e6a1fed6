import ssl
from unittest import mock

import pytest
from ldap3 import BASE, SUBTREE
from ldap3.core.exceptions import (
    LDAPPasswordIsMandatoryError,
    LDAPSocketOpenError,
    LDAPSocketReceiveError,
    LDAPStartTLSError,
)

from ldap_rest.ad import connection as connection_mod
from ldap_rest.ad.connection import DirectoryConnector, DirectorySession
from ldap_rest.env_settings import DirectorySettings
from ldap_rest.errors import BindError, ConflictError, NotFoundError, ProtocolError


def make_settings(**kw):
    values = {"LDAP_HOST": "dc01.example.com", "LDAP_BASE_DN": "DC=example,DC=com"}
    values.update(kw)
    return DirectorySettings(**values)


@pytest.fixture
def ldap(monkeypatch):
    """Replace ldap3 Server/Tls/Connection inside the connection module."""
    conn = mock.MagicMock(name="Connection()")
    conn.bind.return_value = True
    conn.result = {"result": 0, "description": "success"}
    conn.response = []

    server_cls = mock.MagicMock(name="Server")
    tls_cls = mock.MagicMock(name="Tls")
    conn_cls = mock.MagicMock(name="Connection", return_value=conn)
    monkeypatch.setattr(connection_mod, "Server", server_cls)
    monkeypatch.setattr(connection_mod, "Tls", tls_cls)
    monkeypatch.setattr(connection_mod, "Connection", conn_cls)
    return mock.Mock(conn=conn, Server=server_cls, Tls=tls_cls, Connection=conn_cls)


class TestConnectorSetup:
    def test_default_port_plain(self, ldap):
        DirectoryConnector(make_settings())
        assert ldap.Server.call_args.kwargs["port"] == 389
        assert ldap.Server.call_args.kwargs["use_ssl"] is False

    def test_default_port_ldaps(self, ldap):
        DirectoryConnector(make_settings(LDAP_USE_SSL=True))
        assert ldap.Server.call_args.kwargs["port"] == 636
        assert ldap.Server.call_args.kwargs["use_ssl"] is True

    def test_explicit_port_wins(self, ldap):
        DirectoryConnector(make_settings(LDAP_USE_SSL=True, LDAP_PORT=3269))
        assert ldap.Server.call_args.kwargs["port"] == 3269

    def test_certificate_validation_required_by_default(self, ldap):
        DirectoryConnector(make_settings(LDAP_CA_CERT_FILE="/etc/ssl/ad-ca.pem"))
        kwargs = ldap.Tls.call_args.kwargs
        assert kwargs["validate"] == ssl.CERT_REQUIRED
        assert kwargs["ca_certs_file"] == "/etc/ssl/ad-ca.pem"

    def test_ignore_cert_errors(self, ldap):
        DirectoryConnector(make_settings(LDAP_IGNORE_CERT_ERRORS=True, LDAP_CA_CERT_FILE="/x.pem"))
        kwargs = ldap.Tls.call_args.kwargs
        assert kwargs["validate"] == ssl.CERT_NONE
        assert "ca_certs_file" not in kwargs

    @pytest.mark.parametrize(
        "use_ssl,starttls,expected",
        [(False, False, False), (False, True, True), (True, False, False), (True, True, False)],
    )
    def test_implicit_tls_wins_over_starttls(self, ldap, use_ssl, starttls, expected):
        connector = DirectoryConnector(make_settings(LDAP_USE_SSL=use_ssl, LDAP_STARTTLS=starttls))
        assert connector.uses_starttls is expected


class TestOpen:
    def test_binds_with_caller_credentials(self, ldap):
        connector = DirectoryConnector(make_settings())
        session = connector.open("EXAMPLE\\jsmith", "pw")
        assert isinstance(session, DirectorySession)

        kwargs = ldap.Connection.call_args.kwargs
        assert kwargs["user"] == "EXAMPLE\\jsmith"
        assert kwargs["password"] == "pw"
        assert kwargs["version"] == 3
        assert kwargs["auto_referrals"] is False
        ldap.conn.open.assert_called_once_with()
        ldap.conn.bind.assert_called_once_with()
        ldap.conn.start_tls.assert_not_called()

    def test_starttls_before_bind(self, ldap):
        connector = DirectoryConnector(make_settings(LDAP_STARTTLS=True))
        connector.open("u", "p")
        names = [c[0] for c in ldap.conn.method_calls]
        assert names.index("start_tls") < names.index("bind")

    def test_rejected_bind_releases_connection(self, ldap):
        ldap.conn.bind.return_value = False
        ldap.conn.result = {"result": 49, "description": "invalidCredentials", "message": "80090308: LdapErr"}
        connector = DirectoryConnector(make_settings())

        with pytest.raises(BindError) as ei:
            connector.open("u", "wrong")
        assert ei.value.unreachable is False
        assert ei.value.code == 49
        ldap.conn.unbind.assert_called_once_with()

    def test_other_bind_failure_still_bind_error(self, ldap):
        ldap.conn.bind.return_value = False
        ldap.conn.result = {"result": 53, "description": "unwillingToPerform"}
        connector = DirectoryConnector(make_settings())

        with pytest.raises(BindError) as ei:
            connector.open("u", "p")
        assert ei.value.code == 53
        ldap.conn.unbind.assert_called_once_with()

    def test_unreachable_server(self, ldap):
        ldap.conn.open.side_effect = LDAPSocketOpenError("socket connection error")
        connector = DirectoryConnector(make_settings())

        with pytest.raises(BindError) as ei:
            connector.open("u", "p")
        assert ei.value.unreachable is True
        ldap.conn.unbind.assert_called_once_with()
        ldap.conn.bind.assert_not_called()

    @pytest.mark.parametrize(
        "exc",
        [
            LDAPStartTLSError("wrap socket error"),
            LDAPSocketReceiveError("connection reset"),
        ],
    )
    def test_tls_and_socket_failures_are_unreachable(self, ldap, exc):
        ldap.conn.start_tls.side_effect = exc
        connector = DirectoryConnector(make_settings(LDAP_STARTTLS=True))

        with pytest.raises(BindError) as ei:
            connector.open("u", "p")
        assert ei.value.unreachable is True

    def test_client_side_bind_refusal_is_credentials_error(self, ldap):
        ldap.conn.bind.side_effect = LDAPPasswordIsMandatoryError("password is mandatory in simple bind")
        connector = DirectoryConnector(make_settings())

        with pytest.raises(BindError) as ei:
            connector.open("EXAMPLE\\u", "")
        assert ei.value.unreachable is False
        assert "mandatory" in ei.value.detail
        ldap.conn.unbind.assert_called_once_with()

    def test_credentials_not_logged(self, ldap, caplog):
        ldap.conn.bind.return_value = False
        ldap.conn.result = {"result": 49, "description": "invalidCredentials"}
        connector = DirectoryConnector(make_settings())

        with caplog.at_level("DEBUG"), pytest.raises(BindError):
            connector.open("jsmith", "Sup3r-Secret!")
        assert "Sup3r-Secret!" not in caplog.text
        assert "jsmith" not in caplog.text
        assert "code=49" in caplog.text


class TestSession:
    def test_context_manager_unbinds(self):
        conn = mock.MagicMock()
        with DirectorySession(conn) as s:
            assert not s.closed
        assert s.closed
        conn.unbind.assert_called_once_with()

    def test_unbinds_on_error(self):
        conn = mock.MagicMock()
        with pytest.raises(RuntimeError):
            with DirectorySession(conn):
                raise RuntimeError("boom")
        conn.unbind.assert_called_once_with()

    def test_close_is_idempotent(self):
        conn = mock.MagicMock()
        s = DirectorySession(conn)
        s.close()
        s.close()
        conn.unbind.assert_called_once_with()

    def test_search_parses_entries_only(self):
        conn = mock.MagicMock()
        conn.search.return_value = True
        conn.response = [
            {"type": "searchResEntry", "dn": "CN=a,DC=x", "raw_attributes": {"sAMAccountName": [b"a"]}},
            {"type": "searchResRef", "uri": ["ldap://other/DC=x"]},
        ]
        entries = DirectorySession(conn).search("DC=x", "(objectClass=user)", ["sAMAccountName"], SUBTREE)
        assert [e.dn for e in entries] == ["CN=a,DC=x"]
        assert entries[0].get("samaccountname") == "a"
        assert conn.search.call_args.kwargs["search_scope"] == SUBTREE

    def test_search_without_hits(self):
        conn = mock.MagicMock()
        conn.search.return_value = False
        conn.result = {"result": 0, "description": "success"}
        conn.response = []
        assert DirectorySession(conn).search("DC=x", "(objectClass=user)", [], SUBTREE) == []

    def test_base_search_on_missing_entry_is_empty(self):
        conn = mock.MagicMock()
        conn.search.return_value = False
        conn.result = {"result": 32, "description": "noSuchObject"}
        conn.response = None
        assert DirectorySession(conn).search("CN=gone,DC=x", "(objectClass=*)", [], BASE) == []

    def test_subtree_search_on_missing_base_fails(self):
        conn = mock.MagicMock()
        conn.search.return_value = False
        conn.result = {"result": 32, "description": "noSuchObject"}
        with pytest.raises(NotFoundError):
            DirectorySession(conn).search("DC=nowhere", "(objectClass=*)", [], SUBTREE)

    def test_search_socket_failure(self):
        conn = mock.MagicMock()
        conn.search.side_effect = LDAPSocketOpenError("reset")
        with pytest.raises(ProtocolError):
            DirectorySession(conn).search("DC=x", "(objectClass=*)", [], SUBTREE)

    def test_modify_empty_changes_skips_round_trip(self):
        conn = mock.MagicMock()
        DirectorySession(conn).modify("CN=a,DC=x", {})
        conn.modify.assert_not_called()

    def test_modify_failure_classified(self):
        conn = mock.MagicMock()
        conn.modify.return_value = False
        conn.result = {"result": 68, "description": "entryAlreadyExists"}
        with pytest.raises(ConflictError):
            DirectorySession(conn).modify("CN=g,DC=x", {"member": [("MODIFY_ADD", ["CN=a,DC=x"])]})

    def test_closed_session_refuses_work(self):
        s = DirectorySession(mock.MagicMock())
        s.close()
        with pytest.raises(ProtocolError):
            s.search("DC=x", "(objectClass=*)", [], BASE)
