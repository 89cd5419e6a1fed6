"""LDAP-to-REST gateway: Active Directory users and groups over HTTP."""

__version__ = "1.0.0"
