"""Input hardening for everything that ends up in an LDAP request.

Three independent layers:
    1. validate_sam_account_name() - syntactic rejection of short identifiers;
    2. escape_ldap_filter_value()  - RFC 4515 escaping of filter values;
    3. escape_dn_for_filter()      - the same escaping for DNs placed inside a
       filter assertion (never for a DN used as a search base).
"""

from __future__ import annotations

from ..errors import ValidationError

MAX_SAM_ACCOUNT_NAME_LENGTH = 256

# Characters AD does not allow in sAMAccountName.
DISALLOWED_SAM_CHARS = frozenset('"[]:;|=+*?<>/\\,')

_FILTER_ESCAPES = {
    "\\": "\\5c",
    "*": "\\2a",
    "(": "\\28",
    ")": "\\29",
    "\x00": "\\00",
}


def validate_sam_account_name(value: str) -> str:
    """Reject anything that is not a plausible sAMAccountName.

    Returns the value unchanged so callers can validate inline.
    """
    if value is None or not str(value).strip():
        raise ValidationError("SamAccountName cannot be empty.")
    value = str(value)

    if len(value) > MAX_SAM_ACCOUNT_NAME_LENGTH:
        raise ValidationError(f"SamAccountName cannot exceed {MAX_SAM_ACCOUNT_NAME_LENGTH} characters.")

    if value.endswith("."):
        raise ValidationError("SamAccountName cannot end with a period.")

    for ch in value:
        n = ord(ch)
        if n < 0x20 or n == 0x7F:
            raise ValidationError(f"SamAccountName contains non-printable character (0x{n:02X}).")
        if ch in DISALLOWED_SAM_CHARS:
            raise ValidationError(f"SamAccountName contains disallowed character '{ch}'.")

    return value


def validate_distinguished_name(value: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError("Distinguished name cannot be empty.")
    value = str(value)
    if "\x00" in value:
        raise ValidationError("Distinguished name contains null bytes.")
    return value


def escape_ldap_filter_value(value: str) -> str:
    """RFC 4515 escaping for LDAP filter values."""
    return "".join(_FILTER_ESCAPES.get(ch, ch) for ch in (value or ""))


def escape_dn_for_filter(dn: str) -> str:
    """Escape a DN that is the right-hand side of a filter assertion.

    E.g. ``(memberOf:1.2.840.113556.1.4.1941:=<dn>)``. Once inside a filter a
    DN is just a value, so the RFC 4515 rule applies as-is.
    """
    return escape_ldap_filter_value(dn)
