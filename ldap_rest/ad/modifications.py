"""Translation of caller modification requests into LDAP modify changes.

A request is ``{lower-cased key: str | bool | None}``. Each allowed key maps
to exactly one rule from a small closed set:

    PlainAttributeRule   - key is a real attribute: null/"" -> DELETE, else REPLACE
    BitmaskAttributeRule - key is a pseudo-attribute backed by one bit of a
                           numeric attribute (e.g. ``enabled`` ->
                           userAccountControl & 0x2)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from ldap3 import MODIFY_DELETE, MODIFY_REPLACE

from ..errors import ValidationError
from .models import UAC_ACCOUNT_DISABLE, DirectoryEntry

ModificationValue = Union[str, bool, None]


def _render(value: Any) -> str:
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    return str(value)


@dataclass(frozen=True)
class PlainAttributeRule:
    attribute: str

    @property
    def read_attributes(self) -> tuple[str, ...]:
        return ()

    def translate(self, value: ModificationValue, entry: DirectoryEntry) -> Optional[tuple[str, list]]:
        if value is None or value == "":
            return self.attribute, [(MODIFY_DELETE, [])]
        return self.attribute, [(MODIFY_REPLACE, [_render(value)])]


@dataclass(frozen=True)
class BitmaskAttributeRule:
    """Boolean pseudo-attribute stored as one bit of a numeric attribute.

    ``bit_means_false``: the bit being set encodes ``False`` (ACCOUNTDISABLE
    is set when ``enabled`` is false).
    """

    attribute: str
    bit: int
    bit_means_false: bool = True

    @property
    def read_attributes(self) -> tuple[str, ...]:
        return (self.attribute,)

    def translate(self, value: ModificationValue, entry: DirectoryEntry) -> Optional[tuple[str, list]]:
        if not isinstance(value, bool):
            return None
        raw = entry.get(self.attribute)
        if raw is None:
            return None
        try:
            current = int(raw.strip())
        except ValueError:
            return None

        set_bit = (not value) if self.bit_means_false else value
        new = (current | self.bit) if set_bit else (current & ~self.bit)
        return self.attribute, [(MODIFY_REPLACE, [str(new)])]


Rule = Union[PlainAttributeRule, BitmaskAttributeRule]


USER_RULES: dict[str, Rule] = {
    "company": PlainAttributeRule("company"),
    "department": PlainAttributeRule("department"),
    "description": PlainAttributeRule("description"),
    "displayname": PlainAttributeRule("displayName"),
    "givenname": PlainAttributeRule("givenName"),
    "sn": PlainAttributeRule("sn"),
    "enabled": BitmaskAttributeRule("userAccountControl", UAC_ACCOUNT_DISABLE),
}

GROUP_RULES: dict[str, Rule] = {
    "description": PlainAttributeRule("description"),
    "displayname": PlainAttributeRule("displayName"),
}


def parse_modifications(body: Any, allowed: Mapping[str, Any]) -> dict[str, ModificationValue]:
    """Validate a request body against an allow-list; keys are lower-cased.

    Raises ValidationError for a non-object body, a key outside ``allowed``
    or a value that is not a string, boolean or null.
    """
    if not isinstance(body, Mapping):
        raise ValidationError("Request body must be a JSON object.")

    out: dict[str, ModificationValue] = {}
    for name, value in body.items():
        key = str(name).lower()
        if key not in allowed:
            raise ValidationError(f"Attribute '{name}' is not modifiable.")
        if value is not None and not isinstance(value, (str, bool)):
            raise ValidationError(f"Unsupported value type for '{name}'.")
        out[key] = value
    return out


def read_attributes_for(modifications: Mapping[str, ModificationValue], rules: Mapping[str, Rule]) -> list[str]:
    """Attributes that must be read from the entry before translating."""
    attrs: list[str] = []
    for key in modifications:
        for a in rules[key].read_attributes:
            if a not in attrs:
                attrs.append(a)
    return attrs


def build_changes(
    modifications: Mapping[str, ModificationValue],
    rules: Mapping[str, Rule],
    entry: DirectoryEntry,
) -> dict[str, list]:
    changes: dict[str, list] = {}
    for key, value in modifications.items():
        translated = rules[key].translate(value, entry)
        if translated is None:
            continue
        attribute, ops = translated
        changes[attribute] = ops
    return changes
