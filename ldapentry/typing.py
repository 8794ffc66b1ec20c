"""
LDAP entry type definitions.

Type aliases for raw directory data, python-ldap modlists and the
modify-batch wire shape, using Python 3.10+ type hinting conventions.
"""

from typing import Any

AttributeValue = str | bytes
RawAttributeSet = dict[str, Any]
AddAttributes = dict[str, list[AttributeValue]]
ModificationDict = dict[str, Any]
LDAPModlistEntry = tuple[int, str, list[bytes] | None]
LDAPModlist = list[LDAPModlistEntry]
LDAPData = tuple[str, dict[str, list[bytes]]]
