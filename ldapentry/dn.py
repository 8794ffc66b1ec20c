"""
Distinguished name helpers.

Thin wrappers over python-ldap's :py:mod:`ldap.dn` that parse string DNs of
the form ``attr=value,attr=value,...`` with the LDAPv3 (:rfc:`4514`) rules,
so that ``cn=Doe\\, John,ou=People`` has two components, not three.

Values come back in their escaped form, as
:py:func:`ldap.dn.escape_dn_chars` writes them.  None of these functions
raise on a malformed DN: they treat it as having no components.
"""

import logging

from ldap import DECODING_ERROR, DN_FORMAT_LDAPV3
from ldap.dn import dn2str, str2dn
from ldap.dn import explode_dn as ldap_explode_dn

logger = logging.getLogger("django-ldapentry")

#: An RDN as :py:func:`ldap.dn.str2dn` returns it: ``(type, value, flags)`` triples.
RDN = list[tuple[str, str, int]]


def parse_dn(dn: str) -> list[RDN]:
    """
    Parse ``dn`` into RDNs, leftmost first.

    Args:
        dn: The distinguished name.

    Returns:
        The RDNs.  An empty, blank or malformed ``dn`` gives an empty list.

    """
    if not dn or not dn.strip():
        return []
    try:
        return str2dn(dn, DN_FORMAT_LDAPV3)
    except DECODING_ERROR:
        logger.debug("ldapentry.dn.parse.invalid dn=%s", dn)
        return []


def explode_dn(dn: str, remove_attribute_prefixes: bool = True) -> list[str]:
    """
    Split ``dn`` into its RDN components, left to right.

    Example:

        .. code-block:: python

            >>> explode_dn("cn=Testing,ou=Folder,dc=corp,dc=org")
            ['Testing', 'Folder', 'corp', 'org']

    Args:
        dn: The distinguished name.

    Keyword Args:
        remove_attribute_prefixes: If ``True``, strip the ``attr=`` part of
            every component and return only the values.

    Returns:
        The components (or their values).  An empty or malformed ``dn``
        gives an empty list.

    """
    if not parse_dn(dn):
        return []
    return ldap_explode_dn(
        dn, notypes=remove_attribute_prefixes, flags=DN_FORMAT_LDAPV3
    )


def get_rdn(dn: str) -> str:
    """
    Return the leftmost component of ``dn``, e.g. ``cn=Testing``.
    """
    rdns = parse_dn(dn)
    return dn2str(rdns[:1])


def get_parent_dn(dn: str) -> str:
    """
    Return ``dn`` without its leftmost component, or ``""`` if ``dn`` has only
    one component.
    """
    return dn2str(parse_dn(dn)[1:])
