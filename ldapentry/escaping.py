"""
Escaping of directory values.

This module provides the escaping rules for values that end up inside LDAP
search filters (:rfc:`4515`) or distinguished names (:rfc:`4514`), the inverse
unescaping, and the encoding Active Directory expects for the
``unicodePwd`` attribute.
"""

import re
from collections.abc import Iterable
from enum import IntEnum


class EscapeContext(IntEnum):
    """
    Which set of characters :py:func:`escape` should escape.

    The integer values match the flag values used on the wire by other LDAP
    client libraries, so a bare ``int`` may be passed wherever an
    :py:class:`EscapeContext` is expected.
    """

    #: Escape every character that is not ignored.
    UNSPECIFIED = 0
    #: Escape the characters that are special inside a search filter.
    FILTER = 1
    #: Escape the characters that are special inside a distinguished name.
    DN = 2
    #: Escape the union of :py:attr:`FILTER` and :py:attr:`DN`.
    BOTH = 3


#: Characters escaped in filter context.
FILTER_CHARACTERS: frozenset[str] = frozenset("()*\\\x00")
#: Characters escaped anywhere in a distinguished name value.
DN_CHARACTERS: frozenset[str] = frozenset(',+"\\<>;=#')

_ESCAPED_RUN = re.compile(r"(?:\\[0-9a-fA-F]{2})+")


def _must_escape(char: str, position: int, length: int, flags: EscapeContext) -> bool:
    if flags == EscapeContext.UNSPECIFIED:
        return True
    if flags & EscapeContext.FILTER and char in FILTER_CHARACTERS:
        return True
    if flags & EscapeContext.DN:
        if char in DN_CHARACTERS:
            return True
        # leading and trailing spaces are significant in a DN value
        if char == " " and position in (0, length - 1):
            return True
    return False


def _hex_escape(char: str) -> str:
    return "".join(f"\\{byte:02x}" for byte in char.encode("utf-8"))


def escape(
    value: str,
    ignore: Iterable[str] = "",
    flags: EscapeContext | int = EscapeContext.UNSPECIFIED,
) -> str:
    """
    Escape ``value`` for use in an LDAP filter or distinguished name.

    Each character that must be escaped is replaced by a backslash followed by
    the two lowercase hex digits of each of its UTF-8 bytes.  Characters in
    ``ignore`` are always left alone.

    Example:

        .. code-block:: python

            >>> escape("*^&.:foo()-=", ignore="*", flags=EscapeContext.BOTH)
            '*^&.:foo\\\\28\\\\29-\\\\3d'

    Args:
        value: The value to escape.

    Keyword Args:
        ignore: Characters that must never be escaped.
        flags: The context the value will be used in.  With
            :py:attr:`EscapeContext.UNSPECIFIED` every character is escaped.

    Raises:
        ValueError: ``flags`` is not a valid :py:class:`EscapeContext` value.

    Returns:
        The escaped value.

    """
    flags = EscapeContext(flags)
    ignored = set(ignore)
    length = len(value)
    escaped = []
    for position, char in enumerate(value):
        if char not in ignored and _must_escape(char, position, length, flags):
            escaped.append(_hex_escape(char))
        else:
            escaped.append(char)
    return "".join(escaped)


def escape_filter_value(value: str, ignore: Iterable[str] = "") -> str:
    """
    Escape ``value`` for use inside a search filter assertion.
    """
    return escape(value, ignore=ignore, flags=EscapeContext.FILTER)


def escape_dn_value(value: str, ignore: Iterable[str] = "") -> str:
    """
    Escape ``value`` for use as the value part of an RDN.
    """
    return escape(value, ignore=ignore, flags=EscapeContext.DN)


def _unescape_run(match: re.Match) -> str:
    data = bytes.fromhex(match.group(0).replace("\\", ""))
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        # Not UTF-8: treat every byte as a code point of its own
        return data.decode("latin-1")


def unescape(value: str) -> str:
    """
    Replace every ``\\XX`` hex escape in ``value`` with the character it
    encodes.

    Consecutive escapes are decoded together as UTF-8 so that multi-byte
    characters escaped by :py:func:`escape` come back intact.

    Args:
        value: The escaped value.

    Returns:
        The unescaped value.

    """
    return _ESCAPED_RUN.sub(_unescape_run, value)


def encode_password(password: str) -> bytes:
    """
    Encode ``password`` the way Active Directory wants it in ``unicodePwd``:
    wrapped in double quotes and encoded as UTF-16LE.

    Args:
        password: The clear text password.

    Returns:
        The encoded password.

    """
    return f'"{password}"'.encode("utf-16-le")
