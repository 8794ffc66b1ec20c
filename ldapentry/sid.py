"""
Security identifier (SID) helpers for Active Directory.
"""

import re
from typing import Any

#: ``S-<revision>-<identifier authority>-<sub authority>[-<sub authority>...]``
SID_REGEX = re.compile(r"S-[0-9]+-[0-9]+(?:-[0-9]+)+")

#: Bytes before the first sub authority: revision, count, 6 byte authority.
SID_HEADER_LENGTH: int = 8


def is_valid_sid(sid: Any) -> bool:
    """
    Return ``True`` if ``sid`` is a SID in its textual form.

    Args:
        sid: The value to check.

    Returns:
        Whether ``sid`` looks like ``S-1-5-21-...``.

    """
    if not isinstance(sid, str):
        return False
    return SID_REGEX.fullmatch(sid) is not None


def binary_sid_to_string(value: bytes) -> str:
    """
    Convert the binary ``objectSid`` form returned by Active Directory into
    its textual form.

    The binary layout is one revision byte, one byte holding the number of
    sub authorities, the identifier authority as a 6 byte big-endian integer,
    then each sub authority as a 4 byte little-endian integer.

    Args:
        value: The raw ``objectSid`` value.

    Raises:
        ValueError: ``value`` is shorter than its header says it should be.

    Returns:
        The SID as a string, e.g. ``S-1-5-21-3623811015-3361044348-30300820-1013``.

    """
    if len(value) < SID_HEADER_LENGTH:
        msg = f"Binary SID is too short: {len(value)} bytes"
        raise ValueError(msg)
    revision = value[0]
    count = value[1]
    expected = SID_HEADER_LENGTH + count * 4
    if len(value) < expected:
        msg = (
            f"Binary SID claims {count} sub authorities but is only "
            f"{len(value)} bytes long"
        )
        raise ValueError(msg)
    authority = int.from_bytes(value[2:SID_HEADER_LENGTH], byteorder="big")
    parts = [f"S-{revision}-{authority}"]
    for index in range(count):
        offset = SID_HEADER_LENGTH + index * 4
        parts.append(str(int.from_bytes(value[offset : offset + 4], byteorder="little")))
    return "-".join(parts)
