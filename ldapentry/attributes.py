"""
In-memory attribute storage for LDAP entries.
"""

import copy
from typing import Any

from .modlist import normalize_values
from .schema import Schema
from .typing import AttributeValue, RawAttributeSet


class AttributeStore:
    """
    Holds two snapshots of an entry's attributes: ``original``, as last
    loaded from (or written to) the directory, and ``current``, which callers
    mutate freely.

    Attribute names are case-insensitive in LDAP, so they are stored lower
    case.  Every value is a list, except for the distinguished name, which is
    kept as a single string under :py:attr:`Schema.distinguished_name`.

    A store is owned by a single :py:class:`~ldapentry.models.Entry` and is
    not safe to mutate from several threads at once.

    Args:
        schema: The attribute name schema.

    Keyword Args:
        attributes: Initial attributes for a brand new entry.  These go into
            ``current`` only, so all of them count as changes.

    """

    def __init__(self, schema: Schema, attributes: RawAttributeSet | None = None) -> None:
        self.schema = schema
        #: The attributes as they were last loaded from the directory.
        self.original: RawAttributeSet = {}
        #: The attributes as they are now.
        self.current: RawAttributeSet = {}
        #: ``True`` once ``original`` reflects an entry that is in the directory.
        self.exists: bool = False
        for name, value in (attributes or {}).items():
            self.set(name, value)

    def _normalize(self, raw: RawAttributeSet) -> RawAttributeSet:
        normalized: RawAttributeSet = {}
        for name, value in raw.items():
            key = name.lower()
            if key == self.schema.distinguished_name:
                normalized[key] = self._normalize_dn(value)
            else:
                normalized[key] = normalize_values(value)
        return normalized

    def _normalize_dn(self, value: Any) -> str | None:
        if isinstance(value, (list, tuple)):
            value = value[0] if value else None
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value or None

    def load(self, raw: RawAttributeSet) -> None:
        """
        Replace both snapshots with ``raw``, as read from the directory, and
        mark the entry as existing.

        Args:
            raw: The attributes of the entry, including its DN.

        """
        normalized = self._normalize(raw)
        self.original = copy.deepcopy(normalized)
        self.current = copy.deepcopy(normalized)
        self.exists = True

    def sync(self) -> None:
        """
        Make ``original`` match ``current`` after a successful write.
        """
        self.original = copy.deepcopy(self.current)

    def get(self, name: str) -> list[AttributeValue] | None:
        """
        Return a copy of the values of ``name``, or ``None`` if it is not set.
        """
        values = self.current.get(name.lower())
        if values is None:
            return None
        return list(values)

    def get_first(self, name: str) -> AttributeValue | None:
        """
        Return the first value of ``name``, or ``None``.
        """
        values = self.current.get(name.lower())
        if not values:
            return None
        return values[0]

    def set(self, name: str, value: Any) -> None:
        """
        Set the values of ``name``.

        A single value is wrapped in a list, and ``None`` clears the
        attribute, which removes it from the directory on the next update.
        Setting :py:attr:`Schema.distinguished_name` sets the DN instead.

        Args:
            name: The attribute name.
            value: A value, a list of values, or ``None``.

        """
        key = name.lower()
        if key == self.schema.distinguished_name:
            self.current[key] = self._normalize_dn(value)
        else:
            self.current[key] = normalize_values(value)

    def unset(self, name: str) -> None:
        """
        Remove ``name`` from the current attributes entirely.
        """
        self.current.pop(name.lower(), None)

    def has(self, name: str) -> bool:
        return name.lower() in self.current

    def get_dn(self) -> str | None:
        return self.current.get(self.schema.distinguished_name)

    def set_dn(self, dn: str | None) -> None:
        self.set(self.schema.distinguished_name, dn)

    def apply(self, name: str, value: Any) -> None:
        """
        Set ``name`` in both snapshots, for a change that has already been
        written to the directory.  ``None`` removes it from both.
        """
        key = name.lower()
        if value is None:
            self.current.pop(key, None)
            self.original.pop(key, None)
            return
        self.set(key, value)
        self.original[key] = copy.deepcopy(self.current[key])

    def apply_added(self, name: str, values: Any) -> None:
        """
        Record that ``values`` were added to ``name`` in the directory.  The
        directory appends them to the values it already had, so both
        snapshots become the original values followed by ``values``.
        """
        key = name.lower()
        self.apply(key, list(self.original.get(key) or []) + normalize_values(values))

    def is_dirty(self) -> bool:
        return self.original != self.current

    def __repr__(self) -> str:
        return f"<AttributeStore: exists={self.exists} dn={self.get_dn()}>"
