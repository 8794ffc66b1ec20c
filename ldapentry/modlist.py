"""
Change sets for LDAP entries.

This module turns the difference between an entry's original attributes and
its current attributes into an ordered list of :py:class:`Modification`
objects, ready to be handed to a modify-batch call.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import IntEnum
from typing import Any

from .schema import Schema
from .typing import AddAttributes, AttributeValue, ModificationDict, RawAttributeSet


class ModType(IntEnum):
    """
    Modify-batch operation codes.
    """

    #: Add values to an attribute, creating it if needed.
    ADD = 1
    #: Replace every value of an attribute.
    REPLACE = 3
    #: Remove the attribute and all its values.
    REMOVE_ALL = 18


def normalize_values(value: Any) -> list[AttributeValue]:
    """
    Coerce ``value`` into a list of attribute values.

    ``None`` becomes ``[]``, a single ``str`` or ``bytes`` becomes a one
    element list, and any other iterable is copied into a list.

    Args:
        value: The value to normalize.

    Returns:
        A new list.

    """
    if value is None:
        return []
    if isinstance(value, (str, bytes)):
        return [value]
    if isinstance(value, Iterable):
        return list(value)
    return [str(value)]


@dataclass(frozen=True)
class Modification:
    """
    One operation of a modify-batch call.

    Args:
        attrib: The attribute name.
        modtype: The operation.
        values: The values for :py:attr:`ModType.ADD` and
            :py:attr:`ModType.REPLACE`; always ``None`` for
            :py:attr:`ModType.REMOVE_ALL`.

    """

    attrib: str
    modtype: ModType
    values: tuple[AttributeValue, ...] | None = None

    def __post_init__(self) -> None:
        if self.modtype == ModType.REMOVE_ALL:
            if self.values is not None:
                msg = f"REMOVE_ALL modification for '{self.attrib}' cannot carry values"
                raise ValueError(msg)
        elif not self.values:
            msg = f"{self.modtype.name} modification for '{self.attrib}' needs values"
            raise ValueError(msg)

    @classmethod
    def add(cls, attrib: str, values: Any) -> "Modification":
        return cls(attrib, ModType.ADD, tuple(normalize_values(values)))

    @classmethod
    def replace(cls, attrib: str, values: Any) -> "Modification":
        return cls(attrib, ModType.REPLACE, tuple(normalize_values(values)))

    @classmethod
    def remove(cls, attrib: str) -> "Modification":
        return cls(attrib, ModType.REMOVE_ALL)

    def as_dict(self) -> ModificationDict:
        """
        Return the modify-batch wire shape:

        .. code-block:: python

            {"attrib": "cn", "modtype": 3, "values": ["New Name"]}

        ``values`` is left out for removals.

        Returns:
            A new dictionary.

        """
        data: ModificationDict = {"attrib": self.attrib, "modtype": int(self.modtype)}
        if self.values is not None:
            data["values"] = list(self.values)
        return data


class Modlist:
    """
    Helper for building the change sets for add and modify operations.

    Args:
        schema: The schema, used to find the reserved DN key so that it never
            shows up as an attribute change.

    """

    def __init__(self, schema: Schema) -> None:
        self.schema = schema

    def _is_attribute(self, key: str) -> bool:
        return key.lower() != self.schema.distinguished_name

    def _by_name(self, attributes: RawAttributeSet) -> RawAttributeSet:
        # attribute names are case-insensitive
        return {key.lower(): value for key, value in attributes.items()}

    def diff(
        self, original: RawAttributeSet, current: RawAttributeSet
    ) -> list[Modification]:
        """
        Build the modifications that turn ``original`` into ``current``.

        Attributes that already existed come first, in the order of
        ``original``: removed or emptied ones become
        :py:attr:`ModType.REMOVE_ALL`, changed ones become
        :py:attr:`ModType.REPLACE`.  Attributes that are new in ``current``
        follow, in the order of ``current``, as :py:attr:`ModType.ADD`.  The
        same inputs always produce the same list.

        Attribute names are compared case-insensitively and come back lower
        case.

        Args:
            original: The attributes as they were loaded from the directory.
            current: The attributes as they are now.

        Returns:
            The ordered list of modifications; empty if nothing changed.

        """
        modifications: list[Modification] = []
        original = self._by_name(original)
        current = self._by_name(current)
        for key, old_values in original.items():
            if not self._is_attribute(key):
                continue
            new_values = current.get(key)
            if not new_values:
                modifications.append(Modification.remove(key))
            elif list(new_values) != list(old_values or []):
                modifications.append(Modification.replace(key, new_values))
        for key, new_values in current.items():
            if key in original or not self._is_attribute(key):
                continue
            if new_values:
                modifications.append(Modification.add(key, new_values))
        return modifications

    def add(self, attributes: RawAttributeSet) -> AddAttributes:
        """
        Build the attribute mapping for adding a new entry.

        The DN key is dropped and so are attributes with no values, since an
        add request may not carry empty attributes.

        Args:
            attributes: The entry's current attributes.

        Returns:
            A new mapping of attribute name to list of values.

        """
        new: AddAttributes = {}
        for key, value in self._by_name(attributes).items():
            if not self._is_attribute(key):
                continue
            values = normalize_values(value)
            if values:
                new[key] = values
        return new

    def create_attribute(self, attribute: str, value: Any) -> Modification:
        """
        Build a single :py:attr:`ModType.ADD` modification for ``attribute``.
        """
        return Modification.add(attribute, value)

    def update_attribute(self, attribute: str, value: Any) -> Modification:
        """
        Build a single :py:attr:`ModType.REPLACE` modification for ``attribute``.
        """
        return Modification.replace(attribute, value)

    def delete_attribute(self, attribute: str) -> Modification:
        """
        Build a single :py:attr:`ModType.REMOVE_ALL` modification for ``attribute``.
        """
        return Modification.remove(attribute)
