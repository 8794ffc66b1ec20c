"""
LDAP entry model.

This module provides :py:class:`Entry`, a mutable in-memory record of one
directory entry.  It tracks attribute changes in an
:py:class:`~ldapentry.attributes.AttributeStore` and commits them through a
:py:class:`~ldapentry.connections.ConnectionInterface`.
"""

import datetime
import logging
from typing import Any, cast

import pytz
from django.core.exceptions import ValidationError

from .attributes import AttributeStore
from .connections import DEFAULT_READ_FILTER, ConnectionInterface
from .dn import get_parent_dn
from .escaping import encode_password, escape_dn_value
from .modlist import Modification, Modlist
from .schema import ActiveDirectorySchema, Schema
from .sid import binary_sid_to_string
from .typing import AttributeValue, RawAttributeSet

logger = logging.getLogger("django-ldapentry")


class Entry:
    """
    One entry in the directory.

    A new entry starts out empty with :py:attr:`exists` ``False``; set its
    attributes and call :py:meth:`save` (or :py:meth:`create`).  An entry
    loaded with :py:meth:`set_raw_attributes` starts out clean, and
    :py:meth:`save` (or :py:meth:`update`) sends only what changed since.

    Example:

        .. code-block:: python

            entry = Entry(connection=connection, base_dn="dc=corp,dc=local")
            entry.set_common_name("John Doe")
            entry.save()        # adds cn=John Doe,dc=corp,dc=local

            entry.set_attribute("telephonenumber", ["555-1234"])
            entry.save()        # one modify with a single ADD

    Args:
        attributes: Initial attributes for a new entry.

    Keyword Args:
        connection: Where to commit changes.
        schema: The attribute name schema.  Defaults to a new
            :py:class:`~ldapentry.schema.ActiveDirectorySchema`.
        base_dn: The DN new entries are created under when no DN is set.

    """

    class DoesNotExist(Exception):
        """Raised when an entry is not found in the directory."""

    #: Formats for generalized time values, tried in order.
    LDAP_DATETIME_FORMATS: tuple[str, ...] = (
        "%Y%m%d%H%M%S.0Z",
        "%Y%m%d%H%M%SZ",
        "%Y%m%d%H%M%S+0000",
    )

    def __init__(
        self,
        attributes: RawAttributeSet | None = None,
        connection: ConnectionInterface | None = None,
        schema: Schema | None = None,
        base_dn: str | None = None,
    ) -> None:
        self.schema: Schema = schema or ActiveDirectorySchema()
        self.connection = connection
        self.base_dn = base_dn
        self.store = AttributeStore(self.schema, attributes=attributes)
        self.modlist = Modlist(self.schema)

    # -----------------------
    # State
    # -----------------------

    @property
    def exists(self) -> bool:
        """
        ``True`` if the entry is known to be in the directory.
        """
        return self.store.exists

    @exists.setter
    def exists(self, value: bool) -> None:
        self.store.exists = value

    def set_raw_attributes(self, raw: RawAttributeSet) -> "Entry":
        """
        Load ``raw``, as read from the directory, as this entry's clean state.

        Args:
            raw: The attributes of the entry, DN included.

        Returns:
            This entry.

        """
        self.store.load(raw)
        return self

    def get_attributes(self) -> RawAttributeSet:
        """
        Return a copy of the current attributes.
        """
        return dict(self.store.current)

    def get_original(self) -> RawAttributeSet:
        """
        Return a copy of the attributes as last loaded or saved.
        """
        return dict(self.store.original)

    def get_modifications(self) -> list[Modification]:
        """
        Return the changes made since the entry was loaded or last saved.
        """
        return self.modlist.diff(self.store.original, self.store.current)

    def is_dirty(self) -> bool:
        return self.store.is_dirty()

    # -----------------------
    # Generic accessors
    # -----------------------

    def get_attribute(self, name: str) -> list[AttributeValue] | None:
        return self.store.get(name)

    def get_first_attribute(self, name: str) -> AttributeValue | None:
        return self.store.get_first(name)

    def set_attribute(self, name: str, value: Any) -> "Entry":
        """
        Set ``name`` to ``value``.  ``None`` clears the attribute.

        Returns:
            This entry.

        """
        self.store.set(name, value)
        return self

    def unset_attribute(self, name: str) -> "Entry":
        self.store.unset(name)
        return self

    def has_attribute(self, name: str) -> bool:
        return self.store.has(name)

    def get_dn(self) -> str | None:
        return self.store.get_dn()

    def set_dn(self, dn: str | None) -> "Entry":
        self.store.set_dn(dn)
        return self

    def get_parent_dn(self) -> str | None:
        dn = self.get_dn()
        if not dn:
            return None
        return get_parent_dn(dn)

    # -----------------------
    # Typed accessors
    # -----------------------

    def _get_string(self, name: str) -> str | None:
        value = self.get_first_attribute(name)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def get_common_name(self) -> str | None:
        return self._get_string(self.schema.common_name)

    def set_common_name(self, value: str | None) -> "Entry":
        return self.set_attribute(self.schema.common_name, value)

    def get_name(self) -> str | None:
        return self._get_string(self.schema.name)

    def set_name(self, value: str | None) -> "Entry":
        return self.set_attribute(self.schema.name, value)

    def get_display_name(self) -> str | None:
        return self._get_string(self.schema.display_name)

    def set_display_name(self, value: str | None) -> "Entry":
        return self.set_attribute(self.schema.display_name, value)

    def get_description(self) -> str | None:
        return self._get_string(self.schema.description)

    def set_description(self, value: str | None) -> "Entry":
        return self.set_attribute(self.schema.description, value)

    def get_object_class(self) -> list[AttributeValue]:
        return self.get_attribute(self.schema.object_class) or []

    def get_object_sid(self) -> str | None:
        """
        Return the entry's SID in its textual form.

        Returns:
            The SID, or ``None`` if the schema has no SID attribute or the
            entry has no SID.

        """
        if not self.schema.object_sid:
            return None
        value = self.get_first_attribute(self.schema.object_sid)
        if isinstance(value, bytes):
            return binary_sid_to_string(value)
        return value

    def _get_datetime(self, name: str) -> datetime.datetime | None:
        value = self._get_string(name)
        if not value:
            return None
        for fmt in self.LDAP_DATETIME_FORMATS:
            try:
                dt = datetime.datetime.strptime(value, fmt)  # noqa: DTZ007
            except ValueError:  # noqa: PERF203
                continue
            return pytz.utc.localize(dt)
        msg = f"LDAP datetime '{value}' value is not in a supported format"
        raise ValidationError(msg, code="invalid_ldap_datetime", params={"value": value})

    def get_created_at(self) -> datetime.datetime | None:
        """
        Return when the entry was created, as an aware UTC datetime.

        Raises:
            ValidationError: the stored value is not generalized time.

        """
        return self._get_datetime(self.schema.created_at)

    def get_updated_at(self) -> datetime.datetime | None:
        """
        Return when the entry was last changed, as an aware UTC datetime.

        Raises:
            ValidationError: the stored value is not generalized time.

        """
        return self._get_datetime(self.schema.updated_at)

    def set_password(self, password: str) -> "Entry":
        """
        Set the entry's password attribute.

        For Active Directory schemas the password is written to
        ``unicodePwd`` in the encoding :py:func:`~ldapentry.escaping.encode_password`
        produces; other schemas get the clear text value.

        Args:
            password: The clear text password.

        Returns:
            This entry.

        """
        value: AttributeValue = password
        if isinstance(self.schema, ActiveDirectorySchema):
            value = encode_password(password)
        return self.set_attribute(self.schema.password, value)

    def convert_string_to_bool(self, value: Any) -> bool | None:
        """
        Convert the directory's spelling of a boolean into a ``bool``.

        Args:
            value: The attribute value, e.g. ``"TRUE"``.

        Returns:
            ``True`` or ``False``, or ``None`` if ``value`` is neither of the
            schema's boolean strings.

        """
        if not isinstance(value, str):
            return None
        if value.upper() == self.schema.true.upper():
            return True
        if value.upper() == self.schema.false.upper():
            return False
        return None

    # -----------------------
    # Persistence
    # -----------------------

    def _require_connection(self) -> ConnectionInterface:
        if self.connection is None:
            msg = f"{self!r} has no connection to commit through."
            raise ValidationError(msg, code="no_connection")
        return self.connection

    def _require_persisted_dn(self, action: str) -> str:
        if not self.exists:
            msg = f"Cannot {action} {self!r}: it does not exist in the directory."
            raise ValidationError(msg, code="does_not_exist")
        dn = self.get_dn()
        if not dn:
            msg = f"Cannot {action} {self!r}: it has no distinguished name."
            raise ValidationError(msg, code="no_dn")
        return dn

    def get_create_dn(self) -> str:
        """
        Return the DN :py:meth:`create` will add the entry at: the DN that was
        set explicitly, or ``<naming attribute>=<value>,<base_dn>``.

        Raises:
            ValidationError: There is no DN and one cannot be built.

        Returns:
            The DN.

        """
        dn = self.get_dn()
        if dn:
            return dn
        naming_attribute = self.schema.get_naming_attribute()
        value = self._get_string(naming_attribute)
        if not value or not self.base_dn:
            msg = (
                f"Cannot build a DN for {self!r}: it needs a '{naming_attribute}' "
                "value and a base DN."
            )
            raise ValidationError(msg, code="no_dn")
        return f"{naming_attribute}={escape_dn_value(value)},{self.base_dn}"

    def create(self) -> bool:
        """
        Add this entry to the directory, then read it back so that the
        server's copy becomes the entry's clean state.

        Raises:
            ValidationError: The entry already exists, or has no DN and one
                cannot be built.

        Returns:
            ``True``.

        """
        if self.exists:
            msg = f"Cannot create {self!r}: it already exists."
            raise ValidationError(msg, code="exists")
        dn = self.get_create_dn()
        connection = self._require_connection()
        attributes = self.modlist.add(self.store.current)
        connection.add(dn, attributes)
        logger.info("ldapentry.entry.create.success dn=%s", dn)
        entries = connection.get_entries(connection.read(dn, DEFAULT_READ_FILTER, []))
        if entries:
            raw = dict(entries[0])
            raw.setdefault(self.schema.distinguished_name, dn)
            self.store.load(raw)
        else:
            # read back came up empty: what we sent is what the server has
            self.store.set_dn(dn)
            self.store.load(self.store.current)
        return True

    def update(self) -> bool:
        """
        Send the changes made since the entry was loaded as one modify-batch.
        Does nothing if there are no changes.

        Raises:
            ValidationError: The entry does not exist or has no DN.

        Returns:
            ``True``.

        """
        dn = self._require_persisted_dn("update")
        modifications = self.get_modifications()
        if not modifications:
            logger.debug("ldapentry.entry.update.no-changes dn=%s", dn)
            return True
        self._require_connection().modify_batch(
            dn, [modification.as_dict() for modification in modifications]
        )
        self.store.sync()
        return True

    def save(self) -> bool:
        """
        :py:meth:`create` the entry if it does not exist yet, else
        :py:meth:`update` it.
        """
        if self.exists:
            return self.update()
        return self.create()

    def delete(self) -> bool:
        """
        Delete this entry from the directory.

        Raises:
            ValidationError: The entry does not exist or has no DN.

        Returns:
            ``True``.

        """
        dn = self._require_persisted_dn("delete")
        self._require_connection().delete(dn)
        self.exists = False
        logger.info("ldapentry.entry.delete.success dn=%s", dn)
        return True

    def move(
        self, new_rdn: str, new_parent_dn: str | None, delete_old_rdn: bool = True
    ) -> bool:
        """
        Rename this entry to ``new_rdn`` under ``new_parent_dn``.

        The entry's attributes, DN included, are left as they are; load the
        entry again from its new DN to see the server's view of it.

        Args:
            new_rdn: The new RDN, e.g. ``cn=John``.
            new_parent_dn: The new parent, or ``None`` to stay put.

        Keyword Args:
            delete_old_rdn: Remove the old RDN value from the entry.

        Raises:
            ValidationError: The entry has no DN.

        Returns:
            Whatever the connection's rename returned.

        """
        dn = self.get_dn()
        if not dn:
            msg = f"Cannot move {self!r}: it has no distinguished name."
            raise ValidationError(msg, code="no_dn")
        return self._require_connection().rename(dn, new_rdn, new_parent_dn, delete_old_rdn)

    def rename(self, new_rdn: str, delete_old_rdn: bool = True) -> bool:
        """
        Change this entry's RDN without moving it.
        """
        return self.move(new_rdn, None, delete_old_rdn=delete_old_rdn)

    def refresh(self) -> "Entry":
        """
        Reload this entry from the directory, discarding unsaved changes.

        Raises:
            ValidationError: The entry has no DN.
            DoesNotExist: The directory has no entry at our DN.

        Returns:
            This entry.

        """
        dn = self.get_dn()
        if not dn:
            msg = f"Cannot refresh {self!r}: it has no distinguished name."
            raise ValidationError(msg, code="no_dn")
        connection = self._require_connection()
        entries = connection.get_entries(connection.read(dn, DEFAULT_READ_FILTER, []))
        if not entries:
            msg = f"No entry exists at '{dn}'."
            raise self.DoesNotExist(msg)
        return self.set_raw_attributes(entries[0])

    # -----------------------
    # Single attribute operations
    # -----------------------

    def _commit_one(self, action: str, modification: Modification) -> str:
        dn = self._require_persisted_dn(action)
        self._require_connection().modify_batch(dn, [modification.as_dict()])
        logger.info(
            "ldapentry.entry.%s.success dn=%s attribute=%s",
            action.replace(" ", "-"),
            dn,
            modification.attrib,
        )
        return dn

    def create_attribute(self, name: str, value: Any) -> bool:
        """
        Add ``value`` to ``name`` in the directory right away, without
        diffing the rest of the entry.  Values ``name`` already has are kept,
        here and on the server.

        Raises:
            ValidationError: The entry does not exist or has no DN.

        Returns:
            ``True``.

        """
        modification = self.modlist.create_attribute(name, value)
        self._commit_one("create attribute", modification)
        self.store.apply_added(name, list(cast("tuple", modification.values)))
        return True

    def update_attribute(self, name: str, value: Any) -> bool:
        """
        Replace the values of ``name`` in the directory right away.

        Raises:
            ValidationError: The entry does not exist or has no DN.

        Returns:
            ``True``.

        """
        modification = self.modlist.update_attribute(name, value)
        self._commit_one("update attribute", modification)
        self.store.apply(name, list(cast("tuple", modification.values)))
        return True

    def delete_attribute(self, name: str) -> bool:
        """
        Remove ``name`` from the entry in the directory right away.

        Raises:
            ValidationError: The entry does not exist or has no DN.

        Returns:
            ``True``.

        """
        self._commit_one("delete attribute", self.modlist.delete_attribute(name))
        self.store.apply(name, None)
        return True

    # -----------------------
    # Dunder methods
    # -----------------------

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}: {self}>"

    def __str__(self) -> str:
        return f"{self.__class__.__name__} object ({self.get_dn()})"

    def __eq__(self, other: object) -> bool:
        """
        Two entries are equal when they are of the same class and have the
        same DN.  Entries without a DN are only equal to themselves.
        """
        if not isinstance(other, Entry) or type(self) is not type(other):
            return False
        dn = self.get_dn()
        if dn is None:
            return self is other
        other_dn = other.get_dn()
        return other_dn is not None and dn.lower() == other_dn.lower()

    def __hash__(self) -> int:
        """
        Hash by lower-cased DN, to agree with :py:meth:`__eq__`.  Entries
        without a DN hash by identity.

        The hash changes with the DN, so an entry must not be renamed with
        :py:meth:`set_dn` while it is in a set or used as a dict key.
        """
        dn = self.get_dn()
        return hash(dn.lower() if dn else id(self))
