"""
Entry manager.

:py:class:`EntryManager` hands out :py:class:`~ldapentry.models.Entry`
objects that share one connection, schema and base DN, and fetches existing
entries by DN.
"""

import logging
from typing import Any

from .connections import DEFAULT_READ_FILTER, ConnectionInterface, LdapConnection
from .models import Entry
from .schema import ActiveDirectorySchema, Schema
from .typing import RawAttributeSet

logger = logging.getLogger("django-ldapentry")


class EntryManager:
    """
    Factory and lookup helper for entries in one directory.

    Args:
        connection: Where entries commit their changes.

    Keyword Args:
        schema: The attribute name schema.  Defaults to the connection's
            ``schema`` attribute if it has one, else a new
            :py:class:`~ldapentry.schema.ActiveDirectorySchema`.
        base_dn: The DN new entries are created under.  Defaults to the
            connection's ``basedn`` attribute if it has one.

    """

    #: The entry class to instantiate.
    entry_class: type[Entry] = Entry

    def __init__(
        self,
        connection: ConnectionInterface,
        schema: Schema | None = None,
        base_dn: str | None = None,
    ) -> None:
        self.connection = connection
        self.schema: Schema = (
            schema or getattr(connection, "schema", None) or ActiveDirectorySchema()
        )
        self.base_dn: str | None = base_dn or getattr(connection, "basedn", None)

    @classmethod
    def from_settings(cls, key: str = "default") -> "EntryManager":
        """
        Build a manager backed by an :py:class:`~ldapentry.connections.LdapConnection`
        for ``settings.LDAP_SERVERS[key]``.

        Args:
            key: The key into ``settings.LDAP_SERVERS``.

        Raises:
            ImproperlyConfigured: ``settings.LDAP_SERVERS`` or ``key`` is missing.

        Returns:
            A new manager.

        """
        return cls(LdapConnection(key))

    def new(self, attributes: RawAttributeSet | None = None, **kwargs: Any) -> Entry:
        """
        Return a new, unsaved entry.

        Args:
            attributes: Initial attributes.
            **kwargs: More initial attributes, e.g. ``cn="John Doe"``.

        Returns:
            The new entry.

        """
        initial = dict(attributes or {})
        initial.update(kwargs)
        return self.entry_class(
            initial, connection=self.connection, schema=self.schema, base_dn=self.base_dn
        )

    def create(self, attributes: RawAttributeSet | None = None, **kwargs: Any) -> Entry:
        """
        Create a new entry in the directory and return it.

        Raises:
            ValidationError: The entry has no DN and one cannot be built.

        Returns:
            The created entry, loaded from the server's copy.

        """
        entry = self.new(attributes, **kwargs)
        entry.create()
        return entry

    def get_by_dn(self, dn: str) -> Entry:
        """
        Fetch the entry at ``dn``.

        Args:
            dn: The distinguished name.

        Raises:
            Entry.DoesNotExist: There is no entry at ``dn``.

        Returns:
            The entry, with :py:attr:`~ldapentry.models.Entry.exists` ``True``.

        """
        entries = self.connection.get_entries(
            self.connection.read(dn, DEFAULT_READ_FILTER, [])
        )
        if not entries:
            logger.debug("ldapentry.manager.get_by_dn.does-not-exist dn=%s", dn)
            msg = f"An entry matching dn '{dn}' does not exist."
            raise self.entry_class.DoesNotExist(msg)
        entry = self.new()
        entry.set_raw_attributes(entries[0])
        return entry
