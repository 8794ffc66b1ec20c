# mypy: disable-error-code="attr-defined"
"""
Directory connections.

:py:class:`ConnectionInterface` is the contract
:py:class:`~ldapentry.models.Entry` commits through.
:py:class:`LdapConnection` implements it on top of python-ldap, configured
from ``settings.LDAP_SERVERS``.
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager, suppress
from functools import wraps
from pathlib import Path
from typing import Any, cast

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.utils.encoding import DjangoUnicodeDecodeError, force_str
from django.utils.module_loading import import_string
from ldap import modlist
from ldap_filter import Filter

from ldapentry import ldap

from .modlist import Modification, ModType
from .schema import Schema
from .typing import (
    AddAttributes,
    AttributeValue,
    LDAPData,
    LDAPModlist,
    ModificationDict,
    RawAttributeSet,
)

logger = logging.getLogger("django-ldapentry")

#: The filter used to read back a single entry.
DEFAULT_READ_FILTER: str = "(objectclass=*)"

#: Modify-batch operation codes mapped to python-ldap's modify operations.
LDAP_MOD_OPS: dict[ModType, int] = {
    ModType.ADD: ldap.MOD_ADD,
    ModType.REPLACE: ldap.MOD_REPLACE,
    ModType.REMOVE_ALL: ldap.MOD_DELETE,
}

#: ``tls_verify`` settings mapped to python-ldap certificate checking levels.
TLS_REQUIRE_CERT: dict[str, int] = {
    "never": ldap.OPT_X_TLS_NEVER,
    "always": ldap.OPT_X_TLS_DEMAND,
}

#: TLS file settings, the options they set and how errors name them.
TLS_FILE_OPTIONS: tuple[tuple[str, int, str], ...] = (
    ("tls_ca_certfile", ldap.OPT_X_TLS_CACERTFILE, "CA certificate file"),
    ("tls_certfile", ldap.OPT_X_TLS_CERTFILE, "TLS certificate file"),
    ("tls_keyfile", ldap.OPT_X_TLS_KEYFILE, "TLS key file"),
)


@contextmanager
def bound_connection(connection: Any, key: str) -> Iterator[None]:
    """
    Hold a bound connection for the current thread while the block runs.

    A thread that already holds a connection keeps using it, and it is left
    open afterwards.  Otherwise a connection for ``key`` is opened first and
    always unbound when the block exits.

    Args:
        connection: An object with ``has_connection()``, ``connect(key)`` and
            ``disconnect()``, such as :py:class:`LdapConnection`.
        key: "read" or "write": which server settings to bind with.

    """
    if connection.has_connection():
        yield
        return
    connection.connect(key)
    try:
        yield
    finally:
        connection.disconnect()


def atomic(key: str = "read") -> Callable:
    """
    Run the decorated method inside :py:func:`bound_connection`.

    Args:
        key: "read" or "write": which server settings to bind with.

    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(self, *args, **kwargs) -> Any:
            with bound_connection(self, key):
                return func(self, *args, **kwargs)

        return wrapper

    return decorator


class ConnectionInterface(ABC):
    """
    The operations an :py:class:`~ldapentry.models.Entry` needs from the
    directory.

    Implementations report failures by raising; nothing in
    :py:mod:`ldapentry` catches or retries them.
    """

    @abstractmethod
    def add(self, dn: str, attributes: AddAttributes) -> bool:
        """
        Add a new entry at ``dn`` with ``attributes``.
        """

    @abstractmethod
    def read(
        self,
        dn: str,
        searchfilter: str = DEFAULT_READ_FILTER,
        attributes: list[str] | None = None,
    ) -> Any:
        """
        Read the entry at ``dn``.  The return value is only meaningful to
        :py:meth:`get_entries`.
        """

    @abstractmethod
    def get_entries(self, resource: Any) -> list[RawAttributeSet]:
        """
        Turn the result of :py:meth:`read` into raw attribute sets.
        """

    @abstractmethod
    def modify_batch(
        self, dn: str, modifications: Iterable[ModificationDict | Modification]
    ) -> bool:
        """
        Apply ``modifications`` to the entry at ``dn`` in one request.
        """

    @abstractmethod
    def delete(self, dn: str) -> bool:
        """
        Delete the entry at ``dn``.
        """

    @abstractmethod
    def rename(
        self,
        dn: str,
        new_rdn: str,
        new_parent_dn: str | None,
        delete_old_rdn: bool = True,
    ) -> bool:
        """
        Give the entry at ``dn`` the RDN ``new_rdn``, moving it under
        ``new_parent_dn`` if that is not ``None``.
        """


class LdapConnection(ConnectionInterface):
    """
    python-ldap implementation of :py:class:`ConnectionInterface`.

    Server settings come from ``settings.LDAP_SERVERS[key]``:

    .. code-block:: python

        LDAP_SERVERS = {
            "default": {
                "basedn": "dc=corp,dc=local",
                "schema": "ldapentry.schema.ActiveDirectorySchema",
                "read": {"url": "ldap://ldap.corp.local", "user": "...", "password": "..."},
                "write": {"url": "ldap://ldap.corp.local", "user": "...", "password": "..."},
            }
        }

    Each operation opens, binds and unbinds its own connection (see
    :py:func:`atomic`).  Connections are kept per thread, because python-ldap
    connection objects must not be shared between threads.

    Keyword Args:
        key: The key into ``settings.LDAP_SERVERS``.
        schema: The schema.  If not given, the ``schema`` dotted path from
            the server settings is instantiated, falling back to
            :py:class:`~ldapentry.schema.Schema`.

    Raises:
        ImproperlyConfigured: ``settings.LDAP_SERVERS`` or ``key`` is missing.

    """

    def __init__(self, key: str = "default", schema: Schema | None = None) -> None:
        self.key = key
        self.logger = logger
        try:
            self.config: dict[str, Any] = settings.LDAP_SERVERS[key]
        except AttributeError as e:
            msg = "settings.LDAP_SERVERS does not exist!"
            raise ImproperlyConfigured(msg) from e
        except KeyError as e:
            msg = f"settings.LDAP_SERVERS has no key '{key}'"
            raise ImproperlyConfigured(msg) from e
        #: The base DN new entries are created under, if configured.
        self.basedn: str | None = self.config.get("basedn")
        if schema is None:
            schema = import_string(self.config.get("schema", "ldapentry.schema.Schema"))()
        self.schema: Schema = cast("Schema", schema)
        # keys in this dictionary get manipulated by .connect() and .disconnect()
        self._ldap_objects: dict[threading.Thread, ldap.ldapobject.LDAPObject] = {}  # type: ignore[name-defined]

    # -----------------------
    # Connection management
    # -----------------------

    def disconnect(self) -> None:
        """
        Disconnect the current thread's LDAP connection.
        """
        try:
            self.connection.unbind_s()
        finally:
            self.remove_connection()

    def has_connection(self) -> bool:
        return threading.current_thread() in self._ldap_objects

    def set_connection(self, obj: ldap.ldapobject.LDAPObject) -> None:  # type: ignore[name-defined]
        self._ldap_objects[threading.current_thread()] = obj

    def remove_connection(self) -> None:
        del self._ldap_objects[threading.current_thread()]

    def _server_config(self, key: str) -> dict[str, Any]:
        try:
            return self.config[key]
        except KeyError as e:
            msg = f"settings.LDAP_SERVERS['{self.key}'] has no '{key}' key"
            raise ImproperlyConfigured(msg) from e

    def _server_options(self, config: dict[str, Any]) -> list[tuple[int, Any]]:
        """
        Turn one ``read`` or ``write`` settings section into the
        ``(option, value)`` pairs to set on a new LDAP object.

        Raises:
            ValueError: ``tls_verify`` is neither "never" nor "always".
            OSError: A configured CA certificate, certificate or key file
                does not exist or is not a file.

        """
        tls_verify = config.get("tls_verify", "never")
        if tls_verify not in TLS_REQUIRE_CERT:
            msg = f"Invalid tls_verify value: {tls_verify}"
            raise ValueError(msg)
        options: list[tuple[int, Any]] = [
            (ldap.OPT_REFERRALS, 1 if config.get("follow_referrals", False) else 0),
            (ldap.OPT_NETWORK_TIMEOUT, float(config.get("timeout", 15.0))),
        ]
        if sizelimit := config.get("sizelimit"):
            options.append((ldap.OPT_SIZELIMIT, int(sizelimit)))
        options.append((ldap.OPT_X_TLS_REQUIRE_CERT, TLS_REQUIRE_CERT[tls_verify]))
        for setting, option, label in TLS_FILE_OPTIONS:
            filename = config.get(setting)
            if not filename:
                continue
            path = Path(filename)
            if not path.exists():
                msg = f"{label} does not exist: {filename}"
                raise OSError(msg)
            if not path.is_file():
                msg = f"{label} is not a file: {filename}"
                raise OSError(msg)
            options.append((option, filename))
        # must come last so the TLS options above take effect
        options.append((ldap.OPT_X_TLS_NEWCTX, 0))
        return options

    def _connect(
        self, key: str, dn: str | None = None, password: str | None = None
    ) -> ldap.ldapobject.LDAPObject:  # type: ignore[name-defined]
        """
        Create, configure and bind a new LDAP connection object.  If StartTLS
        or the bind fails, the object is unbound before the error propagates.

        Args:
            key: "read" or "write": which part of our server settings to use.
            dn: Optional bind DN.
            password: Optional password.

        Raises:
            ImproperlyConfigured: The server settings have no ``key`` section.
            ValueError: If the ``tls_verify`` value in the configuration is invalid.
            OSError: If a configured CA certificate, certificate or key file
                does not exist or is not a file.

        Returns:
            A bound LDAPObject.

        """
        config = self._server_config(key)
        options = self._server_options(config)
        if not dn:
            dn = config["user"]
            password = config["password"]
        ldap_object: ldap.ldapobject.LDAPObject = ldap.initialize(config["url"])  # type: ignore[name-defined]
        try:
            for option, value in options:
                ldap_object.set_option(option, value)
            if config.get("use_starttls", True):
                ldap_object.start_tls_s()
            ldap_object.simple_bind_s(dn, password)
        except Exception:
            self.logger.warning(
                "ldapentry.connection.bind.failed url=%s dn=%s", config["url"], dn
            )
            with suppress(ldap.LDAPError):
                ldap_object.unbind_s()
            raise
        return ldap_object

    def connect(
        self, key: str, dn: str | None = None, password: str | None = None
    ) -> None:
        """
        Set the per-thread LDAP connection object. Used by the @atomic decorator.

        Args:
            key: "read" or "write".
            dn: Optional bind DN.
            password: Optional password.

        """
        self.set_connection(self._connect(key, dn=dn, password=password))

    @property
    def connection(self) -> ldap.ldapobject.LDAPObject:  # type: ignore[name-defined]
        """
        The current thread's LDAP connection object.
        """
        return self._ldap_objects[threading.current_thread()]

    # -----------------------
    # Value conversion
    # -----------------------

    def _encode_values(self, values: Iterable[AttributeValue]) -> list[bytes]:
        return [v if isinstance(v, bytes) else str(v).encode("utf-8") for v in values]

    def _get_modlist(
        self, modifications: Iterable[ModificationDict | Modification]
    ) -> LDAPModlist:
        """
        Convert modify-batch modifications into a python-ldap modlist.

        Args:
            modifications: :py:class:`~ldapentry.modlist.Modification` objects
                or their :py:meth:`~ldapentry.modlist.Modification.as_dict` form.

        Returns:
            A list of ``(op, attribute, values)`` tuples for ``modify_s``.

        """
        _modlist: LDAPModlist = []
        for modification in modifications:
            data = (
                modification.as_dict()
                if isinstance(modification, Modification)
                else modification
            )
            modtype = ModType(data["modtype"])
            values = None
            if modtype != ModType.REMOVE_ALL:
                values = self._encode_values(data["values"])
            _modlist.append((LDAP_MOD_OPS[modtype], data["attrib"], values))
        return _modlist

    # -----------------------
    # Directory operations
    # -----------------------

    @atomic(key="write")
    def add(self, dn: str, attributes: AddAttributes) -> bool:
        entry = {key: self._encode_values(values) for key, values in attributes.items()}
        self.connection.add_s(dn, modlist.addModlist(entry))
        self.logger.info("ldapentry.connection.add.success dn=%s", dn)
        return True

    @atomic(key="read")
    def read(
        self,
        dn: str,
        searchfilter: str = DEFAULT_READ_FILTER,
        attributes: list[str] | None = None,
    ) -> list[LDAPData]:
        """
        Do a ``SCOPE_BASE`` search for ``dn``.

        Raises:
            ldap_filter.parser.ParseError: ``searchfilter`` is not a valid filter.

        Returns:
            The ``(dn, attrs)`` tuples found; empty if ``dn`` does not exist.

        """
        searchfilter = Filter.parse(searchfilter).to_string()
        try:
            results = self.connection.search_s(
                dn, ldap.SCOPE_BASE, searchfilter, attributes or None
            )
        except ldap.NO_SUCH_OBJECT:
            self.logger.debug("ldapentry.connection.read.no-such-object dn=%s", dn)
            return []
        # AD can append search references, which have no attribute dict
        return [(_dn, attrs) for _dn, attrs in results if isinstance(attrs, dict)]

    def _decode_value(self, value: bytes) -> AttributeValue:
        try:
            return force_str(value)
        except DjangoUnicodeDecodeError:
            return value

    def get_entries(self, resource: list[LDAPData]) -> list[RawAttributeSet]:
        """
        Convert python-ldap search results into raw attribute sets: lower
        case attribute names, ``str`` values and the DN under
        :py:attr:`Schema.distinguished_name`.  Values of the schema's binary
        attributes, and any value that is not UTF-8 (photos, certificates),
        stay ``bytes``.
        """
        entries: list[RawAttributeSet] = []
        for dn, attrs in resource:
            entry: RawAttributeSet = {}
            for name, values in attrs.items():
                key = name.lower()
                if self.schema.is_binary(key):
                    entry[key] = list(values)
                else:
                    entry[key] = [self._decode_value(value) for value in values]
            entry[self.schema.distinguished_name] = dn
            entries.append(entry)
        return entries

    @atomic(key="write")
    def modify_batch(
        self, dn: str, modifications: Iterable[ModificationDict | Modification]
    ) -> bool:
        _modlist = self._get_modlist(modifications)
        self.connection.modify_s(dn, _modlist)
        self.logger.info(
            "ldapentry.connection.modify.success dn=%s attributes=%s",
            dn,
            ",".join(attrib for _, attrib, _ in _modlist),
        )
        return True

    @atomic(key="write")
    def delete(self, dn: str) -> bool:
        self.connection.delete_s(dn)
        self.logger.info("ldapentry.connection.delete.success dn=%s", dn)
        return True

    @atomic(key="write")
    def rename(
        self,
        dn: str,
        new_rdn: str,
        new_parent_dn: str | None,
        delete_old_rdn: bool = True,
    ) -> bool:
        self.connection.rename_s(
            dn, new_rdn, newsuperior=new_parent_dn, delold=int(delete_old_rdn)
        )
        self.logger.info(
            "ldapentry.connection.rename.success dn=%s new_rdn=%s new_parent_dn=%s",
            dn,
            new_rdn,
            new_parent_dn,
        )
        return True
