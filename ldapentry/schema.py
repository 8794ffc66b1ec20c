"""
Attribute name schemas.

A :py:class:`Schema` tells :py:class:`~ldapentry.models.Entry` and
:py:class:`~ldapentry.attributes.AttributeStore` which LDAP attribute backs
each typed accessor.  Schemas are plain objects passed in at construction
time; pick one per directory flavor, or subclass to rename attributes.

All attribute names are lower case because
:py:class:`~ldapentry.attributes.AttributeStore` normalizes names to lower
case.
"""


class Schema:
    """
    The attribute names common to every directory flavor.
    """

    #: The reserved key that holds an entry's distinguished name.
    distinguished_name: str = "dn"
    #: The common name attribute.
    common_name: str = "cn"
    #: The attribute used as the leftmost RDN when synthesizing a DN.  ``None``
    #: means :py:attr:`common_name`.
    naming_attribute: str | None = None
    #: The relative name of the entry.
    name: str = "name"
    #: The display name.
    display_name: str = "displayname"
    #: The free-form description.
    description: str = "description"
    #: The objectclasses of the entry.
    object_class: str = "objectclass"
    #: The given name of a person.
    first_name: str = "givenname"
    #: The surname of a person.
    last_name: str = "sn"
    #: The login name of an account.
    account_name: str = "uid"
    #: The attribute a password is written to.
    password: str = "userpassword"
    #: The generalized time the entry was created.
    created_at: str = "createtimestamp"
    #: The generalized time the entry was last changed.
    updated_at: str = "modifytimestamp"
    #: The security identifier.  ``None`` if the directory has none.
    object_sid: str | None = None
    #: Attributes whose values are kept as ``bytes`` when read back.
    binary_attributes: tuple[str, ...] = ()
    #: How the directory spells boolean true.
    true: str = "TRUE"
    #: How the directory spells boolean false.
    false: str = "FALSE"

    def get_naming_attribute(self) -> str:
        """
        Return the attribute used as the leftmost RDN of synthesized DNs.
        """
        return self.naming_attribute or self.common_name

    def is_binary(self, attribute: str) -> bool:
        """
        Return ``True`` if values of ``attribute`` should stay ``bytes``.
        """
        return attribute.lower() in self.binary_attributes

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"


class OpenLDAPSchema(Schema):
    """
    Attribute names for OpenLDAP and 389 Directory Server.
    """


class ActiveDirectorySchema(Schema):
    """
    Attribute names for Microsoft Active Directory.
    """

    account_name: str = "samaccountname"
    #: Active Directory only accepts passwords written by
    #: :py:func:`ldapentry.escaping.encode_password`.
    password: str = "unicodepwd"
    created_at: str = "whencreated"
    updated_at: str = "whenchanged"
    object_sid: str | None = "objectsid"
    binary_attributes: tuple[str, ...] = ("objectsid", "objectguid")
