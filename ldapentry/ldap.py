# LdapConnection imports python-ldap through this module so that tests can
# swap ``ldapentry.ldap.initialize`` for python-ldap-faker's fake server.
import ldap
from ldap import *  # noqa: F403

__version__ = ldap.__version__
