# Every module in ldapobject talks to python-ldap through this module so that
# python-ldap-faker can patch ``ldapobject.ldap.initialize`` in our tests.
import ldap
from ldap import *  # noqa: F403

__version__ = ldap.__version__
