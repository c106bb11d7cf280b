# The connection adapter calls ``ldap.initialize`` through this module so the
# tests can patch it with python-ldap-faker's ``LDAPFakerMixin`` by listing
# ``ldapusers`` in ``ldap_modules``.
import ldap
from ldap import *  # noqa: F403

__version__ = ldap.__version__
