"""
Result states and modify operations for the user manipulator.
"""

import enum
from collections import namedtuple

from ldapusers import ldap


class LdapState(enum.Enum):
    """
    The closed set of results a :py:class:`ldapusers.manipulator.LdapUserManipulator`
    operation can return.  There is one error state per operation family; the
    human readable detail only goes to the log.
    """

    SUCCESS = "LdapUserManipulatorSuccess"
    CREATE_USER_ERROR = "LdapCreateUserError"
    DELETE_USER_ERROR = "LdapDeleteUserError"
    MODIFY_USER_ATTRIBUTE_ERROR = "LdapModifyUserAttributeError"
    CHANGE_USER_PASSWORD_ERROR = "LdapChangeUserPasswordError"
    SEARCH_USER_ERROR = "LdapSearchUserError"
    AUTHENTICATE_USER_ERROR = "LdapAuthenticateUserError"

    @property
    def is_error(self) -> bool:
        return self is not LdapState.SUCCESS


class AttributeOperation(enum.IntEnum):
    """
    How a single attribute modification is applied.  The values are
    python-ldap's modify constants.
    """

    ADD = ldap.MOD_ADD  # type: ignore[attr-defined]
    DELETE = ldap.MOD_DELETE  # type: ignore[attr-defined]
    REPLACE = ldap.MOD_REPLACE  # type: ignore[attr-defined]


class SearchResult(namedtuple("SearchResult", ["state", "users"])):
    """
    What :py:meth:`ldapusers.manipulator.LdapUserManipulator.search_users`
    returns: a ``(state, users)`` pair.

    Note:
        A search that matched nothing is reported as
        :py:attr:`LdapState.SEARCH_USER_ERROR`, exactly like a search that
        failed.  Use :py:attr:`matched` together with the log to tell them
        apart.

    """

    __slots__ = ()

    @property
    def matched(self) -> int:
        """The number of users reconstructed from the directory."""
        return len(self.users)
