"""
Create, delete, modify, re-password, authenticate and search directory users.

:py:class:`LdapUserManipulator` turns operations on
:py:class:`ldapusers.users.LdapUser` objects into requests on a connection
port, and turns search results back into users.  Every operation returns an
:py:class:`ldapusers.states.LdapState` (search returns it inside a
:py:class:`ldapusers.states.SearchResult`) and never raises: whatever goes
wrong below is logged through the logger port and reported as the error state
for that operation.

Example:

    .. code-block:: python

        manipulator = LdapUserManipulator.from_settings()
        user = LdapUser(
            "uid=jdoe,ou=people,dc=example,dc=com",
            cn="jdoe",
            sn="Doe",
            attributes={"mail": ["jdoe@example.com"]},
        )
        if manipulator.create_user(user, "inetOrgPerson").is_error:
            ...
        state, users = manipulator.search_users(
            "ou=people,dc=example,dc=com", "inetOrgPerson", "uid", ["mail"], ["jdoe"]
        )

"""

from collections.abc import Iterable
from typing import Any, cast

from .conf import get_setting
from .connection import LdapConnection, LdapConnectionPort
from .logger import LdapLogger, LdapLoggerPort
from .protocol import (
    AddRequest,
    BindRequest,
    DeleteRequest,
    ModifyRequest,
    SearchRequest,
    SearchResponse,
    build_search_filter,
)
from .states import AttributeOperation, LdapState, SearchResult
from .users import LdapUser


class LdapUserManipulator:
    """
    The user management operations, run against whatever connection was last
    given to :py:meth:`set_connection`.

    Note:
        There is no locking here.  Don't share one manipulator, or one
        connection, between threads.

    Keyword Args:
        logger: where to report outcomes.  Defaults to
            :py:class:`ldapusers.logger.LdapLogger`.
        connection: the connection port to use.  Can also be set later with
            :py:meth:`set_connection`.

    """

    class ConnectionNotSet(Exception):
        """Raised when an operation runs before a connection has been set."""

    def __init__(
        self,
        logger: LdapLoggerPort | None = None,
        connection: LdapConnectionPort | None = None,
    ) -> None:
        self.logger: LdapLoggerPort = logger if logger is not None else LdapLogger()
        self._connection: LdapConnectionPort | None = connection

    @classmethod
    def from_settings(
        cls,
        server: str = "default",
        key: str = "write",
        logger: LdapLoggerPort | None = None,
    ) -> "LdapUserManipulator":
        """
        Build a manipulator on a new connection to
        ``settings.LDAP_SERVERS[server][key]``.

        Raises:
            django.core.exceptions.ImproperlyConfigured: no such server or key
            ldap.LDAPError: we could not connect or bind

        """
        return cls(logger=logger, connection=LdapConnection.from_settings(server, key))

    def set_connection(self, connection: LdapConnectionPort) -> None:
        self._connection = connection

    def has_connection(self) -> bool:
        return self._connection is not None

    # ----------------------
    # Helpers
    # ----------------------

    def _send(self, request: Any) -> SearchResponse | None:
        if self._connection is None:
            msg = "No LDAP connection has been set on this LdapUserManipulator"
            raise self.ConnectionNotSet(msg)
        return self._connection.send_request(request)

    def _log(self, text: str, state: LdapState) -> LdapState:
        self.logger.write(self.logger.build_log_message(text, state))
        return state

    # ----------------------
    # Operations
    # ----------------------

    def create_user(self, user: LdapUser, object_class: str | list[str]) -> LdapState:
        """
        Add ``user`` to the directory.

        The add request carries ``objectClass``, ``cn`` and ``sn`` followed by
        one entry per value of every attribute in the user's attribute map.
        The new entry is not read back.

        Args:
            user: the user to create
            object_class: the objectClass of the new entry, or a list of them

        Returns:
            :py:attr:`LdapState.SUCCESS` or :py:attr:`LdapState.CREATE_USER_ERROR`.

        """
        object_classes = [object_class] if isinstance(object_class, str) else list(object_class)
        attributes = [("objectClass", value) for value in object_classes]
        attributes.append(("cn", user.get_user_cn()))
        attributes.append(("sn", user.get_user_sn()))
        for name in user.get_user_attribute_keys():
            attributes.extend((name, value) for value in user.get_user_attribute(name))
        try:
            self._send(AddRequest(user.get_user_dn(), attributes))
        except Exception as e:  # noqa: BLE001
            return self._log(str(e), LdapState.CREATE_USER_ERROR)
        return self._log(f"create_user.success dn={user.get_user_dn()}", LdapState.SUCCESS)

    def delete_user(self, user: LdapUser) -> LdapState:
        """
        Delete ``user`` from the directory.  ``user`` itself is left as it was,
        but no longer refers to anything in LDAP.

        Returns:
            :py:attr:`LdapState.SUCCESS` or :py:attr:`LdapState.DELETE_USER_ERROR`.

        """
        try:
            self._send(DeleteRequest(user.get_user_dn()))
        except Exception as e:  # noqa: BLE001
            return self._log(str(e), LdapState.DELETE_USER_ERROR)
        return self._log(f"delete_user.success dn={user.get_user_dn()}", LdapState.SUCCESS)

    def modify_user_attribute(
        self,
        operation: AttributeOperation,
        user: LdapUser,
        attribute_name: str,
        attribute_value: str,
    ) -> LdapState:
        """
        Add, delete or replace one value of one attribute of ``user``.

        Once the directory accepts the change, the same change is made to
        ``user`` so that it matches LDAP without a re-read.  If the directory
        refuses, ``user`` is not touched.

        Args:
            operation: what to do with ``attribute_value``
            user: the user to modify
            attribute_name: the attribute to modify
            attribute_value: the value to add, delete or replace with

        Returns:
            :py:attr:`LdapState.SUCCESS` or
            :py:attr:`LdapState.MODIFY_USER_ATTRIBUTE_ERROR`.

        """
        try:
            operation = AttributeOperation(operation)
            self._send(
                ModifyRequest(
                    user.get_user_dn(), [(operation, attribute_name, attribute_value)]
                )
            )
        except Exception as e:  # noqa: BLE001
            return self._log(str(e), LdapState.MODIFY_USER_ATTRIBUTE_ERROR)
        if operation == AttributeOperation.ADD:
            user.insert_user_attribute(attribute_name, attribute_value)
        elif operation == AttributeOperation.DELETE:
            user.delete_user_attribute(attribute_name, attribute_value)
        else:
            user.overwrite_user_attribute(attribute_name, attribute_value)
        return self._log(
            f"modify_user_attribute.success dn={user.get_user_dn()} "
            f"operation={operation.name} attribute={attribute_name}",
            LdapState.SUCCESS,
        )

    def change_user_password(self, user: LdapUser, new_password: str) -> LdapState:
        """
        Replace the password of ``user`` with ``new_password``, and record it
        in ``user``'s attribute map.

        Important:
            The password is sent as given.  Any hashing is up to the directory
            server, and confidentiality is up to the connection (use TLS).

        Returns:
            :py:attr:`LdapState.SUCCESS` or
            :py:attr:`LdapState.CHANGE_USER_PASSWORD_ERROR`.

        """
        password_attribute = get_setting("PASSWORD_ATTRIBUTE", "userPassword")
        try:
            self._send(
                ModifyRequest(
                    user.get_user_dn(),
                    [(AttributeOperation.REPLACE, password_attribute, new_password)],
                )
            )
        except Exception as e:  # noqa: BLE001
            return self._log(str(e), LdapState.CHANGE_USER_PASSWORD_ERROR)
        user.overwrite_user_attribute(password_attribute, new_password)
        return self._log(
            f"change_user_password.success dn={user.get_user_dn()}", LdapState.SUCCESS
        )

    def authenticate_user(self, user: LdapUser, password: str) -> LdapState:
        """
        Check whether ``password`` is ``user``'s password by binding as them.

        If the bind fails for any reason, including a wrong password, return
        :py:attr:`LdapState.AUTHENTICATE_USER_ERROR`.

        Returns:
            :py:attr:`LdapState.SUCCESS` or
            :py:attr:`LdapState.AUTHENTICATE_USER_ERROR`.

        """
        try:
            self._send(BindRequest(user.get_user_dn(), password))
        except Exception as e:  # noqa: BLE001
            return self._log(str(e), LdapState.AUTHENTICATE_USER_ERROR)
        return self._log(
            f"authenticate_user.success dn={user.get_user_dn()}", LdapState.SUCCESS
        )

    def search_users(
        self,
        basedn: str,
        object_class: str,
        match_attribute: str,
        extra_attributes: list[str] | None,
        match_values: Iterable[str],
    ) -> SearchResult:
        """
        Look up users by the value of ``match_attribute``, one subtree search
        below ``basedn`` per value in ``match_values``.

        Each search uses the filter
        ``(&(objectClass=<object_class>)(<match_attribute>=<value>))`` and asks
        for ``extra_attributes`` plus ``cn`` and ``sn``.  Users come back
        grouped by match value, each group in the order the server returned it.

        If any search fails, the whole call fails and the users found so far
        are discarded.

        Important:
            Finding nobody at all is reported as
            :py:attr:`LdapState.SEARCH_USER_ERROR`, the same as a failed search.
            This includes an empty ``match_values``, which sends no searches.

        Args:
            basedn: where to search from
            object_class: the objectClass users must have
            match_attribute: the attribute to match values against, e.g. ``uid``
            extra_attributes: attributes to fetch besides ``cn`` and ``sn``.
                This list is not modified.
            match_values: the values to look for

        Returns:
            A :py:class:`ldapusers.states.SearchResult` of the state and the
            users found.

        """
        attributes = list(extra_attributes or [])
        lowered = [attribute.lower() for attribute in attributes]
        for required in ("cn", "sn"):
            if required not in lowered:
                attributes.append(required)
        if isinstance(match_values, str):
            match_values = [match_values]
        users: list[LdapUser] = []
        try:
            for value in match_values:
                request = SearchRequest(
                    basedn,
                    build_search_filter(object_class, match_attribute, value),
                    attributes,
                )
                response = self._send(request)
                if response is None:
                    continue
                users.extend(
                    LdapUser.from_db(entry) for entry in cast("SearchResponse", response)
                )
        except Exception as e:  # noqa: BLE001
            self._log(str(e), LdapState.SEARCH_USER_ERROR)
            return SearchResult(LdapState.SEARCH_USER_ERROR, [])
        if not users:
            self._log(
                f"search_users.no_results basedn={basedn} attribute={match_attribute}",
                LdapState.SEARCH_USER_ERROR,
            )
            return SearchResult(LdapState.SEARCH_USER_ERROR, [])
        self._log(
            f"search_users.success basedn={basedn} matched={len(users)}", LdapState.SUCCESS
        )
        return SearchResult(LdapState.SUCCESS, users)
