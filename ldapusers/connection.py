"""
The connection port and its python-ldap implementation.

:py:class:`ldapusers.manipulator.LdapUserManipulator` only ever calls
:py:meth:`LdapConnectionPort.send_request`.  Binding, TLS and the wire
protocol all live here.
"""

import logging
from pathlib import Path
from typing import Any, Protocol, cast

from ldapusers import ldap

from .conf import get_server_config
from .protocol import (
    AddRequest,
    BindRequest,
    DeleteRequest,
    ModifyRequest,
    SearchRequest,
    SearchResponse,
)

logger = logging.getLogger("django-ldapusers")


class LdapConnectionPort(Protocol):
    """
    Anything that can send one of our request objects to a directory.

    Implementations return a :py:class:`ldapusers.protocol.SearchResponse` for
    a :py:class:`ldapusers.protocol.SearchRequest`, and raise on any failure.
    """

    def send_request(self, request: Any) -> SearchResponse | None: ...


def _connect(  # noqa: PLR0912
    config: dict[str, Any], dn: str | None = None, password: str | None = None
) -> ldap.ldapobject.LDAPObject:  # type: ignore[name-defined]
    """
    Create and return a new, bound LDAP connection object.

    Args:
        config: one ``read`` or ``write`` block from ``settings.LDAP_SERVERS``
        dn: Optional bind DN.  Defaults to ``config["user"]``.
        password: Optional password.  Used only when ``dn`` is given.

    Raises:
        ValueError: If the ``tls_verify`` value in the configuration is invalid.
        OSError: If a CA certificate, certificate or key file is configured but
            does not exist or is not a file.

    Returns:
        A connected LDAPObject.

    """
    if not dn:
        dn = config["user"]
        password = config["password"]
    ldap_object: ldap.ldapobject.LDAPObject = ldap.initialize(config["url"])  # type: ignore[name-defined]
    if config.get("follow_referrals", False):
        ldap_object.set_option(ldap.OPT_REFERRALS, 1)  # type: ignore[attr-defined]
    else:
        ldap_object.set_option(ldap.OPT_REFERRALS, 0)  # type: ignore[attr-defined]
    timeout = config.get("timeout", 15.0)
    ldap_object.set_option(ldap.OPT_NETWORK_TIMEOUT, float(timeout))  # type: ignore[attr-defined]
    sizelimit = config.get("sizelimit", None)
    if sizelimit:
        ldap_object.set_option(ldap.OPT_SIZELIMIT, int(sizelimit))  # type: ignore[attr-defined]
    tls_verify = config.get("tls_verify", "never")
    if tls_verify == "never":
        ldap_object.set_option(ldap.OPT_X_TLS_REQUIRE_CERT, ldap.OPT_X_TLS_NEVER)  # type: ignore[attr-defined]
    elif tls_verify == "always":
        ldap_object.set_option(ldap.OPT_X_TLS_REQUIRE_CERT, ldap.OPT_X_TLS_DEMAND)  # type: ignore[attr-defined]
    else:
        msg = f"Invalid tls_verify value: {tls_verify}"
        raise ValueError(msg)
    for setting, option, label in (
        ("tls_ca_certfile", ldap.OPT_X_TLS_CACERTFILE, "CA Certificate file"),  # type: ignore[attr-defined]
        ("tls_certfile", ldap.OPT_X_TLS_CERTFILE, "TLS Certificate file"),  # type: ignore[attr-defined]
        ("tls_keyfile", ldap.OPT_X_TLS_KEYFILE, "TLS Key file"),  # type: ignore[attr-defined]
    ):
        if filename := config.get(setting, None):
            path = Path(filename)
            if not path.exists():
                msg = f"{label} does not exist: {filename}"
                raise OSError(msg)
            if not path.is_file():
                msg = f"{label} is not a file: {filename}"
                raise OSError(msg)
            ldap_object.set_option(option, filename)
    ldap_object.set_option(ldap.OPT_X_TLS_NEWCTX, 0)  # type: ignore[attr-defined]
    if config.get("use_starttls", True):
        ldap_object.start_tls_s()
    ldap_object.simple_bind_s(dn, password)
    return ldap_object


class LdapConnection:
    """
    A :py:class:`LdapConnectionPort` backed by a python-ldap ``LDAPObject``.

    Note:
        A python-ldap connection is not thread-safe, and neither is this.  Use
        one per thread.

    Args:
        ldap_object: an already bound python-ldap connection

    Keyword Args:
        config: the ``settings.LDAP_SERVERS`` block ``ldap_object`` was opened
            from.  Needed only to send a :py:class:`ldapusers.protocol.BindRequest`.

    """

    def __init__(
        self,
        ldap_object: ldap.ldapobject.LDAPObject,  # type: ignore[name-defined]
        config: dict[str, Any] | None = None,
    ) -> None:
        self.ldap_object = ldap_object
        self.config = config

    @classmethod
    def from_settings(
        cls,
        server: str = "default",
        key: str = "write",
        dn: str | None = None,
        password: str | None = None,
    ) -> "LdapConnection":
        """
        Open a connection to ``settings.LDAP_SERVERS[server][key]``.

        Keyword Args:
            server: the name of the server in ``settings.LDAP_SERVERS``
            key: "read" or "write"
            dn: Optional bind DN, instead of the configured ``user``.
            password: Optional password for ``dn``.

        Raises:
            django.core.exceptions.ImproperlyConfigured: no such server or key

        Returns:
            A bound :py:class:`LdapConnection`.

        """
        config = get_server_config(server, key)
        return cls(_connect(config, dn=dn, password=password), config=config)

    def send_request(self, request: Any) -> SearchResponse | None:
        """
        Perform ``request`` against the directory.

        Args:
            request: one of the request classes from :py:mod:`ldapusers.protocol`

        Raises:
            TypeError: ``request`` is not a request we know how to send
            ldap.LDAPError: the server rejected the request

        Returns:
            A :py:class:`ldapusers.protocol.SearchResponse` for searches,
            ``None`` otherwise.

        """
        if isinstance(request, AddRequest):
            self.ldap_object.add_s(request.dn, request.modlist())
        elif isinstance(request, DeleteRequest):
            self.ldap_object.delete_s(request.dn)
        elif isinstance(request, ModifyRequest):
            self.ldap_object.modify_s(request.dn, request.modlist())
        elif isinstance(request, SearchRequest):
            return self._search(request)
        elif isinstance(request, BindRequest):
            self._bind(request)
        else:
            msg = f"Don't know how to send {request!r}"
            raise TypeError(msg)
        return None

    def _search(self, request: SearchRequest) -> SearchResponse:
        data = self.ldap_object.search_s(
            request.basedn,
            request.scope,
            filterstr=request.filterstr,
            attrlist=request.attributes,
        )
        # We have to filter out any references that AD puts in
        return SearchResponse([obj for obj in data if isinstance(obj[1], dict)])

    def _bind(self, request: BindRequest) -> None:
        """
        Bind as ``request.dn`` on a separate connection so that our own bind
        is left alone.

        Raises:
            ValueError: this connection was not opened from a configuration,
                or the password is empty
            ldap.INVALID_CREDENTIALS: the password is wrong

        """
        if self.config is None:
            msg = "Can't check a password without a server configuration"
            raise ValueError(msg)
        # An empty password would be an unauthenticated bind, which servers accept
        if not request.password:
            msg = f"Refusing to bind as {request.dn} with an empty password"
            raise ValueError(msg)
        user_connection = _connect(
            cast("dict[str, Any]", self.config),
            dn=request.dn,
            password=request.password,
        )
        user_connection.unbind_s()
        logger.debug("ldapusers.connection.bind.success dn=%s", request.dn)

    def unbind(self) -> None:
        """
        Close the underlying python-ldap connection.
        """
        self.ldap_object.unbind_s()
