"""
The request and response shapes that cross the connection port.

These carry only the logical content of each LDAP operation.  Turning them
into wire traffic is the connection's job; see
:py:class:`ldapusers.connection.LdapConnection`.
"""

from ldap_filter import Filter

from ldapusers import ldap

from .states import AttributeOperation
from .typing import AddModlist, LDAPData, ModifyModlist


def build_search_filter(object_class: str, match_attribute: str, value: str) -> str:
    """
    Build the filter that matches one user::

        (&(objectClass=<object_class>)(<match_attribute>=<value>))

    Args:
        object_class: the objectClass users must have
        match_attribute: the attribute to match ``value`` against, e.g. ``uid``
        value: the value to look for

    Returns:
        An LDAP filter string.

    """
    return Filter.AND(
        [
            Filter.attribute("objectClass").equal_to(object_class),
            Filter.attribute(match_attribute).equal_to(value),
        ]
    ).to_string()


class AddRequest:
    """
    Create the entry ``dn``.

    Args:
        dn: the DN of the new entry
        attributes: ``(name, value)`` pairs.  A multi-valued attribute appears
            once per value.

    """

    def __init__(self, dn: str, attributes: list[tuple[str, str]] | None = None) -> None:
        self.dn = dn
        self.attributes: list[tuple[str, str]] = list(attributes or [])

    def modlist(self) -> AddModlist:
        """
        Group :py:attr:`attributes` by name into a modlist suitable for passing
        to ``add_s``.  Attributes keep the order in which their name was first
        seen.
        """
        grouped: dict[str, list[bytes]] = {}
        for name, value in self.attributes:
            grouped.setdefault(name, []).append(value.encode("utf-8"))
        return list(grouped.items())

    def __repr__(self) -> str:
        return f"<AddRequest: {self.dn}>"


class DeleteRequest:
    """Delete the entry ``dn``."""

    def __init__(self, dn: str) -> None:
        self.dn = dn

    def __repr__(self) -> str:
        return f"<DeleteRequest: {self.dn}>"


class ModifyRequest:
    """
    Modify attributes of the entry ``dn``.

    Args:
        dn: the DN of the entry to modify
        modifications: ``(operation, name, value)`` triples

    """

    def __init__(
        self,
        dn: str,
        modifications: list[tuple[AttributeOperation, str, str]] | None = None,
    ) -> None:
        self.dn = dn
        self.modifications: list[tuple[AttributeOperation, str, str]] = list(
            modifications or []
        )

    def modlist(self) -> ModifyModlist:
        """
        Return the modifications as a modlist suitable for passing to
        ``modify_s``.
        """
        return [
            (int(operation), name, [value.encode("utf-8")])
            for operation, name, value in self.modifications
        ]

    def __repr__(self) -> str:
        return f"<ModifyRequest: {self.dn}>"


class BindRequest:
    """
    Check that ``password`` is the password for ``dn`` by binding as it.
    """

    def __init__(self, dn: str, password: str) -> None:
        self.dn = dn
        self.password = password

    def __repr__(self) -> str:
        # Never show the password
        return f"<BindRequest: {self.dn}>"


class SearchRequest:
    """
    Search below ``basedn`` for entries matching ``filterstr``.

    Args:
        basedn: the DN to start the search from
        filterstr: the LDAP filter string
        attributes: the attributes to return for each entry

    Keyword Args:
        scope: the python-ldap search scope

    """

    def __init__(
        self,
        basedn: str,
        filterstr: str,
        attributes: list[str],
        scope: int = ldap.SCOPE_SUBTREE,  # type: ignore[attr-defined]
    ) -> None:
        self.basedn = basedn
        self.filterstr = filterstr
        self.attributes = list(attributes)
        self.scope = scope

    def __repr__(self) -> str:
        return f"<SearchRequest: {self.basedn} {self.filterstr}>"


class SearchResponse:
    """
    The entries a :py:class:`SearchRequest` found, in the order the server
    returned them.
    """

    def __init__(self, entries: list[LDAPData] | None = None) -> None:
        self.entries: list[LDAPData] = list(entries or [])

    def __iter__(self):
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)
