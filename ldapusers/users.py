"""
The in-memory representation of a directory user.

An :py:class:`LdapUser` is what callers hand to
:py:class:`ldapusers.manipulator.LdapUserManipulator` and what
:py:meth:`ldapusers.manipulator.LdapUserManipulator.search_users` hands back.
It never talks to LDAP itself; destroying one has no effect on the directory.
"""

from typing import Any

from .conf import get_setting
from .typing import AttributeMap, LDAPData

#: Common name used when an entry comes back from LDAP without one.
DEFAULT_COMMON_NAME: str = "Default CommonName"
#: Surname used when an entry comes back from LDAP without one.
DEFAULT_SURNAME: str = "Default Surname"


def default_common_name() -> str:
    return get_setting("DEFAULT_COMMON_NAME", DEFAULT_COMMON_NAME)


def default_surname() -> str:
    return get_setting("DEFAULT_SURNAME", DEFAULT_SURNAME)


def to_text(value: Any) -> str:
    """
    Convert a single attribute value to ``str``.  python-ldap hands us
    ``bytes``, which we decode as UTF-8; anything else goes through ``str()``.
    """
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


class LdapUser:
    """
    A directory user: a DN, the required ``cn`` and ``sn`` attributes, and an
    open ended, insertion ordered map of every other attribute to its list of
    values.

    ``cn`` and ``sn`` never appear in the attribute map; they are kept in
    scalar fields and every attribute method routes them there (see
    :py:meth:`_reserved_field`).

    Args:
        dn: the distinguished name of the user.  It can't be changed later.

    Keyword Args:
        cn: the common name.  Defaults to :py:data:`DEFAULT_COMMON_NAME`.
        sn: the surname.  Defaults to :py:data:`DEFAULT_SURNAME`.
        attributes: the other attributes, as a mapping of name to a list of
            values.  A bare value is treated as a one element list.

    Raises:
        ValueError: ``dn`` is empty, or ``attributes`` contains ``cn`` or ``sn``.

    """

    def __init__(
        self,
        dn: str,
        cn: str | None = None,
        sn: str | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        if not dn:
            msg = "An LdapUser needs a non-empty dn"
            raise ValueError(msg)
        self._dn: str = dn
        self._cn: str = cn if cn is not None else default_common_name()
        self._sn: str = sn if sn is not None else default_surname()
        self._attributes: AttributeMap = {}
        for name, values in (attributes or {}).items():
            if self._reserved_field(name):
                msg = f'"{name}" must be passed as a keyword argument, not in attributes'
                raise ValueError(msg)
            _values = values
            if isinstance(values, (str, bytes)) or not isinstance(values, (list, tuple)):
                _values = [values]
            self._attributes[name] = [to_text(v) for v in _values]

    @staticmethod
    def _reserved_field(name: str) -> str | None:
        """
        Return the scalar field that stands in for attribute ``name``, or
        ``None`` if ``name`` lives in the attribute map.

        Only ``cn`` and ``sn`` are reserved.  Attribute names are compared
        case-insensitively, as LDAP does.  For a reserved name:

        * insert and overwrite set the scalar field to the new value
        * delete resets the scalar field to its placeholder, but only if the
          deleted value is the current one
        * :py:meth:`get_user_attribute` returns the scalar as a one element list

        Args:
            name: the attribute name

        Returns:
            ``"cn"``, ``"sn"`` or ``None``

        """
        lowered = name.lower()
        if lowered in ("cn", "sn"):
            return lowered
        return None

    def _set_reserved(self, field: str, value: str | None) -> None:
        if field == "cn":
            self._cn = value if value is not None else default_common_name()
        else:
            self._sn = value if value is not None else default_surname()

    def _get_reserved(self, field: str) -> str:
        return self._cn if field == "cn" else self._sn

    # ----------------------
    # Accessors
    # ----------------------

    @property
    def dn(self) -> str:
        return self._dn

    @property
    def cn(self) -> str:
        return self._cn

    @property
    def sn(self) -> str:
        return self._sn

    def get_user_dn(self) -> str:
        return self._dn

    def get_user_cn(self) -> str:
        return self._cn

    def get_user_sn(self) -> str:
        return self._sn

    def get_user_attribute_keys(self) -> list[str]:
        """
        Return the names in the attribute map, in insertion order.  ``cn`` and
        ``sn`` are never among them.
        """
        return list(self._attributes)

    def get_user_attribute(self, name: str) -> list[str]:
        """
        Return a copy of the values of attribute ``name``.  An attribute we
        don't have returns ``[]``.
        """
        if field := self._reserved_field(name):
            return [self._get_reserved(field)]
        return list(self._attributes.get(name, []))

    # ----------------------
    # Mutators
    # ----------------------

    def insert_user_attribute(self, name: str, value: str) -> None:
        """
        Append ``value`` to attribute ``name``, creating the attribute if
        needed.
        """
        if field := self._reserved_field(name):
            self._set_reserved(field, value)
            return
        self._attributes.setdefault(name, []).append(value)

    def delete_user_attribute(self, name: str, value: str) -> None:
        """
        Remove ``value`` from attribute ``name``.  When the last value goes,
        the attribute itself is removed from the map.  Removing a value we
        don't have does nothing.
        """
        if field := self._reserved_field(name):
            if self._get_reserved(field) == value:
                self._set_reserved(field, None)
            return
        values = self._attributes.get(name)
        if not values or value not in values:
            return
        values.remove(value)
        if not values:
            del self._attributes[name]

    def overwrite_user_attribute(self, name: str, value: str) -> None:
        """
        Replace all values of attribute ``name`` with ``[value]``.  For ``cn``
        and ``sn`` this sets the scalar field instead.
        """
        if field := self._reserved_field(name):
            self._set_reserved(field, value)
            return
        self._attributes[name] = [value]

    # ----------------------
    # Conversion
    # ----------------------

    @classmethod
    def from_db(cls, data: LDAPData) -> "LdapUser":
        """
        Build a user from a python-ldap search result entry.

        ``cn`` and ``sn`` take the first value of the matching attribute (the
        match is case-insensitive), falling back to the placeholders when the
        entry doesn't carry them.  Every other attribute goes into the
        attribute map with its values converted to ``str``.

        Args:
            data: a ``(dn, {attr: [value, ...]})`` tuple

        Returns:
            A new :py:class:`LdapUser`.

        """
        dn, attrs = data
        reserved: dict[str, str] = {}
        attributes: AttributeMap = {}
        for name, values in attrs.items():
            if field := cls._reserved_field(name):
                if values:
                    reserved[field] = to_text(values[0])
            else:
                attributes[name] = [to_text(v) for v in values]
        return cls(
            dn,
            cn=reserved.get("cn"),
            sn=reserved.get("sn"),
            attributes=attributes,
        )

    def to_db(self) -> LDAPData:
        """
        Convert the user to the 2-tuple shape python-ldap's ``search_s`` returns:

        .. code-block:: python

            (DN, {'cn': [b'value'], 'sn': [b'value'], 'attr1': [b'value'], ...})

        Returns:
            A tuple of (dn, attrs).

        """
        attrs: dict[str, list[bytes]] = {
            "cn": [self._cn.encode("utf-8")],
            "sn": [self._sn.encode("utf-8")],
        }
        for name, values in self._attributes.items():
            attrs[name] = [v.encode("utf-8") for v in values]
        return (self._dn, attrs)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}: {self}>"

    def __str__(self) -> str:
        return f"{self.__class__.__name__} object ({self._dn})"

    def __eq__(self, other: object) -> bool:
        """
        Two users are equal when they are the same class and have the same DN.
        DNs are compared case-insensitively.
        """
        if not isinstance(other, LdapUser):
            return NotImplemented
        if self.__class__ != other.__class__:
            return False
        return self._dn.lower() == other._dn.lower()

    def __hash__(self) -> int:
        return hash(self._dn.lower())
