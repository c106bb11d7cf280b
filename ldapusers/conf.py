"""
Django settings access for ldapusers.

Connection blocks live in ``settings.LDAP_SERVERS``, the same layout the ORM
uses::

    LDAP_SERVERS = {
        "default": {
            "read": {"url": "ldap://localhost", "user": "...", "password": "..."},
            "write": {"url": "ldap://localhost", "user": "...", "password": "..."},
        }
    }

Everything else is an ``LDAPUSERS_`` prefixed setting with a fallback.
"""

from typing import Any

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured


def get_setting(setting_name: str, default_value: Any) -> Any:
    """
    Get a configuration value from Django settings with fallback.

    The fallback is also used when Django settings have not been configured at
    all, so :py:class:`ldapusers.users.LdapUser` works outside a Django
    project.

    Args:
        setting_name: Name of the setting (without the ``LDAPUSERS_`` prefix)
        default_value: Default value if the setting is not found

    Returns:
        Configuration value from settings or default

    """
    if not settings.configured:
        return default_value
    return getattr(settings, f"LDAPUSERS_{setting_name}", default_value)


def get_server_config(server: str, key: str) -> dict[str, Any]:
    """
    Return the ``key`` ("read" or "write") block for ``server`` from
    ``settings.LDAP_SERVERS``.

    Raises:
        ImproperlyConfigured: ``LDAP_SERVERS`` is missing, or has no entry for
            ``server`` or ``key``.

    """
    try:
        servers = settings.LDAP_SERVERS
    except AttributeError as e:
        msg = "settings.LDAP_SERVERS is not defined"
        raise ImproperlyConfigured(msg) from e
    try:
        server_config = servers[server]
    except KeyError as e:
        msg = f'settings.LDAP_SERVERS has no server named "{server}"'
        raise ImproperlyConfigured(msg) from e
    try:
        return server_config[key]
    except KeyError as e:
        msg = f'settings.LDAP_SERVERS["{server}"] has no "{key}" configuration'
        raise ImproperlyConfigured(msg) from e
