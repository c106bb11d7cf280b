"""
LDAP user management type definitions.

Type aliases for the python-ldap data structures that cross the connection
boundary.
"""

AttributeMap = dict[str, list[str]]
AddModlist = list[tuple[str, list[bytes]]]
ModifyModlist = list[tuple[int, str, list[bytes]]]
LDAPData = tuple[str, dict[str, list[bytes]]]
