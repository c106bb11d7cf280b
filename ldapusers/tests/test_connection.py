# mypy: disable-error-code="attr-defined"
# type: ignore
"""
Tests for the python-ldap connection adapter, the request shapes and the
settings helpers, plus end to end manipulator runs against python-ldap-faker.
"""

import unittest
from unittest.mock import MagicMock, patch

import django
import ldap
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from ldap_faker.unittest import LDAPFakerMixin

from ldapusers.conf import get_server_config, get_setting
from ldapusers.connection import LdapConnection
from ldapusers.manipulator import LdapUserManipulator
from ldapusers.protocol import (
    AddRequest,
    BindRequest,
    DeleteRequest,
    ModifyRequest,
    SearchRequest,
    SearchResponse,
    build_search_filter,
)
from ldapusers.states import AttributeOperation, LdapState
from ldapusers.users import LdapUser

LDAP_SERVERS = {
    "default": {
        "read": {
            "url": "ldap://localhost:389",
            "user": "cn=admin,dc=example,dc=com",
            "password": "admin",
            "use_starttls": False,
            "tls_verify": "never",
            "timeout": 15.0,
            "sizelimit": 1000,
            "follow_referrals": False,
        },
        "write": {
            "url": "ldap://localhost:389",
            "user": "cn=admin,dc=example,dc=com",
            "password": "admin",
            "use_starttls": False,
            "tls_verify": "never",
            "timeout": 15.0,
            "sizelimit": 1000,
            "follow_referrals": False,
        },
    }
}

# Configure Django settings before anything reads them
if not settings.configured:
    settings.configure(LDAP_SERVERS=LDAP_SERVERS)
    try:
        django.setup()
    except Exception:
        pass


class TestProtocol(unittest.TestCase):
    """The request shapes."""

    def test_build_search_filter(self):
        self.assertEqual(
            build_search_filter("person", "uid", "alice"),
            "(&(objectClass=person)(uid=alice))",
        )

    def test_add_request_modlist_groups_by_name(self):
        request = AddRequest(
            "uid=jdoe,dc=example,dc=com",
            [
                ("objectClass", "inetOrgPerson"),
                ("cn", "jdoe"),
                ("mail", "a@example.com"),
                ("sn", "Doe"),
                ("mail", "b@example.com"),
            ],
        )
        self.assertEqual(
            request.modlist(),
            [
                ("objectClass", [b"inetOrgPerson"]),
                ("cn", [b"jdoe"]),
                ("mail", [b"a@example.com", b"b@example.com"]),
                ("sn", [b"Doe"]),
            ],
        )

    def test_modify_request_modlist(self):
        request = ModifyRequest(
            "uid=jdoe,dc=example,dc=com",
            [(AttributeOperation.DELETE, "mail", "a@example.com")],
        )
        self.assertEqual(
            request.modlist(), [(ldap.MOD_DELETE, "mail", [b"a@example.com"])]
        )

    def test_search_request_defaults_to_subtree(self):
        request = SearchRequest("dc=example,dc=com", "(uid=alice)", ["cn"])
        self.assertEqual(request.scope, ldap.SCOPE_SUBTREE)

    def test_search_response(self):
        response = SearchResponse([("uid=alice,dc=example,dc=com", {"cn": [b"Alice"]})])
        self.assertEqual(len(response), 1)
        self.assertEqual(list(response)[0][0], "uid=alice,dc=example,dc=com")

    def test_attribute_operation_values(self):
        self.assertEqual(AttributeOperation.ADD, ldap.MOD_ADD)
        self.assertEqual(AttributeOperation.DELETE, ldap.MOD_DELETE)
        self.assertEqual(AttributeOperation.REPLACE, ldap.MOD_REPLACE)

    def test_state_is_error(self):
        self.assertFalse(LdapState.SUCCESS.is_error)
        for state in LdapState:
            if state is not LdapState.SUCCESS:
                self.assertTrue(state.is_error)


class TestConf(unittest.TestCase):
    """Reading settings."""

    def test_get_server_config(self):
        with patch("django.conf.settings.LDAP_SERVERS", LDAP_SERVERS):
            config = get_server_config("default", "read")
        self.assertEqual(config["url"], "ldap://localhost:389")

    def test_missing_server(self):
        with patch("django.conf.settings.LDAP_SERVERS", LDAP_SERVERS):
            with self.assertRaises(ImproperlyConfigured):
                get_server_config("nope", "read")

    def test_missing_key(self):
        with patch("django.conf.settings.LDAP_SERVERS", {"default": {"read": {}}}):
            with self.assertRaises(ImproperlyConfigured):
                get_server_config("default", "write")

    def test_get_setting_fallback(self):
        self.assertEqual(get_setting("SOMETHING_UNSET", "fallback"), "fallback")

    def test_get_setting_override(self):
        with patch.object(settings, "LDAPUSERS_PASSWORD_ATTRIBUTE", "unicodePwd", create=True):
            self.assertEqual(get_setting("PASSWORD_ATTRIBUTE", "userPassword"), "unicodePwd")


class TestLdapConnectionDispatch(unittest.TestCase):
    """send_request against a mocked python-ldap object."""

    def setUp(self):
        self.ldap_object = MagicMock()
        self.connection = LdapConnection(self.ldap_object)

    def test_add(self):
        request = AddRequest("uid=jdoe,dc=example,dc=com", [("cn", "jdoe")])
        self.assertIsNone(self.connection.send_request(request))
        self.ldap_object.add_s.assert_called_once_with(
            "uid=jdoe,dc=example,dc=com", [("cn", [b"jdoe"])]
        )

    def test_delete(self):
        self.connection.send_request(DeleteRequest("uid=jdoe,dc=example,dc=com"))
        self.ldap_object.delete_s.assert_called_once_with("uid=jdoe,dc=example,dc=com")

    def test_modify(self):
        request = ModifyRequest(
            "uid=jdoe,dc=example,dc=com",
            [(AttributeOperation.REPLACE, "userPassword", "secret")],
        )
        self.connection.send_request(request)
        self.ldap_object.modify_s.assert_called_once_with(
            "uid=jdoe,dc=example,dc=com", [(ldap.MOD_REPLACE, "userPassword", [b"secret"])]
        )

    def test_search_drops_referrals(self):
        self.ldap_object.search_s.return_value = [
            ("uid=alice,dc=example,dc=com", {"cn": [b"Alice"]}),
            (None, ["ldap://other.example.com/dc=example,dc=com"]),
        ]
        request = SearchRequest("dc=example,dc=com", "(uid=alice)", ["cn", "sn"])
        response = self.connection.send_request(request)
        self.assertIsInstance(response, SearchResponse)
        self.assertEqual(
            response.entries, [("uid=alice,dc=example,dc=com", {"cn": [b"Alice"]})]
        )
        self.ldap_object.search_s.assert_called_once_with(
            "dc=example,dc=com",
            ldap.SCOPE_SUBTREE,
            filterstr="(uid=alice)",
            attrlist=["cn", "sn"],
        )

    def test_bind_needs_config(self):
        with self.assertRaises(ValueError):
            self.connection.send_request(BindRequest("uid=jdoe,dc=example,dc=com", "pw"))

    def test_unknown_request(self):
        with self.assertRaises(TypeError):
            self.connection.send_request("(uid=alice)")

    def test_unbind(self):
        self.connection.unbind()
        self.ldap_object.unbind_s.assert_called_once_with()


class TestConnectionConfig(unittest.TestCase):
    """TLS and option handling when opening connections."""

    def test_invalid_tls_verify(self):
        config = dict(LDAP_SERVERS["default"]["read"], tls_verify="sometimes")
        with patch("django.conf.settings.LDAP_SERVERS", {"default": {"read": config}}):
            with patch("ldapusers.ldap.initialize", return_value=MagicMock()):
                with self.assertRaises(ValueError):
                    LdapConnection.from_settings(key="read")

    def test_missing_certificate_files(self):
        config = dict(
            LDAP_SERVERS["default"]["read"],
            tls_verify="always",
            tls_ca_certfile="/path/to/ca.crt",
        )
        with patch("django.conf.settings.LDAP_SERVERS", {"default": {"read": config}}):
            with patch("ldapusers.ldap.initialize", return_value=MagicMock()):
                with self.assertRaises(OSError):
                    LdapConnection.from_settings(key="read")

    def test_starttls_and_bind(self):
        config = dict(LDAP_SERVERS["default"]["write"], use_starttls=True)
        ldap_object = MagicMock()
        with patch("django.conf.settings.LDAP_SERVERS", {"default": {"write": config}}):
            with patch("ldapusers.ldap.initialize", return_value=ldap_object) as initialize:
                connection = LdapConnection.from_settings()
        initialize.assert_called_once_with("ldap://localhost:389")
        ldap_object.start_tls_s.assert_called_once_with()
        ldap_object.simple_bind_s.assert_called_once_with("cn=admin,dc=example,dc=com", "admin")
        ldap_object.set_option.assert_any_call(ldap.OPT_SIZELIMIT, 1000)
        self.assertIs(connection.ldap_object, ldap_object)
        self.assertEqual(connection.config, config)

    def test_bind_refuses_empty_password(self):
        connection = LdapConnection(MagicMock(), config=LDAP_SERVERS["default"]["read"])
        with patch("ldapusers.ldap.initialize") as initialize:
            with self.assertRaises(ValueError):
                connection.send_request(BindRequest("uid=jdoe,dc=example,dc=com", ""))
        initialize.assert_not_called()


class TestLdapUserManipulatorWithFaker(LDAPFakerMixin, unittest.TestCase):
    """End to end runs against python-ldap-faker."""

    ldap_modules = ["ldapusers"]

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        cls.test_users = [
            [
                "cn=admin,dc=example,dc=com",
                {
                    "cn": [b"admin"],
                    "userPassword": [b"admin"],
                    "objectclass": [b"simpleSecurityObject", b"organizationalRole", b"top"],
                },
            ],
            [
                "uid=alice,ou=people,dc=example,dc=com",
                {
                    "uid": [b"alice"],
                    "cn": [b"Alice Johnson"],
                    "sn": [b"Johnson"],
                    "mail": [b"alice@example.com"],
                    "userPassword": [b"password"],
                    "objectclass": [b"inetOrgPerson", b"top"],
                },
            ],
            [
                "uid=bob,ou=people,dc=example,dc=com",
                {
                    "uid": [b"bob"],
                    "cn": [b"Bob Smith"],
                    "sn": [b"Smith"],
                    "mail": [b"bob@example.com"],
                    "userPassword": [b"password"],
                    "objectclass": [b"inetOrgPerson", b"top"],
                },
            ],
        ]

    def setUp(self):
        super().setUp()
        if not hasattr(self, "ldap_faker"):
            LDAPFakerMixin.setUp(self)
        self.settings_patcher = patch("django.conf.settings.LDAP_SERVERS", LDAP_SERVERS)
        self.settings_patcher.start()

        # Clear the fake LDAP directory before each test, then reload
        self.server_factory.default.raw_objects.clear()
        self.server_factory.default.objects.clear()
        for dn, attrs in self.test_users:
            self.server_factory.default.register_object((dn, attrs))

        self.manipulator = LdapUserManipulator.from_settings()
        self.basedn = "ou=people,dc=example,dc=com"

    def tearDown(self):
        self.settings_patcher.stop()
        super().tearDown()

    def search(self, *values, extra=None):
        return self.manipulator.search_users(
            self.basedn, "inetOrgPerson", "uid", extra or ["mail", "uid"], list(values)
        )

    def new_user(self):
        return LdapUser(
            "uid=jdoe,ou=people,dc=example,dc=com",
            cn="jdoe",
            sn="Doe",
            attributes={"uid": ["jdoe"], "mail": ["jdoe@example.com"]},
        )

    def test_search_existing_user(self):
        state, users = self.search("alice")
        self.assertEqual(state, LdapState.SUCCESS)
        self.assertEqual(len(users), 1)
        self.assertEqual(users[0].get_user_dn(), "uid=alice,ou=people,dc=example,dc=com")
        self.assertEqual(users[0].get_user_cn(), "Alice Johnson")
        self.assertEqual(users[0].get_user_sn(), "Johnson")
        self.assertEqual(users[0].get_user_attribute("mail"), ["alice@example.com"])

    def test_search_one_match_one_miss(self):
        state, users = self.search("alice", "nobody")
        self.assertEqual(state, LdapState.SUCCESS)
        self.assertEqual([u.get_user_dn() for u in users], ["uid=alice,ou=people,dc=example,dc=com"])

    def test_search_several_users(self):
        state, users = self.search("bob", "alice")
        self.assertEqual(state, LdapState.SUCCESS)
        self.assertEqual(
            [u.get_user_dn() for u in users],
            ["uid=bob,ou=people,dc=example,dc=com", "uid=alice,ou=people,dc=example,dc=com"],
        )

    def test_search_no_matches(self):
        state, users = self.search("nobody", "noone")
        self.assertEqual(state, LdapState.SEARCH_USER_ERROR)
        self.assertEqual(users, [])

    def test_create_then_search(self):
        user = self.new_user()
        self.assertEqual(self.manipulator.create_user(user, "inetOrgPerson"), LdapState.SUCCESS)
        state, users = self.search("jdoe")
        self.assertEqual(state, LdapState.SUCCESS)
        self.assertEqual(len(users), 1)
        self.assertEqual(users[0].get_user_dn(), user.get_user_dn())
        self.assertEqual(users[0].get_user_cn(), "jdoe")
        self.assertEqual(users[0].get_user_sn(), "Doe")

    def test_create_existing_user_fails(self):
        user = self.new_user()
        self.assertEqual(self.manipulator.create_user(user, "inetOrgPerson"), LdapState.SUCCESS)
        self.assertEqual(
            self.manipulator.create_user(user, "inetOrgPerson"), LdapState.CREATE_USER_ERROR
        )

    def test_delete_user(self):
        user = self.new_user()
        self.manipulator.create_user(user, "inetOrgPerson")
        self.assertEqual(self.manipulator.delete_user(user), LdapState.SUCCESS)
        state, users = self.search("jdoe")
        self.assertEqual(state, LdapState.SEARCH_USER_ERROR)
        self.assertEqual(users, [])

    def test_delete_missing_user_fails(self):
        self.assertEqual(self.manipulator.delete_user(self.new_user()), LdapState.DELETE_USER_ERROR)

    def test_modify_user_attribute(self):
        alice = self.search("alice")[1][0]
        state = self.manipulator.modify_user_attribute(
            AttributeOperation.ADD, alice, "mail", "aj@example.com"
        )
        self.assertEqual(state, LdapState.SUCCESS)
        self.assertEqual(alice.get_user_attribute("mail"), ["alice@example.com", "aj@example.com"])
        reread = self.search("alice")[1][0]
        self.assertEqual(
            sorted(reread.get_user_attribute("mail")), ["aj@example.com", "alice@example.com"]
        )

        state = self.manipulator.modify_user_attribute(
            AttributeOperation.REPLACE, alice, "mail", "a.johnson@example.com"
        )
        self.assertEqual(state, LdapState.SUCCESS)
        self.assertEqual(alice.get_user_attribute("mail"), ["a.johnson@example.com"])
        reread = self.search("alice")[1][0]
        self.assertEqual(reread.get_user_attribute("mail"), ["a.johnson@example.com"])

    def test_modify_missing_user_fails(self):
        user = self.new_user()
        state = self.manipulator.modify_user_attribute(
            AttributeOperation.REPLACE, user, "mail", "other@example.com"
        )
        self.assertEqual(state, LdapState.MODIFY_USER_ATTRIBUTE_ERROR)
        self.assertEqual(user.get_user_attribute("mail"), ["jdoe@example.com"])

    def test_change_password_then_authenticate(self):
        alice = self.search("alice")[1][0]
        self.assertEqual(self.manipulator.authenticate_user(alice, "password"), LdapState.SUCCESS)
        self.assertEqual(
            self.manipulator.change_user_password(alice, "NewPass123"), LdapState.SUCCESS
        )
        self.assertEqual(alice.get_user_attribute("userPassword"), ["NewPass123"])
        self.assertEqual(
            self.manipulator.authenticate_user(alice, "NewPass123"), LdapState.SUCCESS
        )
        self.assertEqual(
            self.manipulator.authenticate_user(alice, "password"),
            LdapState.AUTHENTICATE_USER_ERROR,
        )

    def test_authenticate_wrong_password(self):
        alice = self.search("alice")[1][0]
        self.assertEqual(
            self.manipulator.authenticate_user(alice, "wrongpassword"),
            LdapState.AUTHENTICATE_USER_ERROR,
        )
