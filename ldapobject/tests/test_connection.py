"""
Tests for LdapConnectionProvider, using python-ldap-faker.
"""

import unittest
from unittest.mock import patch

import django
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.test import override_settings
from ldap_faker.unittest import LDAPFakerMixin

LDAP_SERVERS = {
    "default": {
        "read": {
            "url": "ldap://localhost:389",
            "user": "cn=admin,dc=example,dc=com",
            "password": "admin",
            "use_starttls": False,
            "tls_verify": "never",
            "timeout": 15.0,
            "follow_referrals": False,
        },
    },
}

if not settings.configured:
    settings.configure(LDAP_SERVERS=LDAP_SERVERS)
django.setup()

from ldapobject.connection import (  # noqa: E402
    LdapConnectionProvider,
    atomic,
    get_default_server,
)


class Reader:
    def __init__(self, provider):
        self.provider = provider
        self.seen = []

    @atomic
    def read(self):
        self.seen.append(self.provider.has_connection())
        return self.provider.connection

    @atomic
    def read_twice(self):
        return self.read(), self.read()

    @atomic
    def fail(self):
        msg = "boom"
        raise RuntimeError(msg)


class TestLdapConnectionProvider(LDAPFakerMixin, unittest.TestCase):
    ldap_modules = ["ldapobject"]
    ldap_fixtures = [("data.json", "ldap://localhost:389", ["389"])]

    def setUp(self):
        super().setUp()
        self.settings_override = override_settings(LDAP_SERVERS=LDAP_SERVERS)
        self.settings_override.enable()

    def tearDown(self):
        self.settings_override.disable()
        super().tearDown()

    def test_default_server(self):
        self.assertEqual(get_default_server(), "default")
        provider = LdapConnectionProvider()
        self.assertEqual(provider.server, "default")
        self.assertEqual(provider.config["url"], "ldap://localhost:389")

    def test_default_server_from_settings(self):
        servers = {"other": LDAP_SERVERS["default"]}
        with override_settings(
            LDAP_SERVERS=servers, LDAPOBJECT_DEFAULT_SERVER="other"
        ):
            self.assertEqual(LdapConnectionProvider().server, "other")

    def test_unknown_server(self):
        with self.assertRaises(ImproperlyConfigured):
            LdapConnectionProvider("nope")

    def test_server_without_read_block(self):
        with override_settings(LDAP_SERVERS={"default": {"write": {}}}):
            with self.assertRaises(ImproperlyConfigured):
                LdapConnectionProvider()

    def test_connection_management(self):
        provider = LdapConnectionProvider()
        self.assertFalse(provider.has_connection())
        provider.connect()
        self.assertTrue(provider.has_connection())
        self.assertIsNotNone(provider.connection)
        provider.disconnect()
        self.assertFalse(provider.has_connection())

    def test_connection_without_connect(self):
        provider = LdapConnectionProvider()
        with self.assertRaises(ImproperlyConfigured):
            provider.connection  # noqa: B018

    def test_new_connection(self):
        provider = LdapConnectionProvider()
        connection = provider.new_connection()
        self.assertIsNotNone(connection)
        self.assertFalse(provider.has_connection())
        connection.unbind_s()

    def test_invalid_tls_verify(self):
        servers = {
            "default": {"read": dict(LDAP_SERVERS["default"]["read"], tls_verify="x")}
        }
        with override_settings(LDAP_SERVERS=servers):
            provider = LdapConnectionProvider()
            with self.assertRaises(ValueError):
                provider.connect()

    def test_missing_ca_certfile(self):
        servers = {
            "default": {
                "read": dict(
                    LDAP_SERVERS["default"]["read"],
                    tls_ca_certfile="/nonexistent/ca.pem",
                )
            }
        }
        with override_settings(LDAP_SERVERS=servers):
            provider = LdapConnectionProvider()
            with self.assertRaises(OSError):
                provider.connect()

    def test_atomic_opens_and_closes(self):
        provider = LdapConnectionProvider()
        reader = Reader(provider)
        self.assertIsNotNone(reader.read())
        self.assertEqual(reader.seen, [True])
        self.assertFalse(provider.has_connection())

    def test_atomic_reuses_open_connection(self):
        provider = LdapConnectionProvider()
        reader = Reader(provider)
        first, second = reader.read_twice()
        self.assertIs(first, second)
        self.assertFalse(provider.has_connection())

    def test_atomic_closes_on_error(self):
        provider = LdapConnectionProvider()
        reader = Reader(provider)
        with self.assertRaises(RuntimeError):
            reader.fail()
        self.assertFalse(provider.has_connection())


class TestLdapConnectionProviderBind(unittest.TestCase):
    def setUp(self):
        self.settings_override = override_settings(LDAP_SERVERS=LDAP_SERVERS)
        self.settings_override.enable()

    def tearDown(self):
        self.settings_override.disable()

    @patch("ldapobject.ldap.initialize")
    def test_binds_as_configured_user(self, initialize):
        provider = LdapConnectionProvider()
        provider.connect()
        initialize.assert_called_once_with("ldap://localhost:389")
        initialize.return_value.simple_bind_s.assert_called_once_with(
            "cn=admin,dc=example,dc=com", "admin"
        )
        initialize.return_value.start_tls_s.assert_not_called()
        self.assertIs(provider.connection, initialize.return_value)
        provider.disconnect()
        initialize.return_value.unbind_s.assert_called_once_with()
