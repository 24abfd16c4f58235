"""
Open and hand out python-ldap connections configured in Django settings.

The servers we know about live in ``settings.LDAP_SERVERS``::

    LDAP_SERVERS = {
        "default": {
            "read": {
                "url": "ldaps://ldap.example.com",
                "user": "cn=reader,dc=example,dc=com",
                "password": "secret",
                "use_starttls": False,
                "tls_verify": "always",
                "timeout": 15.0,
            },
        },
    }

Lookups only read, so only the ``read`` block is used.
"""

import logging
import threading
from collections.abc import Callable
from functools import wraps
from pathlib import Path
from typing import Any, cast

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from ldapobject import ldap

logger = logging.getLogger(__name__)


def get_default_server() -> str:
    """
    Return the name of the server in ``settings.LDAP_SERVERS`` to use when
    none is given.
    """
    return getattr(settings, "LDAPOBJECT_DEFAULT_SERVER", "default")


def atomic(func: Callable) -> Callable:
    """
    Decorator for methods of objects that have a ``provider`` attribute (an
    :py:class:`LdapConnectionProvider`).  If the current thread has no
    connection yet, open one for the duration of the call and unbind it
    afterwards, no matter how the call ends.

    Args:
        func: The method to wrap.

    Returns:
        The wrapped method.

    """

    @wraps(func)
    def wrapper(self, *args, **kwargs) -> Any:
        provider = cast("LdapConnectionProvider", self.provider)
        if provider.has_connection():
            # We're already inside a wrapped call
            return func(self, *args, **kwargs)
        provider.connect()
        try:
            retval = func(self, *args, **kwargs)
        finally:
            provider.disconnect()
        return retval

    return wrapper


class LdapConnectionProvider:
    """
    Supplies bound python-ldap connections for one server in
    ``settings.LDAP_SERVERS``.

    Connections are kept per thread, since a python-ldap connection must not
    be shared between threads.

    Keyword Args:
        server: the key in ``settings.LDAP_SERVERS``.  Defaults to
            ``settings.LDAPOBJECT_DEFAULT_SERVER``, or ``"default"``.

    Raises:
        ImproperlyConfigured: ``settings.LDAP_SERVERS`` is missing, has no
            such server, or the server has no ``read`` block

    """

    def __init__(self, server: str | None = None) -> None:
        self.logger = logger
        self.server: str = server or get_default_server()
        try:
            servers = settings.LDAP_SERVERS
        except AttributeError as e:
            msg = "settings.LDAP_SERVERS does not exist!"
            raise ImproperlyConfigured(msg) from e
        try:
            self.config: dict[str, Any] = servers[self.server]["read"]
        except KeyError as e:
            msg = (
                f"settings.LDAP_SERVERS has no key '{self.server}', or it has "
                "no 'read' configuration"
            )
            raise ImproperlyConfigured(msg) from e
        # keys in this dictionary get manipulated by .connect() and .disconnect()
        self._ldap_objects: dict[threading.Thread, ldap.ldapobject.LDAPObject] = {}  # type: ignore[name-defined]

    def _check_file(self, label: str, filename: str) -> None:
        path = Path(filename)
        if not path.exists():
            msg = f"{label} file does not exist: {filename}"
            raise OSError(msg)
        if not path.is_file():
            msg = f"{label} file is not a file: {filename}"
            raise OSError(msg)

    def _connect(self) -> ldap.ldapobject.LDAPObject:  # type: ignore[name-defined]
        """
        Create, configure and bind a new LDAP connection as the configured
        ``user``.

        Raises:
            ldap.LDAPError: the directory could not be reached, or refused
                the bind
            ValueError: the ``tls_verify`` setting is neither ``never`` nor
                ``always``
            OSError: a configured CA certificate, certificate or key file
                does not exist or is not a file

        Returns:
            A bound LDAPObject.

        """
        config = self.config
        ldap_object: ldap.ldapobject.LDAPObject = ldap.initialize(config["url"])  # type: ignore[name-defined]
        if config.get("follow_referrals", False):
            ldap_object.set_option(ldap.OPT_REFERRALS, 1)  # type: ignore[attr-defined]
        else:
            ldap_object.set_option(ldap.OPT_REFERRALS, 0)  # type: ignore[attr-defined]
        timeout = config.get("timeout", 15.0)
        ldap_object.set_option(ldap.OPT_NETWORK_TIMEOUT, float(timeout))  # type: ignore[attr-defined]
        tls_verify = config.get("tls_verify", "never")
        if tls_verify == "never":
            ldap_object.set_option(ldap.OPT_X_TLS_REQUIRE_CERT, ldap.OPT_X_TLS_NEVER)  # type: ignore[attr-defined]
        elif tls_verify == "always":
            ldap_object.set_option(ldap.OPT_X_TLS_REQUIRE_CERT, ldap.OPT_X_TLS_DEMAND)  # type: ignore[attr-defined]
        else:
            msg = f"Invalid tls_verify value: {tls_verify}"
            raise ValueError(msg)
        if tls_ca_certfile := config.get("tls_ca_certfile", None):
            self._check_file("CA Certificate", tls_ca_certfile)
            ldap_object.set_option(ldap.OPT_X_TLS_CACERTFILE, tls_ca_certfile)  # type: ignore[attr-defined]
        if tls_certfile := config.get("tls_certfile", None):
            self._check_file("TLS Certificate", tls_certfile)
            ldap_object.set_option(ldap.OPT_X_TLS_CERTFILE, tls_certfile)  # type: ignore[attr-defined]
        if tls_keyfile := config.get("tls_keyfile", None):
            self._check_file("TLS Key", tls_keyfile)
            ldap_object.set_option(ldap.OPT_X_TLS_KEYFILE, tls_keyfile)  # type: ignore[attr-defined]
        ldap_object.set_option(ldap.OPT_X_TLS_NEWCTX, 0)  # type: ignore[attr-defined]
        if config.get("use_starttls", True):
            ldap_object.start_tls_s()
        ldap_object.simple_bind_s(config["user"], config["password"])
        self.logger.debug(
            "ldapobject.connection.bound server=%s url=%s dn=%s",
            self.server,
            config["url"],
            config["user"],
        )
        return ldap_object

    def connect(self) -> None:
        """
        Open the current thread's connection.  Used by :py:func:`atomic`.
        """
        self._ldap_objects[threading.current_thread()] = self._connect()

    def disconnect(self) -> None:
        """
        Unbind and forget the current thread's connection.
        """
        try:
            self.connection.unbind_s()
        finally:
            self.remove_connection()

    def has_connection(self) -> bool:
        return threading.current_thread() in self._ldap_objects

    def remove_connection(self) -> None:
        del self._ldap_objects[threading.current_thread()]

    def new_connection(self) -> ldap.ldapobject.LDAPObject:  # type: ignore[name-defined]
        """
        Return a new bound connection that the caller owns and must unbind.
        """
        return self._connect()

    @property
    def connection(self) -> ldap.ldapobject.LDAPObject:  # type: ignore[name-defined]
        """
        The current thread's connection.

        Raises:
            ImproperlyConfigured: this thread has no open connection

        """
        try:
            return self._ldap_objects[threading.current_thread()]
        except KeyError as e:
            msg = (
                f"No open LDAP connection to '{self.server}' in this thread. "
                "Call connect() first."
            )
            raise ImproperlyConfigured(msg) from e
