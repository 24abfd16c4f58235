"""
Read a single LDAP object into the flat state a declarative configuration
layer keeps.

Use :py:func:`lookup_object` when you already have an open connection and a
query specification.  Use :py:class:`LdapObjectDataSource` when you start
from raw configuration (``dn``, or ``base_dn`` + ``scope`` + ``filter``).
"""

import logging
from typing import Any

from django.core.exceptions import ImproperlyConfigured

from ldapobject import ldap

from .connection import LdapConnectionProvider, atomic
from .exceptions import InvalidSpecification, LdapObjectError, from_ldap_error
from .forms import ObjectQueryForm
from .normalize import NormalizedObject, normalize
from .query import QuerySpecification, resolve
from .searcher import DirectorySearcher

logger = logging.getLogger(__name__)


def lookup_object(connection: Any, spec: QuerySpecification) -> NormalizedObject:
    """
    Resolve ``spec``, search for it over ``connection``, and normalize the one
    entry found.

    Args:
        connection: an open, bound python-ldap connection
        spec: what to look for

    Raises:
        InvalidSpecification: ``spec`` is malformed
        NotFound: nothing matched
        Ambiguous: more than one entry matched
        DirectoryUnavailable: the directory could not be reached
        ProtocolError: the directory rejected the search

    Returns:
        The normalized object.

    """
    query = resolve(spec)
    entry = DirectorySearcher().search(connection, query)
    return normalize(entry)


class LdapObjectDataSource:
    """
    Reads one LDAP object per call to :py:meth:`read`.

    Hand it a connection with :py:meth:`configure` before reading.  It takes
    either an open python-ldap connection (anything with ``search_s``), which
    it uses as-is and never closes, or an
    :py:class:`~ldapobject.connection.LdapConnectionProvider`, from which it
    opens a connection for each read and unbinds it afterwards.
    """

    def __init__(self) -> None:
        self.logger = logger
        self.conn: Any = None
        self.provider: LdapConnectionProvider | None = None

    def configure(self, provider_data: Any) -> None:
        """
        Give this data source its connection.

        Args:
            provider_data: a python-ldap ``LDAPObject``, an
                :py:class:`~ldapobject.connection.LdapConnectionProvider`, or
                ``None`` (not configured yet; ignored)

        Raises:
            ImproperlyConfigured: ``provider_data`` is something else

        """
        if provider_data is None:
            return
        if isinstance(provider_data, LdapConnectionProvider):
            self.provider = provider_data
            self.conn = None
        elif hasattr(provider_data, "search_s"):
            self.conn = provider_data
            self.provider = None
        else:
            msg = (
                "Unexpected data source configure type: expected an LDAPObject "
                f"or an LdapConnectionProvider, got {type(provider_data).__name__}"
            )
            raise ImproperlyConfigured(msg)

    def get_specification(self, config: dict[str, Any]) -> QuerySpecification:
        """
        Validate ``config`` and turn it into a query specification.

        Args:
            config: a dict with some of ``dn``, ``base_dn``, ``scope`` and
                ``filter``

        Raises:
            InvalidSpecification: ``config`` failed validation.  The message
                lists every error.

        Returns:
            The query specification.

        """
        form = ObjectQueryForm(data=config)
        if not form.is_valid():
            errors = "; ".join(
                f"{field}: {' '.join(messages)}" if field != "__all__"
                else " ".join(messages)
                for field, messages in form.errors.items()
            )
            msg = f"Invalid LDAP object configuration: {errors}"
            raise InvalidSpecification(msg)
        return form.to_specification()

    def read(self, config: dict[str, Any]) -> dict[str, Any]:
        """
        Look up the object ``config`` describes.

        Args:
            config: a dict with some of ``dn``, ``base_dn``, ``scope`` and
                ``filter``

        Raises:
            ImproperlyConfigured: :py:meth:`configure` was never given a
                connection
            LdapObjectError: the configuration is invalid, or the lookup failed.
                Failing to bind to the directory raises
                :py:class:`~ldapobject.exceptions.DirectoryUnavailable` or
                :py:class:`~ldapobject.exceptions.ProtocolError` too.

        Returns:
            ``config``'s ``base_dn``, ``scope`` and ``filter``, plus ``id``
            and ``dn`` (both the DN of the object found), ``object_classes``
            and ``attributes``.

        """
        spec = self.get_specification(config)
        if self.provider is not None:
            try:
                obj = self._read_with_provider(spec)
            except ldap.LDAPError as e:  # type: ignore[attr-defined]
                # Raised while binding or unbinding, outside the search itself
                error = from_ldap_error(e)
                self.logger.info(
                    "ldapobject.datasource.connect.failed server=%s error=%s reason=%s",
                    self.provider.server,
                    type(error).__name__,
                    error,
                )
                raise error from e
        elif self.conn is not None:
            obj = self._lookup(self.conn, spec)
        else:
            msg = (
                "LdapObjectDataSource has no LDAP connection; call configure() "
                "with a connection or an LdapConnectionProvider first."
            )
            raise ImproperlyConfigured(msg)
        state: dict[str, Any] = {
            "base_dn": config.get("base_dn"),
            "scope": config.get("scope"),
            "filter": config.get("filter"),
        }
        state.update(obj.as_state())
        return state

    @atomic
    def _read_with_provider(self, spec: QuerySpecification) -> NormalizedObject:
        return self._lookup(
            self.provider.connection,  # type: ignore[union-attr]
            spec,
        )

    def _lookup(self, connection: Any, spec: QuerySpecification) -> NormalizedObject:
        try:
            return lookup_object(connection, spec)
        except LdapObjectError as e:
            self.logger.info(
                "ldapobject.datasource.read.failed error=%s reason=%s",
                type(e).__name__,
                e,
            )
            raise
