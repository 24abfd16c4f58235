"""
Run one search against an open LDAP connection and insist on exactly one
result.
"""

import logging
from base64 import b64encode as encode
from typing import Any, NamedTuple

from django.core.exceptions import ImproperlyConfigured

from ldapobject import ldap

from .exceptions import (
    Ambiguous,
    NotFound,
    ProtocolError,
    from_ldap_error,
    ldap_error_details,
)
from .query import ResolvedQuery
from .typing import AttributeValues, LDAPSearchResult

logger = logging.getLogger(__name__)


class RawEntry(NamedTuple):
    """
    One directory entry as the server sent it: its DN, and its attributes in
    the order they arrived, each with its values in server order.
    """

    location: str
    attributes: list[AttributeValues]


class DirectorySearcher:
    """
    Execute exactly one search for a :py:class:`~ldapobject.query.ResolvedQuery`.

    We never open, close or rebind the connection we are given; that belongs
    to whoever handed it to us.  We ask for every attribute, set no size
    limit and send no paging control, and we do not retry.
    """

    def __init__(self) -> None:
        self.logger = logger

    def search(self, connection: Any, query: ResolvedQuery) -> RawEntry:
        """
        Search for the single entry ``query`` selects.

        Args:
            connection: an open, bound python-ldap ``LDAPObject``
            query: the base DN, scope and filter to search with

        Raises:
            ImproperlyConfigured: ``connection`` is ``None``
            NotFound: nothing matched
            Ambiguous: two or more entries matched
            DirectoryUnavailable: the directory could not be reached
            ProtocolError: the directory rejected the search or sent back
                something we could not read

        Returns:
            The matching entry.

        """
        if connection is None:
            msg = "No LDAP connection is available; refusing to search."
            raise ImproperlyConfigured(msg)
        self.logger.debug(
            "ldapobject.search base=%s scope=%s filter=%s",
            query.location,
            query.scope.value,
            query.filter,
        )
        try:
            data = connection.search_s(
                query.location,
                query.scope.ldap_scope,
                filterstr=query.filter,
                attrlist=None,
            )
        except ldap.NO_SUCH_OBJECT as e:  # type: ignore[attr-defined]
            details = ldap_error_details(e)
            self.logger.warning(
                "ldapobject.search.no-such-object base=%s matched=%s",
                query.location,
                details.get("matched"),
            )
            raise NotFound(
                query,
                description=details.get("desc"),
                matched=details.get("matched"),
                info=details.get("info"),
            ) from e
        except ldap.LDAPError as e:  # type: ignore[attr-defined]
            raise from_ldap_error(e) from e
        entries = self._entries(data)
        if len(entries) == 0:
            self.logger.warning(
                "ldapobject.search.not-found base=%s scope=%s filter=%s",
                query.location,
                query.scope.value,
                query.filter,
            )
            raise NotFound(query)
        if len(entries) > 1:
            self.logger.warning(
                "ldapobject.search.ambiguous base=%s scope=%s filter=%s count=%d",
                query.location,
                query.scope.value,
                query.filter,
                len(entries),
            )
            raise Ambiguous(query, len(entries))
        return self._to_entry(*entries[0])

    def _entries(self, data: LDAPSearchResult | None) -> list[tuple[Any, Any]]:
        """
        Drop search references from a result set.  Active Directory returns
        these with a non-dict where the attributes would be.

        Args:
            data: what ``search_s`` returned

        Raises:
            ProtocolError: ``data`` is not a list of result rows

        Returns:
            The result rows that are real entries.

        """
        if data is None:
            return []
        try:
            return [row for row in data if isinstance(row[1], dict)]
        except (TypeError, IndexError, KeyError) as e:
            msg = f"Malformed search response from the directory: {data!r}"
            raise ProtocolError(msg) from e

    def _to_entry(self, dn: Any, attrs: dict[Any, Any]) -> RawEntry:
        """
        Decode one python-ldap result row.

        Args:
            dn: the DN of the entry
            attrs: the attributes of the entry, values as bytes

        Raises:
            ProtocolError: the row does not look like an LDAP entry

        Returns:
            The entry, with each value decoded to text.

        """
        if not isinstance(dn, str):
            msg = f"Malformed search response: entry DN {dn!r} is not a string"
            raise ProtocolError(msg)
        attributes: list[AttributeValues] = []
        for name, values in attrs.items():
            if not isinstance(name, str) or not isinstance(values, list):
                msg = (
                    f"Malformed search response: attribute {name!r} of {dn} "
                    f"has values {values!r}"
                )
                raise ProtocolError(msg)
            attributes.append((name, [self._decode(dn, name, v) for v in values]))
        return RawEntry(dn, attributes)

    def _decode(self, dn: str, name: str, value: Any) -> str:
        """
        Decode one attribute value.  Values that are not UTF-8 text
        (``jpegPhoto``, ``userCertificate`` ...) come back base64 encoded, as
        LDIF would show them.
        """
        if not isinstance(value, bytes):
            msg = (
                f"Malformed search response: attribute {name} of {dn} has a "
                f"value of type {type(value).__name__}"
            )
            raise ProtocolError(msg)
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError:
            return encode(value).decode("ascii")


def search(connection: Any, query: ResolvedQuery) -> RawEntry:
    """
    Run :py:meth:`DirectorySearcher.search` with a fresh searcher.
    """
    return DirectorySearcher().search(connection, query)
