"""
Turn a query specification into the single search we send to the directory.

There are two ways to ask for an object: by its exact DN
(:py:class:`ByIdentifier`), or by searching under a base DN with a scope and
filter (:py:class:`BySearch`).  Both become a :py:class:`ResolvedQuery`.  A
lookup by DN is a base scope search anchored at that DN with a filter that
matches everything, which returns the entry if and only if it exists, so
the searcher only ever has one code path.
"""

from enum import Enum
from typing import NamedTuple, Union

from ldapobject import ldap

from .exceptions import InvalidSpecification

#: A filter every entry matches: every entry has an objectClass.
MATCH_ALL: str = "(objectClass=*)"


class Scope(str, Enum):
    """
    How far a search reaches from its base DN.  The values are the names used
    in configuration.
    """

    #: The base DN itself only
    BASE_OBJECT = "baseObject"
    #: The immediate children of the base DN
    SINGLE_LEVEL = "singleLevel"
    #: The base DN and all of its descendants
    WHOLE_SUBTREE = "wholeSubtree"

    @property
    def ldap_scope(self) -> int:
        """
        The python-ldap scope constant for this scope.
        """
        return {
            Scope.BASE_OBJECT: ldap.SCOPE_BASE,  # type: ignore[attr-defined]
            Scope.SINGLE_LEVEL: ldap.SCOPE_ONELEVEL,  # type: ignore[attr-defined]
            Scope.WHOLE_SUBTREE: ldap.SCOPE_SUBTREE,  # type: ignore[attr-defined]
        }[self]

    @classmethod
    def from_name(cls, name: Union["Scope", str]) -> "Scope":
        """
        Look up a scope by its configuration name.

        Args:
            name: ``baseObject``, ``singleLevel``, ``wholeSubtree``, or a
                :py:class:`Scope` member

        Raises:
            InvalidSpecification: ``name`` is not a known scope

        Returns:
            The matching scope.

        """
        try:
            return cls(name)
        except ValueError as e:
            choices = ", ".join(scope.value for scope in cls)
            msg = f"Unknown scope '{name}': expected one of {choices}"
            raise InvalidSpecification(msg) from e


class ByIdentifier(NamedTuple):
    """Fetch the entry whose DN is ``identifier``."""

    identifier: str


class BySearch(NamedTuple):
    """
    Fetch the single entry under ``base_location`` that ``scope`` and
    ``filter`` select.  ``None`` means "use the default".
    """

    base_location: str
    scope: Scope | None = None
    filter: str | None = None


QuerySpecification = Union[ByIdentifier, BySearch]


class ResolvedQuery(NamedTuple):
    """The search actually sent to the directory."""

    location: str
    scope: Scope
    filter: str


def resolve(spec: QuerySpecification) -> ResolvedQuery:
    """
    Collapse a query specification into a base DN, scope and filter.

    For :py:class:`ByIdentifier`, the scope is always
    :py:attr:`Scope.BASE_OBJECT` and the filter is always
    :py:data:`MATCH_ALL`.  For :py:class:`BySearch`, a missing scope defaults
    to :py:attr:`Scope.BASE_OBJECT` and a missing filter to
    :py:data:`MATCH_ALL`.

    Args:
        spec: what to look for

    Raises:
        InvalidSpecification: ``spec`` is neither shape, or names no location

    Returns:
        The search to run.

    """
    if isinstance(spec, ByIdentifier):
        if not spec.identifier:
            msg = "A lookup by DN needs a non-empty DN"
            raise InvalidSpecification(msg)
        return ResolvedQuery(spec.identifier, Scope.BASE_OBJECT, MATCH_ALL)
    if isinstance(spec, BySearch):
        if not spec.base_location:
            msg = "A lookup by search needs a non-empty base DN"
            raise InvalidSpecification(msg)
        scope = Scope.BASE_OBJECT
        if spec.scope is not None:
            scope = Scope.from_name(spec.scope)
        search_filter = spec.filter if spec.filter is not None else MATCH_ALL
        return ResolvedQuery(spec.base_location, scope, search_filter)
    msg = f"Expected ByIdentifier or BySearch, got {type(spec).__name__}"
    raise InvalidSpecification(msg)


def specification_from_config(
    dn: str | None = None,
    base_dn: str | None = None,
    scope: Scope | str | None = None,
    filter: str | None = None,  # noqa: A002
) -> QuerySpecification:
    """
    Build a query specification from flat configuration fields.

    A ``dn`` wins: ``scope`` and ``filter`` are ignored next to it, since a
    lookup by DN always searches the DN itself with :py:data:`MATCH_ALL`.

    Keyword Args:
        dn: the DN of the object to fetch
        base_dn: the DN to search under
        scope: the search scope, by name
        filter: the search filter

    Raises:
        InvalidSpecification: neither ``dn`` nor ``base_dn`` was given

    Returns:
        A :py:class:`ByIdentifier` or a :py:class:`BySearch`.

    """
    if dn:
        return ByIdentifier(dn)
    if base_dn:
        return BySearch(
            base_dn,
            scope=Scope.from_name(scope) if scope else None,
            filter=filter or None,
        )
    msg = "One of dn or base_dn is required"
    raise InvalidSpecification(msg)
