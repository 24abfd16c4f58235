"""
Exceptions raised while resolving an LDAP object.

Every failure of a lookup is terminal for that lookup: nothing here is
retried, and each exception carries the diagnostic text needed to report
it once to whoever asked.
"""

from typing import TYPE_CHECKING, Any, Optional

from ldapobject import ldap

if TYPE_CHECKING:
    from .query import ResolvedQuery


class LdapObjectError(Exception):
    """Base class for all lookup failures."""


class InvalidSpecification(LdapObjectError):
    """
    The query specification handed to us breaks the rules the validation
    layer is supposed to enforce.
    """


class NotFound(LdapObjectError):
    """
    The search matched no entry.

    When the directory itself said so (``NO_SUCH_OBJECT``, usually because the
    base DN does not exist), its diagnostic text is kept and added to the
    message.

    Args:
        query: the resolved query that matched nothing

    Keyword Args:
        description: the short error description from the directory
        matched: the longest part of the base DN the directory did find
        info: the extra diagnostic info from the directory, if any

    """

    def __init__(
        self,
        query: "ResolvedQuery",
        description: Optional[str] = None,
        matched: Optional[str] = None,
        info: Optional[str] = None,
    ) -> None:
        self.query = query
        self.description = description
        self.matched = matched
        self.info = info
        msg = (
            f"No entry found for base '{query.location}' with scope "
            f"{query.scope.value} and filter {query.filter}"
        )
        if description:
            msg = f"{msg}: {description}"
        if info:
            msg = f"{msg}: {info}"
        if matched:
            msg = f"{msg} (matched '{matched}')"
        super().__init__(msg)


class Ambiguous(LdapObjectError):
    """
    The search matched more than one entry.  This is a configuration error on
    the caller's side: the search does not narrow things down enough.

    Args:
        query: the resolved query that matched too much
        count: how many entries it matched

    """

    def __init__(self, query: "ResolvedQuery", count: int) -> None:
        self.query = query
        self.count = count
        msg = (
            f"search returned {count} results for base '{query.location}' with "
            f"scope {query.scope.value} and filter {query.filter}; expected exactly 1"
        )
        super().__init__(msg)


class DirectoryError(LdapObjectError):
    """
    Base class for failures reported by python-ldap.

    Args:
        message: the diagnostic text, as given to us by the directory

    Keyword Args:
        description: the short error description from the directory
        info: the extra diagnostic info from the directory, if any

    """

    def __init__(
        self,
        message: str,
        description: Optional[str] = None,
        info: Optional[str] = None,
    ) -> None:
        self.description = description
        self.info = info
        super().__init__(message)


class DirectoryUnavailable(DirectoryError):
    """We could not reach the directory, or it stopped answering."""


class ProtocolError(DirectoryError):
    """The directory refused the search or sent back something malformed."""


#: python-ldap errors that mean the directory could not be reached
UNAVAILABLE_ERRORS: tuple[type[Exception], ...] = (
    ldap.SERVER_DOWN,  # type: ignore[attr-defined]
    ldap.CONNECT_ERROR,  # type: ignore[attr-defined]
    ldap.TIMEOUT,  # type: ignore[attr-defined]
    ldap.TIMELIMIT_EXCEEDED,  # type: ignore[attr-defined]
)


def ldap_error_details(e: Exception) -> dict[str, Any]:
    """
    Return the diagnostic dict python-ldap puts in the first arg of its
    exceptions (keys ``desc``, and optionally ``info`` and ``matched``), or
    an empty dict if there is none.
    """
    details = e.args[0] if e.args else None
    if isinstance(details, dict):
        return details
    return {}


def from_ldap_error(e: Exception) -> DirectoryError:
    """
    Wrap a python-ldap exception, keeping the directory's own diagnostic
    text.  Errors in :py:data:`UNAVAILABLE_ERRORS` become
    :py:class:`DirectoryUnavailable`; everything else becomes
    :py:class:`ProtocolError`.  Raise the result ``from e``.

    Args:
        e: the python-ldap exception

    Returns:
        The exception to raise.

    """
    exc_class: type[DirectoryError] = ProtocolError
    if isinstance(e, UNAVAILABLE_ERRORS):
        exc_class = DirectoryUnavailable
    details = ldap_error_details(e)
    if not details:
        return exc_class(str(e) or type(e).__name__)
    description = details.get("desc")
    info = details.get("info")
    message = str(description) if description else type(e).__name__
    if info:
        message = f"{message}: {info}"
    return exc_class(message, description=description, info=info)
