"""
Turn a raw directory entry into the shape callers consume: the object
classes pulled out on their own, and every other attribute keyed by name.
"""

from typing import Any, NamedTuple

from .searcher import RawEntry

#: The attribute whose values become :py:attr:`NormalizedObject.object_classes`.
#: Matched case-sensitively.
OBJECTCLASS_ATTRIBUTE: str = "objectClass"


class NormalizedObject(NamedTuple):
    """
    A directory entry, normalized.

    The order of values within each attribute is the order the server sent
    them in, and is significant.  The order of the attribute names is not.
    """

    #: The DN of the entry.  Also serves as its identifier.
    location: str
    #: The values of the ``objectClass`` attribute
    object_classes: list[str]
    #: Every other attribute, by name as the server spelled it
    attributes: dict[str, list[str]]

    @property
    def identifier(self) -> str:
        return self.location

    def as_state(self) -> dict[str, Any]:
        """
        Return this object as the flat dict a configuration layer stores.

        Returns:
            A dict with keys ``id``, ``dn``, ``object_classes`` and
            ``attributes``.  All lists are copies.

        """
        return {
            "id": self.identifier,
            "dn": self.location,
            "object_classes": list(self.object_classes),
            "attributes": {
                name: list(values) for name, values in self.attributes.items()
            },
        }


def normalize(entry: RawEntry) -> NormalizedObject:
    """
    Normalize ``entry``.  ``entry`` is not modified, and the returned object
    shares no lists with it.

    If an entry somehow repeats an attribute name, the last one wins.

    Args:
        entry: the entry as returned by the searcher

    Returns:
        The normalized object.

    """
    object_classes: list[str] = []
    attributes: dict[str, list[str]] = {}
    for name, values in entry.attributes:
        if name == OBJECTCLASS_ATTRIBUTE:
            object_classes = list(values)
        else:
            attributes[name] = list(values)
    return NormalizedObject(entry.location, object_classes, attributes)
