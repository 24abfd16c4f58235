"""
Type aliases for the data python-ldap hands back from a search.
"""

#: What ``search_s`` returns.  References show up with non-dict attributes.
LDAPSearchResult = list[tuple[str | None, object]]
#: A decoded attribute: its name and its values, in server order.
AttributeValues = tuple[str, list[str]]
