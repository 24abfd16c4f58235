"""
Resolve a single LDAP object by DN or by search, and normalize its attributes.
"""

__version__ = "1.0.0"
