"""
Validate the configuration of an object lookup before we run it.

:py:class:`ObjectQueryForm` enforces the rules the lookup itself takes for
granted: exactly one of ``dn`` and ``base_dn``, and no ``scope`` or
``filter`` next to a ``dn``.
"""

from typing import Any

from django import forms
from django.core.exceptions import ValidationError
from ldap_filter import Filter
from ldap_filter.parser import ParseError

from .query import QuerySpecification, Scope, specification_from_config


class LdapFilterField(forms.CharField):
    """
    A :py:class:`~django.forms.CharField` that only accepts syntactically
    valid LDAP filters, such as ``(&(objectClass=person)(cn=alice))``.
    """

    default_error_messages = {  # noqa: RUF012
        "invalid_filter": "Enter a valid LDAP filter: %(error)s",
    }

    def validate(self, value: str) -> None:
        super().validate(value)
        if value in self.empty_values:
            return
        try:
            Filter.parse(value)
        except ParseError as e:
            raise ValidationError(
                self.error_messages["invalid_filter"],
                code="invalid_filter",
                params={"error": str(e)},
            ) from e


class ObjectQueryForm(forms.Form):
    """
    The configuration of one object lookup: either ``dn`` alone, or
    ``base_dn`` with an optional ``scope`` and ``filter``.
    """

    dn = forms.CharField(
        required=False,
        strip=True,
        help_text="DN of the LDAP object",
    )
    base_dn = forms.CharField(
        required=False,
        strip=True,
        help_text="Base DN to search for the LDAP object under",
    )
    scope = forms.ChoiceField(
        required=False,
        choices=[(scope.value, scope.value) for scope in Scope],
        help_text="Scope to use to search for the LDAP object",
    )
    filter = LdapFilterField(
        required=False,
        strip=True,
        help_text="Filter to use to search for the LDAP object",
    )

    def clean(self) -> dict[str, Any]:
        cleaned_data = super().clean()
        dn = cleaned_data.get("dn")
        base_dn = cleaned_data.get("base_dn")
        if dn and base_dn:
            msg = "Set exactly one of dn and base_dn, not both."
            raise ValidationError(msg, code="exactly_one_of")
        if not dn and not base_dn and "dn" not in self.errors:
            msg = "Set exactly one of dn and base_dn."
            raise ValidationError(msg, code="exactly_one_of")
        if dn:
            for name in ("scope", "filter"):
                if cleaned_data.get(name):
                    self.add_error(
                        name,
                        ValidationError(
                            f"{name} cannot be used together with dn.",
                            code="conflicts_with",
                        ),
                    )
        return cleaned_data

    def to_specification(self) -> QuerySpecification:
        """
        Return the query specification for this form.  Only call this on a
        valid form.

        Raises:
            ValueError: the form has not been validated, or is not valid

        Returns:
            A :py:class:`~ldapobject.query.ByIdentifier` or a
            :py:class:`~ldapobject.query.BySearch`.

        """
        if not self.is_bound or not self.is_valid():
            msg = "to_specification() needs a bound, valid ObjectQueryForm"
            raise ValueError(msg)
        return specification_from_config(
            dn=self.cleaned_data.get("dn"),
            base_dn=self.cleaned_data.get("base_dn"),
            scope=self.cleaned_data.get("scope"),
            filter=self.cleaned_data.get("filter"),
        )
