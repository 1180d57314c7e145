"""
Property-based tests for the registrar registry.

Verifies credential validation against registrar schemas and the mapping
of WHOIS/RDAP registrar strings onto connected registrar accounts.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from domain_monitor.models import RegistrarAccount
from domain_monitor.registrars import (
    REGISTRAR_REGISTRY,
    get_display_names,
    get_registrar_config,
    resolve_registrar_name,
    validate_credentials,
)


def account(name: str, connected: bool = True) -> RegistrarAccount:
    return RegistrarAccount(id=name.lower(), name=name, connected=connected)


class TestCredentialValidationProperty:
    """
    Property 39: Credentials are checked against the registrar schema.

    **Feature: domain-monitor, Property 39: Credential validation**
    """

    @given(name=st.sampled_from(sorted(REGISTRAR_REGISTRY)), data=st.data())
    @settings(max_examples=100)
    def test_missing_fields_reported(self, name: str, data) -> None:
        """
        *For any* registrar and any subset of its fields filled in, exactly
        the unfilled required fields SHALL be reported.
        """
        keys = [cred.key for cred in REGISTRAR_REGISTRY[name].credentials]
        filled = data.draw(st.sets(st.sampled_from(keys)))
        credentials = {key: "value" for key in filled}

        missing = validate_credentials(name, credentials)

        assert missing == [key for key in keys if key not in filled]

    @given(name=st.sampled_from(sorted(REGISTRAR_REGISTRY)))
    @settings(max_examples=50)
    def test_blank_values_count_as_missing(self, name: str) -> None:
        keys = [cred.key for cred in REGISTRAR_REGISTRY[name].credentials]

        assert validate_credentials(name, {key: "   " for key in keys}) == keys

    def test_unknown_registrar(self) -> None:
        assert validate_credentials("No Such Registrar", {"api_key": "x"}) == ["registrar"]

    def test_lookup_by_display_name(self) -> None:
        assert get_registrar_config("cloudflare").name == "Cloudflare, Inc."
        assert get_registrar_config("GoDaddy.com, LLC").display_name == "GoDaddy"
        assert get_registrar_config("unknown") is None

    def test_display_names_follow_registry(self) -> None:
        names = get_display_names()

        assert [name for name, _ in names] == list(REGISTRAR_REGISTRY)
        assert ("Porkbun", "Porkbun") in names


class TestRegistrarResolutionProperty:
    """
    Property 40: WHOIS registrar strings resolve to connected accounts.

    **Feature: domain-monitor, Property 40: Registrar resolution**
    """

    @pytest.mark.parametrize(
        ("reported", "expected"),
        [
            ("GODADDY.COM, LLC", "GoDaddy.com, LLC"),
            ("GoDaddy Inc", "GoDaddy.com, LLC"),
            ("CloudFlare Inc", "Cloudflare, Inc."),
            ("NameCheap, Inc.", "Namecheap, Inc."),
            ("Tucows Domains Inc.", "Tucows Domains Inc."),
        ],
    )
    def test_variations_resolve(self, reported: str, expected: str) -> None:
        accounts = [
            account("GoDaddy.com, LLC"),
            account("Cloudflare, Inc."),
            account("Namecheap, Inc."),
        ]

        assert resolve_registrar_name(reported, accounts) == expected

    @given(reported=st.text(min_size=1, max_size=40))
    @settings(max_examples=100)
    def test_disconnected_accounts_ignored(self, reported: str) -> None:
        """*For any* WHOIS string, disconnected accounts SHALL never match."""
        accounts = [account(name, connected=False) for name in REGISTRAR_REGISTRY]

        assert resolve_registrar_name(reported, accounts) == reported

    def test_missing_registrar_stays_missing(self) -> None:
        assert resolve_registrar_name(None, [account("Porkbun")]) is None
        assert resolve_registrar_name("", [account("Porkbun")]) == ""

    def test_no_accounts_keeps_whois_value(self) -> None:
        assert resolve_registrar_name("Porkbun LLC", []) == "Porkbun LLC"
