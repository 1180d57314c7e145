"""
Property-based tests for the RDAP, TLS certificate and uptime checkers.

HTTP traffic goes through httpx.MockTransport; no real network requests
are made.
"""

import asyncio
import json
import string
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from domain_monitor.checkers import (
    RDAP_FALLBACK,
    Checker,
    RDAPExpiryClient,
    TLSCertificateClient,
    UptimeClient,
    certificate_from_der,
    parse_rdap_domain,
)
from domain_monitor.enums import CheckErrorCode, CheckType, DomainStatus, SSLStatus
from domain_monitor.exceptions import CheckError
from domain_monitor.models import DomainRecord


NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


def run_async(coro):
    """Helper to run async code in tests."""
    return asyncio.new_event_loop().run_until_complete(coro)


def rdap_document(
    domain: str = "example.com",
    expiry: str = "2026-08-13T04:00:00Z",
    registrar: str = "Example Registrar, Inc.",
) -> dict:
    return {
        "objectClassName": "domain",
        "ldhName": domain.upper(),
        "events": [
            {"eventAction": "registration", "eventDate": "1995-08-14T04:00:00Z"},
            {"eventAction": "expiration", "eventDate": expiry},
        ],
        "entities": [
            {
                "roles": ["registrar"],
                "vcardArray": [
                    "vcard",
                    [["version", {}, "text", "4.0"], ["fn", {}, "text", registrar]],
                ],
            }
        ],
        "nameservers": [{"ldhName": "A.IANA-SERVERS.NET."}, {"ldhName": "b.iana-servers.net"}],
        "status": ["client delete prohibited"],
    }


def rdap_client(handler, **kwargs) -> RDAPExpiryClient:
    return RDAPExpiryClient(transport=httpx.MockTransport(handler), **kwargs)


def lookup_error(client: RDAPExpiryClient, domain: str = "example.com") -> CheckError:
    async def scenario():
        try:
            await client.lookup(domain)
        finally:
            await client.close()

    with pytest.raises(CheckError) as exc_info:
        run_async(scenario())
    return exc_info.value


class TestRDAPParsingProperty:
    """
    Property 25: RDAP parsing extracts expiry, registrar and nameservers.

    **Feature: domain-monitor, Property 25: RDAP parsing**
    """

    @given(
        expiry=st.datetimes(
            min_value=datetime(2000, 1, 1), max_value=datetime(2100, 1, 1)
        ).map(lambda d: d.replace(microsecond=0, tzinfo=timezone.utc)),
        registrar=st.text(alphabet=string.ascii_letters + " .,", min_size=1, max_size=40)
        .filter(lambda s: s.strip()),
    )
    @settings(max_examples=100)
    def test_fields_are_extracted(self, expiry: datetime, registrar: str) -> None:
        """
        *For any* expiration event and registrar vCard, parsing SHALL
        return that instant in UTC and the stripped registrar name.
        """
        document = rdap_document(
            expiry=expiry.strftime("%Y-%m-%dT%H:%M:%SZ"), registrar=registrar
        )

        info = parse_rdap_domain(document)

        assert info.expiry == expiry
        assert info.registrar == registrar.strip()
        assert info.nameservers == ["a.iana-servers.net", "b.iana-servers.net"]
        assert info.status == ["client delete prohibited"]

    def test_missing_events_gives_no_expiry(self) -> None:
        info = parse_rdap_domain({"ldhName": "example.com", "entities": "garbage"})

        assert info.expiry is None
        assert info.registrar is None
        assert info.nameservers == []

    @pytest.mark.parametrize(
        "field,value",
        [
            ("nameservers", [{"ldhName": 5}, {"unicodeName": ["ns"]}]),
            ("nameservers", 7),
            ("entities", [{"roles": 1, "vcardArray": ["vcard", []]}]),
            ("entities", [{"roles": ["registrar"], "vcardArray": ["vcard", 42]}]),
            ("events", {"eventAction": "expiration"}),
            ("ldhName", 12),
        ],
    )
    def test_wrongly_typed_fields_are_skipped(self, field: str, value) -> None:
        document = rdap_document()
        document[field] = value

        info = parse_rdap_domain(document)

        assert isinstance(info.domain_name, str)
        assert all(isinstance(ns, str) for ns in info.nameservers)
        if field != "events":
            assert info.expiry is not None

    def test_non_registrar_entities_are_ignored(self) -> None:
        document = rdap_document()
        document["entities"][0]["roles"] = ["registrant"]

        assert parse_rdap_domain(document).registrar is None


class TestRDAPLookupProperty:
    """
    Property 26: RDAP failures surface as CheckErrors, never as expiries.

    **Feature: domain-monitor, Property 26: RDAP error mapping**
    """

    def test_successful_lookup(self) -> None:
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=rdap_document())

        client = rdap_client(handler)
        domain = DomainRecord(id="d1", domain="example.com")

        async def scenario():
            async with client:
                return await client.check(domain, NOW)

        result = run_async(scenario())

        assert str(requests[0].url) == "https://rdap.verisign.com/com/v1/domain/example.com"
        assert result.check_type == CheckType.WHOIS
        assert result.success is True
        assert result.expiry == datetime(2026, 8, 13, 4, 0, tzinfo=timezone.utc)
        assert result.registrar == "Example Registrar, Inc."

    @given(
        status_code=st.sampled_from([404, 429, 500, 502, 503, 301, 403]),
    )
    @settings(max_examples=20, deadline=None)
    def test_http_status_mapping(self, status_code: int) -> None:
        """
        *For any* non-200 status, lookup SHALL raise with not_found for 404,
        rate_limited for 429 and server_error otherwise.
        """
        client = rdap_client(lambda request: httpx.Response(status_code))

        error = lookup_error(client)

        expected = {
            404: CheckErrorCode.NOT_FOUND,
            429: CheckErrorCode.RATE_LIMITED,
        }.get(status_code, CheckErrorCode.SERVER_ERROR)
        assert error.code == expected.value

    def test_invalid_json_is_parse_error(self) -> None:
        client = rdap_client(lambda request: httpx.Response(200, content=b"<html>"))

        assert lookup_error(client).code == CheckErrorCode.PARSE_ERROR.value

    def test_non_object_json_is_parse_error(self) -> None:
        client = rdap_client(lambda request: httpx.Response(200, content=json.dumps([1, 2])))

        assert lookup_error(client).code == CheckErrorCode.PARSE_ERROR.value

    def test_missing_expiration_is_parse_error(self) -> None:
        document = rdap_document()
        document["events"] = [{"eventAction": "registration", "eventDate": "2000-01-01"}]
        client = rdap_client(lambda request: httpx.Response(200, json=document))

        error = lookup_error(client)

        assert error.code == CheckErrorCode.PARSE_ERROR.value
        assert "No expiry" in error.message

    def test_connection_failure_is_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        assert lookup_error(rdap_client(handler)).code == CheckErrorCode.NETWORK_ERROR.value

    def test_timeout_is_timeout_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("too slow", request=request)

        assert lookup_error(rdap_client(handler)).code == CheckErrorCode.TIMEOUT.value

    def test_plain_http_endpoint_is_rejected(self) -> None:
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=rdap_document())

        client = rdap_client(handler, tld_endpoints={"com": "http://rdap.example.net/domain/"})

        assert lookup_error(client).code == CheckErrorCode.TLS_ERROR.value
        assert requests == []

    @given(tld=st.text(alphabet=string.ascii_lowercase, min_size=2, max_size=6))
    @settings(max_examples=50)
    def test_unknown_tld_uses_fallback(self, tld: str) -> None:
        """*For any* TLD missing from the mapping, the fallback SHALL be used."""
        client = RDAPExpiryClient(tld_endpoints={"com": "https://rdap.example/com/"})

        expected = "https://rdap.example/com/" if tld == "com" else RDAP_FALLBACK
        assert client.get_endpoint_for_tld(tld) == expected
        assert client.get_endpoint_for_tld(tld.upper()) == expected

    def test_simulation_mode_makes_no_requests(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        client = rdap_client(handler, simulation_mode=True)

        info = run_async(client.lookup("example.com"))

        assert info.expiry is not None
        assert info.expiry > datetime.now(timezone.utc) + timedelta(days=300)


class TestCertificateProperty:
    """Certificate decoding and simulated TLS checks."""

    @given(data=st.binary(max_size=64))
    @settings(max_examples=50)
    def test_undecodable_certificate_is_parse_error(self, data: bytes) -> None:
        """*For any* garbage bytes, decoding SHALL raise parse_error."""
        with pytest.raises(CheckError) as exc_info:
            certificate_from_der("example.com", data)

        assert exc_info.value.code == CheckErrorCode.PARSE_ERROR.value

    def test_simulated_certificate_is_valid(self) -> None:
        client = TLSCertificateClient(simulation_mode=True)
        domain = DomainRecord(id="d1", domain="example.com")

        result = run_async(client.check(domain, datetime.now(timezone.utc)))

        assert result.check_type == CheckType.SSL
        assert result.ssl_status == SSLStatus.VALID
        assert result.expiry is not None


class TestUptimeProperty:
    """
    Property 27: A domain is Online iff it answers with a status below 500.

    **Feature: domain-monitor, Property 27: Uptime status**
    """

    @given(status_code=st.integers(min_value=200, max_value=599).filter(lambda c: c != 405))
    @settings(max_examples=50, deadline=None)
    def test_status_code_threshold(self, status_code: int) -> None:
        """*For any* HEAD status, Online SHALL mean status < 500."""
        client = UptimeClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(status_code))
        )

        status = run_async(client.probe("example.com"))

        expected = DomainStatus.ONLINE if status_code < 500 else DomainStatus.OFFLINE
        assert status == expected

    def test_head_not_allowed_falls_back_to_get(self) -> None:
        methods = []

        def handler(request: httpx.Request) -> httpx.Response:
            methods.append(request.method)
            return httpx.Response(405 if request.method == "HEAD" else 200)

        client = UptimeClient(transport=httpx.MockTransport(handler))

        assert run_async(client.probe("example.com")) == DomainStatus.ONLINE
        assert methods == ["HEAD", "GET"]

    def test_unreachable_host_is_offline(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("no route to host", request=request)

        client = UptimeClient(transport=httpx.MockTransport(handler))
        domain = DomainRecord(id="d1", domain="example.com")

        result = run_async(client.check(domain, NOW))

        assert result.success is True
        assert result.status == DomainStatus.OFFLINE

    def test_checkers_satisfy_protocol(self) -> None:
        for checker in (RDAPExpiryClient(), TLSCertificateClient(), UptimeClient()):
            assert isinstance(checker, Checker)
