"""
Checkers that observe a domain: RDAP registration data, the TLS
certificate and HTTP reachability.

Every checker exposes ``check(domain, now) -> CheckResult`` and raises
CheckError when the observation could not be made. The monitoring service
turns those errors into monitoring_error log entries; a checker never
reports an expiry it did not actually see.
"""

import asyncio
import socket
import ssl
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol, runtime_checkable
from urllib.parse import urlparse

import httpx
import OpenSSL

from .enums import CheckErrorCode, CheckType, DomainStatus, SSLStatus
from .exceptions import CheckError
from .models import CheckResult, DomainRecord
from .timestamps import parse_timestamp, utc_now


# Generic RDAP redirector for TLDs without a known endpoint
RDAP_FALLBACK = "https://rdap.org/domain/"

DEFAULT_RDAP_ENDPOINTS = {
    "com": "https://rdap.verisign.com/com/v1/domain/",
    "net": "https://rdap.verisign.com/net/v1/domain/",
    "org": "https://rdap.publicinterestregistry.org/rdap/domain/",
    "info": "https://rdap.afilias.net/rdap/info/domain/",
    "io": "https://rdap.nic.io/domain/",
    "co": "https://rdap.nic.co/domain/",
    "app": "https://rdap.nic.google/domain/",
    "dev": "https://rdap.nic.google/domain/",
    "xyz": "https://rdap.nic.xyz/domain/",
    "de": "https://rdap.denic.de/domain/",
    "uk": "https://rdap.nominet.uk/uk/domain/",
    "fr": "https://rdap.nic.fr/domain/",
    "nl": "https://rdap.sidn.nl/domain/",
}

SIMULATED_VALIDITY = timedelta(days=365)


@runtime_checkable
class Checker(Protocol):
    """Interface of the checkers the monitoring service runs."""

    check_type: CheckType

    async def check(self, domain: DomainRecord, now: datetime) -> CheckResult:
        """
        Observe a domain.

        Raises:
            CheckError: If the observation failed
        """
        ...


def _elapsed_ms(start_time: float) -> float:
    """Calculate elapsed time in milliseconds."""
    return (time.perf_counter() - start_time) * 1000


# ============================================================================
# RDAP
# ============================================================================

@dataclass
class RDAPDomainInfo:
    """Fields of an RDAP domain object the monitor uses."""

    domain_name: str
    expiry: Optional[datetime]
    registrar: Optional[str] = None
    nameservers: list[str] = field(default_factory=list)
    status: list[str] = field(default_factory=list)


def parse_rdap_domain(json_data: dict) -> RDAPDomainInfo:
    """
    Extract expiry, registrar and nameservers from an RDAP domain object.

    Undefined fields are ignored. The registrar is the "fn" property of
    the vCard of the entity with role "registrar".

    Args:
        json_data: Decoded RDAP response

    Returns:
        RDAPDomainInfo; expiry is None when there is no expiration event
    """
    domain_name = json_data.get("ldhName") or json_data.get("unicodeName") or ""
    if not isinstance(domain_name, str):
        domain_name = ""

    expiry = None
    for event in _as_list(json_data.get("events")):
        if isinstance(event, dict) and event.get("eventAction") == "expiration":
            expiry = parse_timestamp(event.get("eventDate"))
            if expiry is not None:
                break

    registrar = None
    for entity in _as_list(json_data.get("entities")):
        if not isinstance(entity, dict) or "registrar" not in _as_list(entity.get("roles")):
            continue
        registrar = _vcard_name(entity.get("vcardArray"))
        if registrar:
            break

    nameservers = []
    for ns in _as_list(json_data.get("nameservers")):
        if isinstance(ns, dict):
            ns_name = ns.get("ldhName") or ns.get("unicodeName")
            if isinstance(ns_name, str) and ns_name:
                nameservers.append(ns_name.lower().rstrip("."))

    status = json_data.get("status", [])
    if not isinstance(status, list):
        status = [status] if status else []

    return RDAPDomainInfo(
        domain_name=domain_name,
        expiry=expiry,
        registrar=registrar,
        nameservers=nameservers,
        status=status,
    )


def _as_list(value) -> list:
    return value if isinstance(value, list) else []


def _vcard_name(vcard_array) -> Optional[str]:
    # ["vcard", [["version", {}, "text", "4.0"], ["fn", {}, "text", "Name"]]]
    if (
        not isinstance(vcard_array, list)
        or len(vcard_array) < 2
        or not isinstance(vcard_array[1], list)
    ):
        return None
    for prop in vcard_array[1]:
        if isinstance(prop, list) and len(prop) >= 4 and prop[0] == "fn":
            value = str(prop[3]).strip()
            return value or None
    return None


class RDAPExpiryClient:
    """
    Async RDAP client reading the registration expiry of a domain.

    Endpoints must use HTTPS; TLDs without a configured endpoint are
    queried through the rdap.org redirector.
    """

    check_type = CheckType.WHOIS

    def __init__(
        self,
        tld_endpoints: Optional[dict[str, str]] = None,
        fallback_endpoint: str = RDAP_FALLBACK,
        timeout: float = 10.0,
        simulation_mode: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the RDAP client.

        Args:
            tld_endpoints: Mapping of TLD to RDAP endpoint URL
            fallback_endpoint: Endpoint for TLDs not in the mapping
            timeout: Request timeout in seconds
            simulation_mode: If True, no real network requests are made
            transport: Optional httpx transport (used by tests)
        """
        endpoints = DEFAULT_RDAP_ENDPOINTS if tld_endpoints is None else tld_endpoints
        self._tld_endpoints = {k.lower(): v for k, v in endpoints.items()}
        self._fallback_endpoint = fallback_endpoint
        self._timeout = timeout
        self._simulation_mode = simulation_mode
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "RDAPExpiryClient":
        """Async context manager entry."""
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    def get_endpoint_for_tld(self, tld: str) -> str:
        """
        Get the RDAP endpoint URL for a given TLD.

        Args:
            tld: The top-level domain (e.g., 'com', 'de')

        Returns:
            The configured endpoint, or the fallback endpoint
        """
        return self._tld_endpoints.get(tld.lower(), self._fallback_endpoint)

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                verify=True,
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def lookup(self, domain: str) -> RDAPDomainInfo:
        """
        Query RDAP for a domain.

        Args:
            domain: Canonical domain name

        Returns:
            Parsed registration data with an expiry

        Raises:
            CheckError: On network, TLS, HTTP or parse failures, and when the
                response carries no expiration event
        """
        tld = domain.rsplit(".", 1)[-1] if "." in domain else ""
        endpoint = self.get_endpoint_for_tld(tld)

        if urlparse(endpoint).scheme.lower() != "https":
            raise CheckError(
                code=CheckErrorCode.TLS_ERROR.value,
                message=f"RDAP endpoint must use HTTPS: {endpoint}",
                details={"endpoint": endpoint},
            )

        if self._simulation_mode:
            return RDAPDomainInfo(
                domain_name=domain,
                expiry=utc_now() + SIMULATED_VALIDITY,
                status=["active"],
            )

        url = f"{endpoint.rstrip('/')}/{domain}"
        client = self._ensure_client()
        try:
            response = await client.get(
                url, headers={"Accept": "application/rdap+json, application/json"}
            )
        except httpx.TimeoutException:
            raise CheckError(
                code=CheckErrorCode.TIMEOUT.value,
                message=f"RDAP request timed out after {self._timeout}s",
                details={"domain": domain, "url": url},
            )
        except httpx.HTTPError as e:
            error_msg = str(e)
            code = CheckErrorCode.NETWORK_ERROR
            if "ssl" in error_msg.lower() or "certificate" in error_msg.lower():
                code = CheckErrorCode.TLS_ERROR
            raise CheckError(
                code=code.value,
                message=f"RDAP connection error: {error_msg}",
                details={"domain": domain, "url": url},
            )

        if response.status_code == 404:
            raise CheckError(
                code=CheckErrorCode.NOT_FOUND.value,
                message=f"Domain not found in RDAP: {domain}",
                details={"domain": domain, "http_status_code": 404},
            )
        if response.status_code == 429:
            raise CheckError(
                code=CheckErrorCode.RATE_LIMITED.value,
                message="Rate limited by RDAP server",
                details={"domain": domain, "http_status_code": 429},
            )
        if response.status_code != 200:
            raise CheckError(
                code=CheckErrorCode.SERVER_ERROR.value,
                message=f"Unexpected RDAP status: {response.status_code}",
                details={"domain": domain, "http_status_code": response.status_code},
            )

        try:
            json_data = response.json()
        except ValueError as e:
            raise CheckError(
                code=CheckErrorCode.PARSE_ERROR.value,
                message=f"Failed to parse RDAP response: {e}",
                details={"domain": domain},
            )
        if not isinstance(json_data, dict):
            raise CheckError(
                code=CheckErrorCode.PARSE_ERROR.value,
                message="RDAP response is not a domain object",
                details={"domain": domain},
            )

        info = parse_rdap_domain(json_data)
        if info.expiry is None:
            raise CheckError(
                code=CheckErrorCode.PARSE_ERROR.value,
                message="No expiry date found in RDAP data",
                details={"domain": domain},
            )
        return info

    async def check(self, domain: DomainRecord, now: datetime) -> CheckResult:
        start_time = time.perf_counter()
        info = await self.lookup(domain.domain)
        return CheckResult(
            check_type=CheckType.WHOIS,
            domain_id=domain.id,
            domain=domain.domain,
            success=True,
            checked_at=now,
            expiry=info.expiry,
            registrar=info.registrar,
            nameservers=info.nameservers,
            duration_ms=_elapsed_ms(start_time),
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None


# ============================================================================
# TLS certificate
# ============================================================================

@dataclass
class CertificateInfo:
    """Expiry data read from a server certificate."""

    hostname: str
    not_after: datetime
    issuer: str
    subject: str


def certificate_from_der(hostname: str, cert_der: bytes) -> CertificateInfo:
    """
    Read notAfter, issuer and subject from a DER encoded certificate.

    Raises:
        CheckError: If the certificate cannot be decoded
    """
    try:
        cert = OpenSSL.crypto.load_certificate(OpenSSL.crypto.FILETYPE_ASN1, cert_der)
        expiry_date_str = cert.get_notAfter().decode("ascii")
        not_after = datetime.strptime(expiry_date_str, "%Y%m%d%H%M%SZ").replace(
            tzinfo=timezone.utc
        )
    except (OpenSSL.crypto.Error, AttributeError, ValueError) as e:
        raise CheckError(
            code=CheckErrorCode.PARSE_ERROR.value,
            message=f"Could not read certificate: {e}",
            details={"hostname": hostname},
        )

    issuer = dict(cert.get_issuer().get_components())
    subject = dict(cert.get_subject().get_components())
    return CertificateInfo(
        hostname=hostname,
        not_after=not_after,
        issuer=issuer.get(b"O", b"Unknown").decode("utf-8", "replace"),
        subject=subject.get(b"CN", b"Unknown").decode("utf-8", "replace"),
    )


class TLSCertificateClient:
    """
    Reads the expiry of the certificate a host presents on port 443.

    Verification is disabled for the handshake so that expired or
    otherwise invalid certificates can still be read.
    """

    check_type = CheckType.SSL

    def __init__(
        self,
        port: int = 443,
        timeout: float = 10.0,
        simulation_mode: bool = False,
    ) -> None:
        self._port = port
        self._timeout = timeout
        self._simulation_mode = simulation_mode

    async def fetch_certificate(self, hostname: str) -> CertificateInfo:
        """
        Connect to the host and read its certificate.

        Raises:
            CheckError: On DNS, connection, timeout, TLS or decode failures
        """
        if self._simulation_mode:
            return CertificateInfo(
                hostname=hostname,
                not_after=utc_now() + timedelta(days=90),
                issuer="Simulation",
                subject=hostname,
            )

        loop = asyncio.get_running_loop()
        cert_der = await loop.run_in_executor(None, self._fetch_der, hostname)
        return certificate_from_der(hostname, cert_der)

    def _fetch_der(self, hostname: str) -> bytes:
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

        try:
            with socket.create_connection((hostname, self._port), timeout=self._timeout) as sock:
                with context.wrap_socket(sock, server_hostname=hostname) as secure_sock:
                    cert_der = secure_sock.getpeercert(binary_form=True)
        except socket.timeout:
            raise CheckError(
                code=CheckErrorCode.TIMEOUT.value,
                message="SSL connection timeout",
                details={"hostname": hostname, "port": self._port},
            )
        except ssl.SSLError as e:
            raise CheckError(
                code=CheckErrorCode.TLS_ERROR.value,
                message=f"SSL Error: {e}",
                details={"hostname": hostname, "port": self._port},
            )
        except OSError as e:
            raise CheckError(
                code=CheckErrorCode.NETWORK_ERROR.value,
                message=f"Connection error: {e}",
                details={"hostname": hostname, "port": self._port},
            )

        if not cert_der:
            raise CheckError(
                code=CheckErrorCode.TLS_ERROR.value,
                message="Server presented no certificate",
                details={"hostname": hostname, "port": self._port},
            )
        return cert_der

    async def check(self, domain: DomainRecord, now: datetime) -> CheckResult:
        start_time = time.perf_counter()
        info = await self.fetch_certificate(domain.domain)
        return CheckResult(
            check_type=CheckType.SSL,
            domain_id=domain.id,
            domain=domain.domain,
            success=True,
            checked_at=now,
            expiry=info.not_after,
            ssl_status=SSLStatus.VALID if info.not_after > now else SSLStatus.EXPIRED,
            duration_ms=_elapsed_ms(start_time),
        )


# ============================================================================
# Uptime
# ============================================================================

class UptimeClient:
    """
    HTTP reachability check.

    A domain is Online when https://<domain> answers with a status below
    500 (HEAD, falling back to GET when HEAD is not allowed) and Offline
    when it answers with a server error or cannot be reached.
    """

    check_type = CheckType.UPTIME

    def __init__(
        self,
        timeout: float = 10.0,
        simulation_mode: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._simulation_mode = simulation_mode
        self._transport = transport

    async def probe(self, domain: str) -> DomainStatus:
        """
        Request the domain's root URL.

        Raises:
            CheckError: If no URL can be built for the domain
        """
        if self._simulation_mode:
            return DomainStatus.ONLINE

        url = f"https://{domain}/"
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            try:
                response = await client.head(url)
                if response.status_code == 405:
                    response = await client.get(url)
            except httpx.InvalidURL as e:
                raise CheckError(
                    code=CheckErrorCode.NETWORK_ERROR.value,
                    message=f"Invalid URL for domain: {e}",
                    details={"domain": domain},
                )
            except httpx.HTTPError:
                return DomainStatus.OFFLINE

        return DomainStatus.ONLINE if response.status_code < 500 else DomainStatus.OFFLINE

    async def check(self, domain: DomainRecord, now: datetime) -> CheckResult:
        start_time = time.perf_counter()
        status = await self.probe(domain.domain)
        return CheckResult(
            check_type=CheckType.UPTIME,
            domain_id=domain.id,
            domain=domain.domain,
            success=True,
            checked_at=now,
            status=status,
            duration_ms=_elapsed_ms(start_time),
        )
