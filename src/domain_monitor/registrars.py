"""
Registrar Registry - API credential schemas of supported registrars.

Each registrar is described by an ordered list of credential fields that a
user has to fill in to connect an account. The table is plain data keyed by
the registrar name as it appears in WHOIS/RDAP records.

This module also resolves registrar names reported by WHOIS/RDAP ("GoDaddy.com,
LLC", "NAMECHEAP INC") to the name of a connected registrar account.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from .models import RegistrarAccount


@dataclass(frozen=True)
class CredentialField:
    """One credential input of a registrar API."""

    key: str
    label: str
    type: str = "text"  # 'text' or 'password'
    placeholder: str = ""
    required: bool = True


@dataclass(frozen=True)
class RegistrarConfig:
    """API connection schema of one registrar."""

    name: str
    display_name: str
    credentials: tuple[CredentialField, ...]
    api_url: Optional[str] = None
    documentation: Optional[str] = None
    variations: tuple[str, ...] = field(default_factory=tuple)


def _text(key: str, label: str, placeholder: str = "") -> CredentialField:
    return CredentialField(key=key, label=label, type="text", placeholder=placeholder)


def _secret(key: str, label: str, placeholder: str = "") -> CredentialField:
    return CredentialField(key=key, label=label, type="password", placeholder=placeholder)


# ============================================================================
# Registrars with a documented public API
# ============================================================================
API_REGISTRARS = [
    RegistrarConfig(
        name="GoDaddy.com, LLC",
        display_name="GoDaddy",
        api_url="https://api.godaddy.com/v1",
        documentation="https://developer.godaddy.com/",
        credentials=(
            _text("api_key", "API Key", "Enter your GoDaddy API key"),
            _secret("api_secret", "API Secret", "Enter your GoDaddy API secret"),
        ),
        variations=("godaddy", "godaddy.com", "godaddy inc", "godaddy.com llc", "go daddy"),
    ),
    RegistrarConfig(
        name="Namecheap, Inc.",
        display_name="Namecheap",
        api_url="https://api.namecheap.com/xml.response",
        documentation="https://www.namecheap.com/support/api/",
        credentials=(
            _text("api_user", "API User", "Enter your Namecheap API username"),
            _secret("api_key", "API Key", "Enter your Namecheap API key"),
            _text("username", "Username", "Enter your Namecheap username"),
            _text("client_ip", "Client IP", "Your whitelisted IP address"),
        ),
        variations=("namecheap", "namecheap inc", "namecheap.com", "namecheap llc"),
    ),
    RegistrarConfig(
        name="Cloudflare, Inc.",
        display_name="Cloudflare",
        api_url="https://api.cloudflare.com/client/v4",
        documentation="https://developers.cloudflare.com/registrar/",
        credentials=(
            _secret("api_token", "API Token", "Enter your Cloudflare API token"),
        ),
        variations=("cloudflare", "cloudflare inc", "cloudflare.com"),
    ),
    RegistrarConfig(
        name="Porkbun",
        display_name="Porkbun",
        api_url="https://porkbun.com/api/json/v3",
        documentation="https://porkbun.com/api/json/v3/documentation",
        credentials=(
            _text("api_key", "API Key", "Enter your Porkbun API key"),
            _secret("api_secret", "Secret API Key", "Enter your Porkbun secret API key"),
        ),
        variations=("porkbun", "porkbun llc"),
    ),
]


# ============================================================================
# Other registrars
# ============================================================================
OTHER_REGISTRARS = [
    RegistrarConfig(
        name="Domain.com, LLC",
        display_name="Domain.com",
        credentials=(
            _text("api_key", "API Key", "Enter your Domain.com API key"),
            _secret("api_secret", "API Secret", "Enter your Domain.com API secret"),
        ),
    ),
    RegistrarConfig(
        name="Google Domains (Squarespace)",
        display_name="Google Domains",
        credentials=(
            _text("client_id", "Client ID", "Enter your Google API client ID"),
            _secret("client_secret", "Client Secret", "Enter your Google API client secret"),
            _secret("refresh_token", "Refresh Token", "Enter your OAuth refresh token"),
        ),
        variations=("squarespace domains", "google domains"),
    ),
    RegistrarConfig(
        name="Amazon Route 53",
        display_name="Route 53",
        credentials=(
            _text("access_key", "Access Key", "Enter your AWS access key"),
            _secret("secret_key", "Secret Key", "Enter your AWS secret key"),
            _text("region", "Region", "AWS region (e.g., us-east-1)"),
        ),
        variations=("amazon registrar", "route 53"),
    ),
    RegistrarConfig(
        name="Dynadot",
        display_name="Dynadot",
        credentials=(_secret("api_key", "API Key", "Enter your Dynadot API key"),),
    ),
    RegistrarConfig(
        name="Name.com",
        display_name="Name.com",
        credentials=(
            _text("username", "Username", "Enter your Name.com username"),
            _secret("api_token", "API Token", "Enter your Name.com API token"),
        ),
    ),
    RegistrarConfig(
        name="Network Solutions",
        display_name="Network Solutions",
        credentials=(
            _text("account_id", "Account ID", "Enter your Network Solutions account ID"),
            _secret("api_key", "API Key", "Enter your Network Solutions API key"),
        ),
        variations=("networksolutions", "networksolutions.com", "network solutions llc"),
    ),
    RegistrarConfig(
        name="Gandi",
        display_name="Gandi",
        credentials=(_secret("api_key", "API Key", "Enter your Gandi API key"),),
        variations=("gandi sas",),
    ),
    RegistrarConfig(
        name="1&1 IONOS",
        display_name="IONOS",
        credentials=(
            _text("username", "Username", "Enter your IONOS username"),
            _secret("password", "Password", "Enter your IONOS password"),
            _secret("api_key", "API Key", "Enter your IONOS API key"),
        ),
        variations=("ionos",),
    ),
    RegistrarConfig(
        name="Enom",
        display_name="Enom",
        credentials=(
            _text("reseller_id", "Reseller ID", "Enter your Enom reseller ID"),
            _secret("api_key", "API Key", "Enter your Enom API key"),
        ),
        variations=("enom inc", "enom.com", "enom llc"),
    ),
    RegistrarConfig(
        name="Tucows/OpenSRS",
        display_name="Tucows",
        credentials=(
            _text("reseller_id", "Reseller ID", "Enter your Tucows reseller ID"),
            _secret("api_key", "API Key", "Enter your Tucows API key"),
            _text("username", "Username", "Enter your Tucows username"),
            _secret("password", "Password", "Enter your Tucows password"),
        ),
        variations=("tucows", "opensrs"),
    ),
    RegistrarConfig(
        name="OVH",
        display_name="OVH",
        credentials=(
            _text("application_key", "Application Key", "Enter your OVH application key"),
            _secret("application_secret", "Application Secret", "Enter your OVH application secret"),
            _secret("consumer_key", "Consumer Key", "Enter your OVH consumer key"),
        ),
        variations=("ovh sas",),
    ),
    RegistrarConfig(
        name="Hostinger",
        display_name="Hostinger",
        credentials=(_secret("api_token", "API Token", "Enter your Hostinger API token"),),
    ),
    RegistrarConfig(
        name="MarkMonitor",
        display_name="MarkMonitor",
        credentials=(
            _text("reseller_id", "Reseller ID", "Enter your MarkMonitor reseller ID"),
            _secret("api_key", "API Key", "Enter your MarkMonitor API key"),
        ),
        variations=("markmonitor inc", "markmonitor.com"),
    ),
    RegistrarConfig(
        name="CSC Corporate Domains",
        display_name="CSC",
        credentials=(
            _text("username", "Username", "Enter your CSC username"),
            _secret("password", "Password", "Enter your CSC password"),
            _secret("api_key", "API Key", "Enter your CSC API key"),
        ),
        variations=("csc corporate domains, inc.",),
    ),
]


# Build the registry dictionary
REGISTRAR_REGISTRY: dict[str, RegistrarConfig] = {
    config.name: config for config in API_REGISTRARS + OTHER_REGISTRARS
}


def get_registrar_config(name: str) -> Optional[RegistrarConfig]:
    """Get the schema of a registrar by its name or display name."""
    config = REGISTRAR_REGISTRY.get(name)
    if config is not None:
        return config

    lowered = name.strip().lower()
    for config in REGISTRAR_REGISTRY.values():
        if lowered in (config.name.lower(), config.display_name.lower()):
            return config
    return None


def get_display_names() -> list[tuple[str, str]]:
    """Get (name, display_name) pairs for all registrars."""
    return [(config.name, config.display_name) for config in REGISTRAR_REGISTRY.values()]


def validate_credentials(name: str, credentials: dict[str, str]) -> list[str]:
    """
    Check a credential dict against a registrar's schema.

    Args:
        name: Registrar name
        credentials: Submitted credential values

    Returns:
        Keys of required fields that are missing or blank; a single
        "registrar" entry when the registrar is unknown. Empty when valid.
    """
    config = get_registrar_config(name)
    if config is None:
        return ["registrar"]

    return [
        cred.key for cred in config.credentials
        if cred.required and not str(credentials.get(cred.key, "")).strip()
    ]


def _variations(account_name: str) -> tuple[str, ...]:
    lowered = account_name.lower()
    names = [lowered]
    config = get_registrar_config(account_name)
    if config is not None:
        names.append(config.display_name.lower())
        names.extend(config.variations)
    else:
        for known in REGISTRAR_REGISTRY.values():
            if lowered == known.display_name.lower() or lowered in known.variations:
                names.append(known.display_name.lower())
                names.extend(known.variations)
                break
    return tuple(dict.fromkeys(names))


def resolve_registrar_name(
    whois_registrar: Optional[str],
    accounts: Iterable[RegistrarAccount],
) -> Optional[str]:
    """
    Map a WHOIS/RDAP registrar string to a connected registrar account.

    A connected account matches when its name contains or is contained in
    the WHOIS string, or when one of its known name variations occurs in
    the WHOIS string (case-insensitive).

    Args:
        whois_registrar: Registrar as reported by WHOIS/RDAP
        accounts: Registrar accounts of the user

    Returns:
        Name of the matching connected account, otherwise the WHOIS string
        unchanged (None stays None)
    """
    if not whois_registrar:
        return whois_registrar

    reported = whois_registrar.lower()
    for account in accounts:
        if not account.connected:
            continue

        account_name = account.name.lower()
        if account_name in reported or reported in account_name:
            return account.name

        if any(variation in reported for variation in _variations(account.name)):
            return account.name

    return whois_registrar
