"""
Domain validation and normalization module.

Turns user input such as "https://www.Example.com/path" into the canonical
form stored on a DomainRecord ("example.com"): scheme, a leading "www."
and any path are stripped, the name is lowercased and international names
are IDNA-encoded.
"""

import re
from dataclasses import dataclass
from typing import Optional

import idna

from domain_monitor.enums import DomainValidationErrorCode
from domain_monitor.exceptions import ValidationError
from domain_monitor.i18n import get_message


# Forbidden characters in domain names (control chars, spaces, special symbols)
# Based on RFC 1035 and RFC 5891 (IDNA2008)
FORBIDDEN_CHARS_PATTERN = re.compile(
    r'[\x00-\x1f\x7f'           # Control characters
    r'\s'                        # Whitespace
    r'!@#$%^&*()+=\[\]{}|\\:;"\'<>,?`~]'  # Special symbols not allowed
)

SCHEME_PATTERN = re.compile(r'^[a-z][a-z0-9+.-]*://', re.IGNORECASE)

# TLD: letters only, or an IDNA A-label
TLD_PATTERN = re.compile(r'^(?:[a-z]{2,63}|xn--[a-z0-9-]{1,59})$')


@dataclass
class DomainValidationError:
    """Structured error information for domain validation failures."""

    code: DomainValidationErrorCode
    message: str
    details: dict


@dataclass
class DomainValidationResult:
    """Result of domain validation operation."""

    valid: bool
    canonical_domain: Optional[str]
    error: Optional[DomainValidationError]


def strip_url_parts(raw: str) -> str:
    """Remove scheme, leading "www.", path, port and trailing dot."""
    domain = SCHEME_PATTERN.sub("", raw.strip())
    domain = domain.split("/", 1)[0]
    domain = domain.split(":", 1)[0]
    if domain.lower().startswith("www."):
        domain = domain[4:]
    return domain.rstrip(".")


class DomainValidator:
    """
    Validates and normalizes domain names.

    Handles:
    - Stripping URL decoration pasted with the domain
    - Conversion to lowercase canonical form
    - IDNA encoding for international characters
    - Rejection of forbidden characters
    - TLD validation, optionally against a configured allow list
    """

    def __init__(
        self,
        allowed_tlds: Optional[list[str]] = None,
        language: Optional[str] = None,
    ) -> None:
        """
        Initialize validator.

        Args:
            allowed_tlds: Optional list of allowed top-level domains; None
                accepts any syntactically valid TLD
            language: Language of the error messages
        """
        self._allowed_tlds = (
            set(tld.lower() for tld in allowed_tlds) if allowed_tlds is not None else None
        )
        self._language = language

    def validate(self, raw_domain: str) -> DomainValidationResult:
        """
        Validate and normalize a domain string.

        Args:
            raw_domain: The raw domain string to validate

        Returns:
            DomainValidationResult with validation status and canonical form or error
        """
        if not raw_domain or not raw_domain.strip():
            return self._failure(
                DomainValidationErrorCode.EMPTY_INPUT,
                get_message("validation.empty_input", self._language),
                {"raw_input": raw_domain},
            )

        domain = strip_url_parts(raw_domain)
        if not domain:
            return self._failure(
                DomainValidationErrorCode.EMPTY_INPUT,
                get_message("validation.empty_input", self._language),
                {"raw_input": raw_domain},
            )

        if FORBIDDEN_CHARS_PATTERN.search(domain):
            return self._failure(
                DomainValidationErrorCode.FORBIDDEN_CHARS,
                get_message("validation.forbidden_chars", self._language),
                {
                    "raw_input": raw_domain,
                    "forbidden_chars": FORBIDDEN_CHARS_PATTERN.findall(domain),
                },
            )

        try:
            canonical = self.normalize_to_canonical(domain)
        except ValidationError as e:
            return self._failure(DomainValidationErrorCode.IDNA_ERROR, e.message, e.details)

        tld = self._extract_tld(canonical)
        if not tld or not self.is_valid_tld(tld):
            return self._failure(
                DomainValidationErrorCode.INVALID_TLD,
                get_message("validation.invalid_tld", self._language, domain=canonical),
                {"raw_input": raw_domain, "canonical": canonical, "tld": tld},
            )

        return DomainValidationResult(valid=True, canonical_domain=canonical, error=None)

    def validate_or_raise(self, raw_domain: str) -> str:
        """
        Validate a domain and return its canonical form.

        Raises:
            ValidationError: If the domain is invalid
        """
        result = self.validate(raw_domain)
        if not result.valid:
            raise ValidationError(
                code=result.error.code.value,
                message=result.error.message,
                details=result.error.details,
            )
        return result.canonical_domain

    def normalize_to_canonical(self, domain: str) -> str:
        """
        Convert domain to canonical form (lowercase, IDNA-encoded).

        Args:
            domain: Domain string to normalize

        Returns:
            Canonical form of the domain (lowercase, IDNA if needed)

        Raises:
            ValidationError: If IDNA encoding fails
        """
        domain_lower = domain.lower()

        if not any(ord(c) > 127 for c in domain_lower):
            return domain_lower

        try:
            return idna.encode(domain_lower, uts46=True).decode("ascii")
        except idna.IDNAError as e:
            raise ValidationError(
                code=DomainValidationErrorCode.IDNA_ERROR.value,
                message=get_message("validation.idna_error", self._language, error=e),
                details={"domain": domain, "idna_error": str(e)},
            )

    def is_valid_tld(self, tld: str) -> bool:
        """
        Check if a TLD is acceptable.

        Args:
            tld: Top-level domain to check (without leading dot)

        Returns:
            True if TLD is allowed, False otherwise
        """
        tld = tld.lower()
        if self._allowed_tlds is not None:
            return tld in self._allowed_tlds
        return bool(TLD_PATTERN.match(tld))

    def _extract_tld(self, domain: str) -> Optional[str]:
        if not domain or "." not in domain:
            return None

        labels = domain.split(".")
        if any(not label for label in labels):
            return None

        return labels[-1].lower()

    def _failure(
        self,
        code: DomainValidationErrorCode,
        message: str,
        details: dict,
    ) -> DomainValidationResult:
        return DomainValidationResult(
            valid=False,
            canonical_domain=None,
            error=DomainValidationError(code=code, message=message, details=details),
        )
