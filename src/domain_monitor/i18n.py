"""
Internationalization (i18n) module for the domain monitor system.

Provides translations for all user-facing messages (log entries, alerts and
CLI output) in English (en) and German (de).
"""

from typing import Optional


# Supported languages
SUPPORTED_LANGUAGES = frozenset({"de", "en"})
DEFAULT_LANGUAGE = "en"


# Translation dictionary with all messages
# Structure: {message_key: {language_code: translated_message}}
TRANSLATIONS: dict[str, dict[str, str]] = {
    # Domain validation messages
    "validation.empty_input": {
        "en": "Domain input is empty",
        "de": "Domain-Eingabe ist leer",
    },
    "validation.forbidden_chars": {
        "en": "Domain contains forbidden characters",
        "de": "Domain enthält ungültige Zeichen",
    },
    "validation.invalid_tld": {
        "en": "Domain '{domain}' has no valid top-level domain",
        "de": "Domain '{domain}' hat keine gültige Top-Level-Domain",
    },
    "validation.idna_error": {
        "en": "IDNA encoding failed: {error}",
        "de": "IDNA-Kodierung fehlgeschlagen: {error}",
    },

    # Expiry labels
    "expiry.expired": {
        "en": "Expired",
        "de": "Abgelaufen",
    },
    "expiry.expires_today": {
        "en": "Expires today",
        "de": "Läuft heute ab",
    },
    "expiry.days": {
        "en": "{days} days",
        "de": "{days} Tage",
    },
    "expiry.one_day": {
        "en": "1 day",
        "de": "1 Tag",
    },
    "expiry.unknown": {
        "en": "Unknown",
        "de": "Unbekannt",
    },

    # Monitoring log messages
    "log.domain_expires_in": {
        "en": "Domain {domain} expires in {days} day(s)",
        "de": "Domain {domain} läuft in {days} Tag(en) ab",
    },
    "log.domain_expires_today": {
        "en": "Domain {domain} expires today",
        "de": "Domain {domain} läuft heute ab",
    },
    "log.domain_expired": {
        "en": "Domain {domain} has expired!",
        "de": "Domain {domain} ist abgelaufen!",
    },
    "log.domain_expiry_unknown": {
        "en": "Expiry date of domain {domain} is unknown",
        "de": "Ablaufdatum der Domain {domain} ist unbekannt",
    },
    "log.ssl_expires_in": {
        "en": "SSL certificate for {domain} expires in {days} day(s)",
        "de": "SSL-Zertifikat für {domain} läuft in {days} Tag(en) ab",
    },
    "log.ssl_expires_today": {
        "en": "SSL certificate for {domain} expires today",
        "de": "SSL-Zertifikat für {domain} läuft heute ab",
    },
    "log.ssl_expired": {
        "en": "SSL certificate for {domain} has expired!",
        "de": "SSL-Zertifikat für {domain} ist abgelaufen!",
    },
    "log.ssl_expiry_unknown": {
        "en": "SSL certificate expiry for {domain} is unknown",
        "de": "Ablaufdatum des SSL-Zertifikats für {domain} ist unbekannt",
    },
    "log.status_changed": {
        "en": "Domain {domain} changed status from {previous} to {current}",
        "de": "Domain {domain} hat den Status von {previous} zu {current} geändert",
    },
    "log.status": {
        "en": "Domain {domain} is {status}",
        "de": "Domain {domain} ist {status}",
    },
    "log.records_resolved": {
        "en": "DNS records resolved for {domain}",
        "de": "DNS-Einträge für {domain} aufgelöst",
    },
    "log.check_failed": {
        "en": "{check} check failed for {domain}: {error}",
        "de": "{check}-Prüfung für {domain} fehlgeschlagen: {error}",
    },
    "log.registrar_overridden": {
        "en": "Registrar overridden from WHOIS: \"{whois}\" -> \"{resolved}\"",
        "de": "Registrar aus WHOIS ersetzt: \"{whois}\" -> \"{resolved}\"",
    },

    # Alert messages
    "alert.domain_expiry": {
        "en": "Domain {domain} expires in {days} day(s) on {date}",
        "de": "Domain {domain} läuft in {days} Tag(en) am {date} ab",
    },
    "alert.ssl_expiry": {
        "en": "SSL certificate for {domain} expires in {days} day(s) on {date}",
        "de": "SSL-Zertifikat für {domain} läuft in {days} Tag(en) am {date} ab",
    },
    "alert.email_subject": {
        "en": "[Domain Monitor] {severity}: {domain}",
        "de": "[Domain Monitor] {severity}: {domain}",
    },
    "alert.domain_label": {
        "en": "Domain",
        "de": "Domain",
    },
    "alert.severity_label": {
        "en": "Severity",
        "de": "Schweregrad",
    },
    "alert.type_label": {
        "en": "Type",
        "de": "Typ",
    },
    "alert.time_label": {
        "en": "Time",
        "de": "Zeit",
    },
    "alert.test_message": {
        "en": "This is a test notification from Domain Monitor",
        "de": "Dies ist eine Testbenachrichtigung von Domain Monitor",
    },

    # CLI messages
    "cli.domain_added": {
        "en": "Domain added: {domain}",
        "de": "Domain hinzugefügt: {domain}",
    },
    "cli.domain_exists": {
        "en": "Domain already monitored: {domain}",
        "de": "Domain wird bereits überwacht: {domain}",
    },
    "cli.domain_removed": {
        "en": "Domain removed: {domain}",
        "de": "Domain entfernt: {domain}",
    },
    "cli.domain_not_found": {
        "en": "Domain not found: {domain}",
        "de": "Domain nicht gefunden: {domain}",
    },
    "cli.no_domains": {
        "en": "No domains are being monitored",
        "de": "Es werden keine Domains überwacht",
    },
    "cli.checking_domain": {
        "en": "Checking {domain}...",
        "de": "Prüfe {domain}...",
    },
    "cli.run_completed": {
        "en": "Monitoring completed: {success}/{total} domains processed successfully",
        "de": "Überwachung abgeschlossen: {success}/{total} Domains erfolgreich verarbeitet",
    },
    "cli.run_already_running": {
        "en": "A monitoring run is already in progress",
        "de": "Es läuft bereits ein Überwachungsdurchlauf",
    },
    "cli.retry_completed": {
        "en": "Retried {count} alert dispatch(es)",
        "de": "{count} Benachrichtigung(en) erneut versendet",
    },
    "cli.cleanup_completed": {
        "en": "Removed {count} log entries older than {days} days",
        "de": "{count} Protokolleinträge älter als {days} Tage entfernt",
    },
    "cli.settings_updated": {
        "en": "Notification settings updated",
        "de": "Benachrichtigungseinstellungen aktualisiert",
    },
    "cli.test_succeeded": {
        "en": "Test notification sent via {channel}",
        "de": "Testbenachrichtigung über {channel} gesendet",
    },
    "cli.test_failed": {
        "en": "Test notification via {channel} failed",
        "de": "Testbenachrichtigung über {channel} fehlgeschlagen",
    },
    "cli.next_run": {
        "en": "Next run: {time}",
        "de": "Nächster Lauf: {time}",
    },
    "cli.invalid_schedule": {
        "en": "Invalid cron expression: {expression}",
        "de": "Ungültiger Cron-Ausdruck: {expression}",
    },
    "cli.simulation_enabled": {
        "en": "Simulation mode: no network requests, no notifications",
        "de": "Simulationsmodus: keine Netzwerkanfragen, keine Benachrichtigungen",
    },
    "cli.registrar_connected": {
        "en": "Registrar account connected: {registrar}",
        "de": "Registrar-Konto verbunden: {registrar}",
    },
    "cli.registrar_disconnected": {
        "en": "Registrar account disconnected: {registrar}",
        "de": "Registrar-Konto getrennt: {registrar}",
    },
    "cli.registrar_unknown": {
        "en": "Unknown registrar: {registrar}",
        "de": "Unbekannter Registrar: {registrar}",
    },
    "cli.registrar_missing_credentials": {
        "en": "Missing credentials for {registrar}: {fields}",
        "de": "Fehlende Zugangsdaten für {registrar}: {fields}",
    },
}


def get_message(
    key: str,
    language: Optional[str] = None,
    **kwargs,
) -> str:
    """
    Get a translated message by key.

    Args:
        key: The message key (e.g., 'log.domain_expired')
        language: Language code ('en' or 'de'). Defaults to DEFAULT_LANGUAGE.
        **kwargs: Format arguments for the message template

    Returns:
        The translated and formatted message string.
        If the key is not found, returns the key itself.
        If the language is not found, falls back to DEFAULT_LANGUAGE.

    Examples:
        >>> get_message('expiry.expired', 'de')
        'Abgelaufen'
        >>> get_message('log.domain_expired', 'en', domain='example.com')
        'Domain example.com has expired!'
    """
    if language is None or language not in SUPPORTED_LANGUAGES:
        language = DEFAULT_LANGUAGE

    translations = TRANSLATIONS.get(key)
    if translations is None:
        return key

    message = translations.get(language)
    if message is None:
        message = translations.get(DEFAULT_LANGUAGE)
    if message is None:
        return key

    if kwargs:
        try:
            message = message.format(**kwargs)
        except KeyError:
            # Missing format argument: return the unformatted template
            pass

    return message


def get_all_message_keys() -> set[str]:
    """Get all available message keys."""
    return set(TRANSLATIONS.keys())


def get_missing_translations(language: str) -> set[str]:
    """
    Get all message keys that are missing translations for a language.

    Args:
        language: The language code to check

    Returns:
        Set of message keys missing translations for the specified language.
    """
    return {
        key for key, translations in TRANSLATIONS.items()
        if language not in translations
    }


def validate_translations() -> dict[str, set[str]]:
    """
    Validate that all languages have all translations.

    Returns:
        Dictionary mapping language codes to sets of missing message keys.
        Empty sets indicate complete translations.
    """
    return {
        language: get_missing_translations(language)
        for language in SUPPORTED_LANGUAGES
    }
