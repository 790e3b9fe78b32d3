def normalize_email(email: str) -> str:
    """Return the lookup key for an address: trimmed and case-folded.

    No format checks happen here; see ``app.core.validation.validate_email``.
    """
    if email is None:
        return ""
    return str(email).strip().casefold()


def mask_email(email: str) -> str:
    """Return a log-safe form of the address (j***@example.com)."""
    normalized = normalize_email(email)
    if not normalized:
        return ""
    local, sep, domain = normalized.partition("@")
    if not sep:
        return local[:1] + "***"
    return f"{local[:1]}***@{domain}"
