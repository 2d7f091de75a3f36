"""
Helpers that keep controller secrets out of anything surfaced to callers.
"""

from typing import Any, Iterable, Optional

from pydantic import SecretStr

REDACTED = "********"


def _secret_values(secrets: Iterable[Any]) -> list:
    values = []
    for secret in secrets:
        if isinstance(secret, SecretStr):
            secret = secret.get_secret_value()
        if secret:
            values.append(str(secret))
    # Longest first so overlapping secrets are fully masked
    return sorted(set(values), key=len, reverse=True)


def redact_secrets(value: Any, secrets: Iterable[Any]) -> Any:
    """
    Replace every occurrence of any secret inside ``value``.

    Strings are masked, dicts and lists are walked recursively, anything
    else is returned untouched.
    """
    secret_values = _secret_values(secrets)
    if not secret_values:
        return value
    return _redact(value, secret_values)


def _redact(value: Any, secret_values: list) -> Any:
    if isinstance(value, str):
        for secret in secret_values:
            value = value.replace(secret, REDACTED)
        return value
    if isinstance(value, dict):
        return {k: _redact(v, secret_values) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_redact(v, secret_values) for v in value]
    return value


def mask_identifier(value: Optional[str], visible: int = 4) -> Optional[str]:
    """Show only the first ``visible`` characters of an identifier."""
    if not value:
        return value
    if len(value) <= visible:
        return REDACTED
    return f"{value[:visible]}{REDACTED}"
