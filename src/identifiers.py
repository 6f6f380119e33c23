"""
Identifier Codec - Compose and split external resource identifiers.

An external identifier is "<namespace>/<name>". The separator is reserved
and may not appear inside either part. Inputs are never normalized.
"""

from typing import Tuple

from errors import InvalidIdentity, MalformedIdentifier

SEPARATOR = "/"


def compose(namespace: str, name: str) -> str:
    """
    Build the external identifier for a (namespace, name) pair.

    Raises:
        InvalidIdentity: If either part is empty, not a string, or contains
            the separator.
    """
    for label, value in (("namespace", namespace), ("name", name)):
        if not isinstance(value, str) or not value:
            raise InvalidIdentity(f"{label} must be a non-empty string")
        if SEPARATOR in value:
            raise InvalidIdentity(
                f"{label} '{value}' must not contain '{SEPARATOR}'"
            )
    return f"{namespace}{SEPARATOR}{name}"


def decompose(identifier: str) -> Tuple[str, str]:
    """
    Split an external identifier into (namespace, name).

    Raises:
        MalformedIdentifier: If the separator is missing or repeated, or if
            either part is empty.
    """
    if not isinstance(identifier, str):
        raise MalformedIdentifier(f"identifier must be a string, got {identifier!r}")

    parts = identifier.split(SEPARATOR)
    if len(parts) != 2:
        raise MalformedIdentifier(
            f"identifier '{identifier}' must have the form "
            f"<namespace>{SEPARATOR}<name>"
        )

    namespace, name = parts
    if not namespace or not name:
        raise MalformedIdentifier(
            f"identifier '{identifier}' has an empty namespace or name"
        )
    return namespace, name
