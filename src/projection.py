"""
State Projector - Convert between remote objects and configuration records.

project() maps a remote object onto a complete configuration record and never
fails on missing remote attributes. build() goes the other way for creation
and update payloads and is where configuration is validated.
"""

import logging
from typing import Any, Dict

from errors import ValidationError
from kinds.base import FIELD_NAME, FIELD_NAMESPACE, ResourceKind

logger = logging.getLogger(__name__)


def project(kind: ResourceKind, obj: Dict[str, Any]) -> Dict[str, Any]:
    """
    Project a remote object into a configuration record.

    Every declared field is present in the result. Attributes the remote
    object lacks take the schema's zero value; values for undeclared keys
    are ignored.

    Args:
        kind: The resource kind of the object
        obj: The remote object

    Returns:
        A new configuration record.
    """
    observed = kind.from_remote(obj)
    ignored = [key for key in observed if not kind.schema.has(key)]
    if ignored:
        logger.debug(f"{kind.name}: ignoring undeclared keys {ignored}")
    return kind.schema.fill(observed)


def build(
    kind: ResourceKind, record: Dict[str, Any], namespace: str, name: str
) -> Dict[str, Any]:
    """
    Build the remote payload for a configuration record.

    Computed fields are dropped before validation.

    Args:
        kind: The resource kind to build
        record: The configuration record
        namespace: Target namespace
        name: Object name

    Returns:
        The remote object payload.

    Raises:
        ValidationError: If the record does not satisfy the kind's schema or
            cross-field rules, or names a different identity.
    """
    computed = set(kind.schema.computed_keys())
    values = {k: v for k, v in record.items() if k not in computed}

    config = kind.schema.typed(values)

    for key, expected in ((FIELD_NAMESPACE, namespace), (FIELD_NAME, name)):
        actual = getattr(config, key)
        if actual != expected:
            raise ValidationError(f"{key} is '{actual}' but '{expected}' was requested")

    is_valid, error = kind.validate(values)
    if not is_valid:
        raise ValidationError(error)

    return kind.to_payload(config, namespace, name)


def diff_payloads(old: Dict[str, Any], new: Dict[str, Any]) -> Dict[str, Any]:
    """
    Compute the JSON merge patch (RFC 7386) that turns old into new.

    Keys missing from new map to None, nested objects are diffed
    recursively and any other changed value, lists included, is replaced.
    """
    patch: Dict[str, Any] = {}
    for key in old:
        if key not in new:
            patch[key] = None

    for key, value in new.items():
        if key not in old:
            patch[key] = value
            continue
        previous = old[key]
        if isinstance(value, dict) and isinstance(previous, dict):
            nested = diff_payloads(previous, value)
            if nested:
                patch[key] = nested
        elif value != previous:
            patch[key] = value

    return patch
