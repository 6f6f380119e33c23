"""
Fields and metadata handling shared by all Harvester resource kinds.
"""

from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel

from kinds.base import FIELD_NAME, FIELD_NAMESPACE
from schema import Field, FieldType

FIELD_DESCRIPTION = "description"
FIELD_TAGS = "tags"
FIELD_STATE = "state"
FIELD_MESSAGE = "message"

TAG_LABEL_PREFIX = "tag.harvesterhci.io/"
DESCRIPTION_ANNOTATION = "field.cattle.io/description"
CREATOR_LABEL = "harvesterhci.io/creator"
CREATOR_NAME = "harvester-provider"


def common_fields() -> List[Field]:
    """Fields every kind declares."""
    return [
        Field(FIELD_NAME, FieldType.STRING, required=True),
        Field(FIELD_NAMESPACE, FieldType.STRING, default="default"),
        Field(FIELD_DESCRIPTION, FieldType.STRING),
        Field(
            FIELD_TAGS,
            FieldType.MAP,
            description=f"Stored as labels prefixed with {TAG_LABEL_PREFIX}",
        ),
        Field(FIELD_STATE, FieldType.STRING, computed=True),
        Field(FIELD_MESSAGE, FieldType.STRING, computed=True),
    ]


def build_metadata(
    config: BaseModel,
    namespace: str,
    name: str,
    labels: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """Build object metadata carrying tags and description."""
    all_labels = {CREATOR_LABEL: CREATOR_NAME}
    all_labels.update(labels or {})
    for key, value in config.tags.items():
        all_labels[f"{TAG_LABEL_PREFIX}{key}"] = value

    metadata: Dict[str, Any] = {
        "name": name,
        "namespace": namespace,
        "labels": all_labels,
    }
    if config.description:
        metadata["annotations"] = {DESCRIPTION_ANNOTATION: config.description}
    return metadata


def metadata_states(obj: Dict[str, Any]) -> Dict[str, Any]:
    """Extract the common fields from object metadata."""
    metadata = obj.get("metadata") or {}
    labels = metadata.get("labels") or {}
    annotations = metadata.get("annotations") or {}

    return {
        FIELD_NAME: metadata.get("name"),
        FIELD_NAMESPACE: metadata.get("namespace"),
        FIELD_DESCRIPTION: annotations.get(DESCRIPTION_ANNOTATION),
        FIELD_TAGS: {
            key[len(TAG_LABEL_PREFIX):]: value
            for key, value in labels.items()
            if key.startswith(TAG_LABEL_PREFIX)
        },
    }


def ready_condition(status: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    """
    Summarize the Ready condition as (state, message).

    Returns (None, None) when the object reports no Ready condition yet.
    """
    for condition in status.get("conditions") or []:
        if condition.get("type") != "Ready":
            continue
        state = "Active" if condition.get("status") == "True" else "Pending"
        return state, condition.get("message")
    return None, None
