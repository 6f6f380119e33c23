"""
Core resource kind types.

This module contains the ResourceKind interface every resource kind
implements, and the shared types the adapter passes around.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel

from client import APIResource
from errors import ValidationError
from schema import Schema

logger = logging.getLogger(__name__)

FIELD_NAME = "name"
FIELD_NAMESPACE = "namespace"


class LifecycleState(Enum):
    """Lifecycle of one resource instance, as seen by the adapter."""

    ABSENT = "absent"
    CREATING = "creating"
    PRESENT = "present"
    DELETING = "deleting"


@dataclass
class DriftResult:
    """Result from drift detection."""

    has_drift: bool = False
    drift_details: str = ""
    fields_drifted: List[str] = field(default_factory=list)


class ResourceData:
    """
    Local configuration record for one resource instance.

    A flat mapping of declared field names to values, plus the external
    identifier and lifecycle state. Keys outside the schema are rejected;
    unset keys read as the schema's zero value.
    """

    def __init__(
        self,
        schema: Schema,
        values: Optional[Dict[str, Any]] = None,
        id: Optional[str] = None,
        state: LifecycleState = LifecycleState.ABSENT,
    ):
        self.schema = schema
        self.id = id
        self.state = state
        self._values: Dict[str, Any] = {}
        if values:
            self.update(values)

    def __repr__(self) -> str:
        return f"ResourceData(id={self.id!r}, state={self.state.value})"

    def get(self, key: str) -> Any:
        if not self.schema.has(key):
            raise ValidationError(f"Unknown field '{key}'")
        if key in self._values:
            return self._values[key]
        return self.schema.field(key).zero_value()

    def set(self, key: str, value: Any) -> None:
        if not self.schema.has(key):
            raise ValidationError(f"Unknown field '{key}'")
        self._values[key] = value

    def update(self, values: Dict[str, Any]) -> None:
        unknown = [k for k in values if not self.schema.has(k)]
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
        self._values.update(values)

    def replace(self, values: Dict[str, Any]) -> None:
        """Replace the whole record (used when re-projecting remote state)."""
        self._values = {}
        self.update(values)

    def to_dict(self) -> Dict[str, Any]:
        """Return the values that are set, as a new dict."""
        return dict(self._values)

    @property
    def namespace(self) -> str:
        return self.get(FIELD_NAMESPACE)

    @property
    def name(self) -> str:
        return self.get(FIELD_NAME)


class ResourceKind(ABC):
    """
    Abstract base class for resource kinds.

    A kind knows how one remote object type maps to and from a flat
    configuration record. The generic ResourceAdapter drives the lifecycle;
    kinds only provide validate, to_payload and from_remote.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique kind name (e.g. 'harvester_loadbalancer')."""
        pass

    @property
    @abstractmethod
    def api(self) -> APIResource:
        """The cluster API resource this kind is stored as."""
        pass

    @property
    @abstractmethod
    def schema(self) -> Schema:
        """Declared configuration fields."""
        pass

    def validate(self, record: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
        """
        Cross-field checks that JSON Schema cannot express.

        Called after schema validation passed. The default accepts
        everything; kinds override it for rules spanning several fields.

        Args:
            record: The configuration record (computed fields removed)

        Returns:
            Tuple of (is_valid, error_message). If valid, error_message is None.
        """
        return True, None

    @abstractmethod
    def to_payload(
        self, config: BaseModel, namespace: str, name: str
    ) -> Dict[str, Any]:
        """
        Build the remote object to create.

        Args:
            config: Typed configuration generated from the schema
            namespace: Target namespace
            name: Object name

        Returns:
            The remote object as a JSON-serializable dict.
        """
        pass

    @abstractmethod
    def from_remote(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        """
        Extract configuration values from a remote object.

        Missing remote attributes may be left out or set to None; the
        projector fills them with schema zero values.

        Args:
            obj: The remote object as returned by the cluster API

        Returns:
            Partial configuration record.
        """
        pass
