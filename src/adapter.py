"""
Resource Adapter - Lifecycle verbs for one resource kind.

Drives create, read, update and delete of remote objects through a
RemoteStore, using the identifier codec for addressing and the state
projector for payloads. The adapter never retries and never recovers
locally: failures are annotated with the operation and identifier, logged,
and re-raised.
"""

import asyncio
import logging
from contextlib import contextmanager
from typing import Any, Awaitable, Dict, Optional, Union

from client import RemoteStore
from config import TimeoutConfig, WaitConfig
from errors import NotFound, ProviderError, StateError, Timeout, ValidationError
from identifiers import compose, decompose
from kinds.base import (
    FIELD_NAME,
    FIELD_NAMESPACE,
    DriftResult,
    LifecycleState,
    ResourceData,
    ResourceKind,
)
from projection import build, diff_payloads, project
from waiter import is_not_found, wait_for

logger = logging.getLogger(__name__)


@contextmanager
def _operation(operation: str, identifier: Optional[str]):
    """Annotate provider errors raised inside with operation context."""
    try:
        yield
    except ProviderError as e:
        e.with_context(operation, identifier)
        logger.error(f"{e}")
        raise


class ResourceAdapter:
    """
    Generic lifecycle driver for one resource kind.

    The remote store is injected; the adapter holds no per-resource state
    beyond what is kept on the ResourceData records it is given.
    """

    def __init__(
        self,
        kind: ResourceKind,
        store: RemoteStore,
        timeouts: Optional[TimeoutConfig] = None,
        wait: Optional[WaitConfig] = None,
    ):
        self.kind = kind
        self.store = store
        self.timeouts = timeouts or TimeoutConfig()
        self.wait = wait or WaitConfig()

    def new_record(self, values: Optional[Dict[str, Any]] = None) -> ResourceData:
        """Create an absent local record for this kind."""
        return ResourceData(self.kind.schema, values)

    async def _remote(self, operation: str, call: Awaitable, timeout: float) -> Any:
        try:
            return await asyncio.wait_for(call, timeout=timeout)
        except asyncio.TimeoutError:
            raise Timeout(f"{operation} did not complete within {timeout}s") from None

    async def create(self, data: ResourceData) -> ResourceData:
        """
        Create the remote object for an absent record.

        On success the record is present, carries the external identifier
        and holds the projection of the stored object, server defaults
        included. On failure the record is left absent and unchanged.

        Raises:
            StateError: If the record is not absent.
            InvalidIdentity: If namespace or name cannot form an identifier.
            ValidationError: If the record does not match the schema.
            RemoteError, Timeout: If the remote call fails.
        """
        namespace = data.get(FIELD_NAMESPACE)
        name = data.get(FIELD_NAME)
        identifier = None

        with _operation("create", identifier):
            if data.state is not LifecycleState.ABSENT:
                raise StateError(
                    f"cannot create a {self.kind.name} in state {data.state.value}"
                )
            identifier = compose(namespace, name)

        with _operation("create", identifier):
            payload = build(self.kind, data.to_dict(), namespace, name)

            data.state = LifecycleState.CREATING
            try:
                obj = await self._remote(
                    "create",
                    self.store.create(namespace, payload),
                    self.timeouts.create,
                )
            except Exception:
                data.state = LifecycleState.ABSENT
                raise

            data.id = identifier
            data.replace(project(self.kind, obj))
            data.state = LifecycleState.PRESENT

        logger.info(f"Created {self.kind.name} {identifier}")
        return data

    async def read(self, identifier: str) -> Optional[Dict[str, Any]]:
        """
        Read the observed configuration of a remote object.

        No local record is touched and drift is not corrected.

        Returns:
            The projected record, or None if the object does not exist.
        """
        with _operation("read", identifier):
            namespace, name = decompose(identifier)
            try:
                obj = await self._remote(
                    "read", self.store.get(namespace, name), self.timeouts.read
                )
            except NotFound:
                logger.debug(f"{self.kind.name} {identifier} not found")
                return None
            return project(self.kind, obj)

    async def update(self, data: ResourceData, changes: Dict[str, Any]) -> ResourceData:
        """
        Apply configuration changes to a present resource.

        The merge-patch diff between the payloads of the current and the
        desired record is sent to the remote store, and the record is
        replaced by the projection of the stored object. Changes that do not
        alter the payload are only recorded locally.

        Raises:
            StateError: If the record is not present.
            ValidationError: If the changes rename the resource or break the
                schema.
            NotFound, RemoteError, Timeout: If the remote call fails.
        """
        identifier = data.id
        with _operation("update", identifier):
            if data.state is not LifecycleState.PRESENT:
                raise StateError(
                    f"cannot update a {self.kind.name} in state {data.state.value}"
                )

            namespace, name = decompose(identifier)
            current = data.to_dict()
            desired = {**current, **changes}
            for key in (FIELD_NAMESPACE, FIELD_NAME):
                if key in changes and changes[key] != data.get(key):
                    raise ValidationError(f"{key} cannot be changed after creation")

            merge_patch = diff_payloads(
                build(self.kind, current, namespace, name),
                build(self.kind, desired, namespace, name),
            )
            if not merge_patch:
                data.update(changes)
                logger.debug(f"{self.kind.name} {identifier}: no remote changes")
                return data

            obj = await self._remote(
                "update",
                self.store.patch(namespace, name, merge_patch),
                self.timeouts.update,
            )
            data.replace(project(self.kind, obj))

        logger.info(f"Updated {self.kind.name} {identifier}")
        return data

    async def delete(
        self,
        target: Union[str, ResourceData],
        wait: bool = True,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        """
        Delete a remote object.

        Deleting an object that is already gone succeeds silently. When a
        ResourceData is given its state moves through deleting to absent.

        Args:
            target: External identifier or the local record
            wait: Poll until the object has disappeared
            cancel_event: Optional event that aborts the wait

        Raises:
            MalformedIdentifier: If the identifier cannot be split.
            RemoteError: If the delete call fails.
            Timeout, PollError, Cancelled: If waiting for removal fails. The
                delete call and the wait share one delete timeout.
        """
        data = target if isinstance(target, ResourceData) else None
        identifier = data.id if data is not None else target

        if data is not None and identifier is None:
            data.state = LifecycleState.ABSENT
            return

        with _operation("delete", identifier):
            namespace, name = decompose(identifier)
            if data is not None:
                data.state = LifecycleState.DELETING

            loop = asyncio.get_running_loop()
            deadline = loop.time() + self.timeouts.delete
            try:
                await self._remote(
                    "delete",
                    self.store.delete(namespace, name),
                    self.timeouts.delete,
                )
            except NotFound:
                logger.info(f"{self.kind.name} {identifier} already absent")
            else:
                if wait:
                    await wait_for(
                        lambda: self.store.get(namespace, name),
                        is_not_found,
                        interval=self.wait.poll_interval,
                        timeout=max(0.0, deadline - loop.time()),
                        cancel_event=cancel_event,
                        description=f"removal of {self.kind.name} {identifier}",
                    )
                logger.info(f"Deleted {self.kind.name} {identifier}")

            if data is not None:
                data.state = LifecycleState.ABSENT

    async def import_resource(self, identifier: str) -> ResourceData:
        """
        Adopt an existing remote object as a present local record.

        Raises:
            NotFound: If the object does not exist.
        """
        observed = await self.read(identifier)
        if observed is None:
            namespace, name = decompose(identifier)
            raise NotFound(self.kind.api.kind, namespace, name).with_context(
                "import", identifier
            )

        logger.info(f"Imported {self.kind.name} {identifier}")
        return ResourceData(
            self.kind.schema,
            observed,
            id=identifier,
            state=LifecycleState.PRESENT,
        )

    async def detect_drift(self, data: ResourceData) -> DriftResult:
        """
        Compare a record against the remote object without changing either.

        Only fields set on the record and not computed are compared.
        """
        if data.id is None:
            return DriftResult(has_drift=False, drift_details="Resource not created")

        observed = await self.read(data.id)
        if observed is None:
            return DriftResult(
                has_drift=True,
                drift_details=f"{self.kind.name} {data.id} no longer exists",
            )

        computed = set(self.kind.schema.computed_keys())
        desired = self.kind.schema.normalize(data.to_dict())
        drifted = [
            key
            for key, value in desired.items()
            if key not in computed and observed.get(key) != value
        ]
        if not drifted:
            return DriftResult()

        return DriftResult(
            has_drift=True,
            drift_details=f"Fields differ from remote state: {', '.join(drifted)}",
            fields_drifted=drifted,
        )
