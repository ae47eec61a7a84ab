"""Per-resource reconciliation against the Device42 API.

Each resource instance moves through a small state machine:

    ABSENT --create--> CREATING --> PRESENT --update--> UPDATING --> PRESENT
    PRESENT --delete / read finds nothing--> DELETED

The bound identifier (ResourceData.id) is the only correlation key
between a declaration and its remote record. It is empty exactly when the
resource is ABSENT or DELETED, and the caller persists it between runs.

FAILURE POLICIES:
- Partial create: when the primary object is created but the custom
  field write fails, the identifier is left unset and the remote id is
  recorded in ResourceData.orphan_id. The remote object is an orphan
  until someone removes it or a later run adopts it.
- Read: a missing resource clears the identifier without raising. With
  ClientConfig.read_errors_as_absent (the default) transport failures
  are treated the same way, which conflates outages with absence. The
  read that follows a create or update never clears the identifier.
- Transport failures (TransportError) reach the caller unchanged.
  Application and decode failures are wrapped in ReconcileError.
- Delete: best effort. Remote failures are logged with the resource
  identity and the record is marked deleted anyway, unless
  ClientConfig.strict_delete is set.
- Custom fields are only ever added or modified, never removed.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from .client import Device42Client, Device42Error, NotFoundError, TransportError
from .custom_fields import (
    BulkPayloadError,
    CustomFieldMapping,
    build_bulk_payload,
    changed_fields,
    removed_fields,
)
from .decoders import DecodeError
from .models import ResourceSpec
from .suppress import drifted_paths, suppressed_paths

logger = logging.getLogger(__name__)

SpecT = TypeVar("SpecT", bound=ResourceSpec)
RecordT = TypeVar("RecordT")


class ResourceState(str, Enum):
    """Lifecycle states of one resource instance."""

    ABSENT = "absent"
    CREATING = "creating"
    PRESENT = "present"
    UPDATING = "updating"
    DELETED = "deleted"


class Action(str, Enum):
    """What a reconciliation pass has to do to converge."""

    CREATE = "create"
    UPDATE = "update"
    REPLACE = "replace"
    NONE = "none"


class ReconcileError(Exception):
    """Raised when a lifecycle operation cannot complete.

    Carries enough context (kind, identity, operation, identifier) for an
    operator to act on the failure.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: str,
        identity: str,
        operation: str,
        resource_id: str = "",
    ) -> None:
        context = f"{operation} {kind} '{identity}'"
        if resource_id:
            context += f" (id {resource_id})"
        super().__init__(f"{context}: {message}")
        self.kind = kind
        self.identity = identity
        self.operation = operation
        self.resource_id = resource_id


@dataclass
class ChangeSet:
    """Mutations needed to converge one resource.

    Attributes:
        action: Overall action.
        fixed: Fixed-schema form fields to write (values may be secret).
        custom_fields: Custom field key -> rendered value, one write each.
        drift: Field paths that drifted, suppressed paths excluded.
        suppressed: Observed custom field paths ignored as undeclared.
        replace_reasons: Identity fields that changed (REPLACE only).
    """

    action: Action
    fixed: dict[str, str] = field(default_factory=dict, repr=False)
    custom_fields: dict[str, str] = field(default_factory=dict)
    drift: list[str] = field(default_factory=list)
    suppressed: list[str] = field(default_factory=list)
    replace_reasons: list[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return self.action is not Action.NONE

    def summary(self) -> dict[str, Any]:
        """Loggable summary; never includes fixed-field values."""
        return {
            "action": self.action.value,
            "fixed_fields": sorted(self.fixed),
            "custom_fields": sorted(self.custom_fields),
            "suppressed": self.suppressed,
        }


@dataclass
class ResourceData(Generic[SpecT, RecordT]):
    """Desired state, bound identifier, and last observation of one resource.

    Attributes:
        desired: Declaration for this pass, owned by the caller.
        id: Bound identifier, "" when absent or deleted.
        observed: Record from the last successful read.
        applied: Declaration applied by the last successful create/update.
        state: Current lifecycle state.
        orphan_id: Remote id left behind by a partially failed create.
        writes: Number of write requests issued through this instance.
    """

    desired: SpecT
    id: str = ""
    observed: RecordT | None = None
    applied: SpecT | None = None
    state: ResourceState = ResourceState.ABSENT
    orphan_id: str = ""
    writes: int = 0

    def __post_init__(self) -> None:
        if self.id and self.state is ResourceState.ABSENT:
            self.state = ResourceState.PRESENT

    def clear(self, state: ResourceState = ResourceState.DELETED) -> None:
        self.id = ""
        self.observed = None
        self.state = state


class ResourceReconciler(ABC, Generic[SpecT, RecordT]):
    """Create/read/update/delete lifecycle shared by all resource kinds.

    Subclasses describe their endpoints and fixed-schema fields; the
    custom field handling and failure policies live here.
    """

    kind: str = ""
    create_path: str = ""
    custom_field_path: str = ""

    def __init__(self, client: Device42Client) -> None:
        self._client = client

    # -------------------------------------------------------------------------
    # Resource-specific hooks
    # -------------------------------------------------------------------------

    @abstractmethod
    def create_form(self, spec: SpecT) -> dict[str, str]:
        """Form fields of the primary create call."""

    @abstractmethod
    def owner_form(self, spec: SpecT, resource_id: str) -> dict[str, str]:
        """Form fields identifying the owner of a custom field write."""

    @abstractmethod
    def fetch(self, spec: SpecT, resource_id: str) -> RecordT | None:
        """Read the remote record, None when the appliance has none."""

    @abstractmethod
    def delete_path(self, resource_id: str) -> str:
        """Path of the delete call."""

    @abstractmethod
    def fixed_changes(self, spec: SpecT, record: RecordT) -> dict[str, str]:
        """Fixed-schema form fields whose observed value differs."""

    @abstractmethod
    def write_fixed(self, spec: SpecT, resource_id: str, changes: dict[str, str]) -> None:
        """Write changed fixed-schema fields in one request."""

    @abstractmethod
    def observed_custom_fields(self, record: RecordT) -> CustomFieldMapping:
        """Custom field mapping of a decoded record."""

    def identity_changes(self, spec: SpecT, record: RecordT) -> list[str]:
        """Fields whose change requires replacing the remote object."""
        return []

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def create(self, data: ResourceData[SpecT, RecordT]) -> None:
        """Create the remote object, then write its custom fields in bulk.

        The identifier is bound only after both calls succeed.

        Raises:
            ReconcileError: If either call reports an application or decode
                failure. When the custom field write fails, data.orphan_id
                holds the id of the created object.
            TransportError: Unchanged from the client, with the same
                orphan bookkeeping.
        """
        spec = data.desired
        if data.id:
            raise self._error("resource is already bound", data, "create")

        bulk_payload = ""
        if spec.custom_fields:
            try:
                bulk_payload = build_bulk_payload(spec.custom_fields)
            except BulkPayloadError as e:
                raise self._error(str(e), data, "create") from e

        data.state = ResourceState.CREATING
        try:
            data.writes += 1
            assigned = str(self._client.create(self.create_path, self.create_form(spec)))
        except TransportError:
            data.state = ResourceState.ABSENT
            raise
        except Device42Error as e:
            data.state = ResourceState.ABSENT
            raise self._error(str(e), data, "create") from e

        logger.info("Created %s", self.kind, extra=self._log_context(data, assigned))

        if bulk_payload:
            form = {**self.owner_form(spec, assigned), "bulk_fields": bulk_payload}
            try:
                data.writes += 1
                self._client.update(self.custom_field_path, form)
            except Device42Error as e:
                data.state = ResourceState.ABSENT
                data.orphan_id = assigned
                logger.warning(
                    "Custom field write failed after create; remote object left unbound",
                    extra={**self._log_context(data, assigned), "error": str(e)},
                )
                if isinstance(e, TransportError):
                    raise
                raise self._error(
                    f"custom field write failed, remote object {assigned} is orphaned: {e}",
                    data,
                    "create",
                ) from e

        data.id = assigned
        data.orphan_id = ""
        data.applied = spec
        data.state = ResourceState.PRESENT
        self._read_back(data)

    def read(self, data: ResourceData[SpecT, RecordT]) -> RecordT | None:
        """Refresh the observed record.

        A missing resource clears the identifier and returns None without
        raising; the caller treats an empty identifier as "needs recreation".

        Raises:
            ReconcileError: On application or decode failures.
            TransportError: When read_errors_as_absent is off.
        """
        if not data.id:
            return None

        record: RecordT | None
        try:
            record = self.fetch(data.desired, data.id)
        except NotFoundError:
            record = None
        except TransportError as e:
            if not self._client.config.read_errors_as_absent:
                raise
            logger.warning(
                "Read failed, treating %s as absent",
                self.kind,
                extra={**self._log_context(data), "error": str(e)},
            )
            record = None
        except (Device42Error, DecodeError) as e:
            raise self._error(str(e), data, "read") from e

        if record is None:
            logger.warning("No %s found", self.kind, extra=self._log_context(data))
            data.clear()
            return None

        data.observed = record
        data.state = ResourceState.PRESENT
        return record

    def plan(self, data: ResourceData[SpecT, RecordT]) -> ChangeSet:
        """Compute the mutations needed to converge, without writing.

        Raises:
            ReconcileError: If the resource is bound but was never read.
        """
        spec = data.desired
        if not data.id:
            return ChangeSet(
                action=Action.CREATE,
                fixed=self.create_form(spec),
                custom_fields=changed_fields(spec.custom_fields, {}),
            )
        if data.observed is None:
            raise self._error("no observed state, read before planning", data, "plan")

        record = data.observed
        observed_fields = self.observed_custom_fields(record)
        reasons = self.identity_changes(spec, record)
        fixed = self.fixed_changes(spec, record)
        custom = changed_fields(spec.custom_fields, observed_fields)
        drift = sorted(fixed) + drifted_paths(spec.custom_fields, observed_fields)

        if reasons:
            action = Action.REPLACE
        elif fixed or custom:
            action = Action.UPDATE
        else:
            action = Action.NONE

        return ChangeSet(
            action=action,
            fixed=fixed,
            custom_fields=custom,
            drift=drift,
            suppressed=suppressed_paths(spec.custom_fields, observed_fields),
            replace_reasons=reasons,
        )

    def update(self, data: ResourceData[SpecT, RecordT]) -> ChangeSet:
        """Write only what changed since the last read.

        Fixed fields go out in one request, custom fields one request per
        changed key. Nothing is written when the plan is empty.

        Raises:
            ReconcileError: If the resource is unbound, an identity field
                changed, or a write is rejected.
            TransportError: Unchanged from the client.
        """
        spec = data.desired
        if not data.id:
            raise self._error("resource is not bound, create it first", data, "update")
        if data.observed is None and self.read(data) is None:
            raise self._error("resource disappeared before update", data, "update")

        changes = self.plan(data)
        if changes.action is Action.REPLACE:
            raise self._error(
                f"{', '.join(changes.replace_reasons)} cannot change in place, "
                "the resource must be replaced",
                data,
                "update",
            )

        previous = data.applied.custom_fields if data.applied is not None else {}
        dropped = removed_fields(spec.custom_fields, previous)
        if dropped:
            logger.warning(
                "Custom fields removed from the declaration stay on the remote %s",
                self.kind,
                extra={**self._log_context(data), "keys": dropped},
            )

        if not changes.has_changes:
            logger.debug("No drift", extra=self._log_context(data))
            data.applied = spec
            return changes

        logger.info(
            "Updating %s", self.kind, extra={**self._log_context(data), **changes.summary()}
        )
        data.state = ResourceState.UPDATING
        try:
            if changes.fixed:
                data.writes += 1
                self.write_fixed(spec, data.id, changes.fixed)
            owner = self.owner_form(spec, data.id)
            for key in sorted(changes.custom_fields):
                data.writes += 1
                self._client.update(
                    self.custom_field_path,
                    {**owner, "key": key, "value": changes.custom_fields[key]},
                )
        except TransportError:
            data.state = ResourceState.PRESENT
            raise
        except Device42Error as e:
            data.state = ResourceState.PRESENT
            raise self._error(str(e), data, "update") from e

        data.applied = spec
        data.state = ResourceState.PRESENT
        self._read_back(data)
        return changes

    def delete(self, data: ResourceData[SpecT, RecordT]) -> None:
        """Delete the remote object, best effort.

        Raises:
            ReconcileError: Only when strict_delete is set and the remote
                delete failed; the identifier is kept in that case.
            TransportError: Likewise, unchanged from the client.
        """
        if not data.id:
            data.clear()
            return

        logger.info("Deleting %s", self.kind, extra=self._log_context(data))
        try:
            data.writes += 1
            self._client.delete(self.delete_path(data.id))
        except NotFoundError:
            logger.info("%s already gone", self.kind, extra=self._log_context(data))
        except Device42Error as e:
            logger.error(
                "Delete failed",
                extra={**self._log_context(data), "error": str(e)},
            )
            if self._client.config.strict_delete:
                if isinstance(e, TransportError):
                    raise
                raise self._error(str(e), data, "delete") from e
        data.clear()

    def reconcile(self, data: ResourceData[SpecT, RecordT]) -> ChangeSet:
        """Run one pass: create when unbound or vanished, otherwise update."""
        if data.id:
            self.read(data)
        if not data.id:
            changes = self.plan(data)
            self.create(data)
            return changes
        return self.update(data)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _read_back(self, data: ResourceData[SpecT, RecordT]) -> RecordT | None:
        """Refresh the observed record after a successful write.

        The object was just written, so a failed or empty read never
        unbinds it; observed stays None until the next read.
        """
        record: RecordT | None
        try:
            record = self.fetch(data.desired, data.id)
        except NotFoundError:
            record = None
        except TransportError as e:
            if not self._client.config.read_errors_as_absent:
                raise
            logger.warning(
                "Read-back failed, keeping %s bound",
                self.kind,
                extra={**self._log_context(data), "error": str(e)},
            )
            data.observed = None
            return None
        except (Device42Error, DecodeError) as e:
            data.observed = None
            raise self._error(str(e), data, "read") from e

        if record is None:
            logger.warning(
                "%s not visible after write, keeping it bound",
                self.kind,
                extra=self._log_context(data),
            )
        data.observed = record
        return record

    def _log_context(self, data: ResourceData[SpecT, RecordT], resource_id: str = "") -> dict[str, Any]:
        return {
            "kind": self.kind,
            "identity": data.desired.identity,
            "resource_id": resource_id or data.id,
        }

    def _error(
        self, message: str, data: ResourceData[SpecT, RecordT], operation: str
    ) -> ReconcileError:
        return ReconcileError(
            message,
            kind=self.kind,
            identity=data.desired.identity,
            operation=operation,
            resource_id=data.id or data.orphan_id,
        )
