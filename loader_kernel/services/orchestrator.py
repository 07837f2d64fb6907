"""
EntityLoadOrchestrator -- the generic batch load algorithm.

Contract:
    ``load(context, records)`` validates, looks up and then creates, updates,
    deletes, skips or rejects every record of one batch, and returns a frozen
    ``EntityLoadResult``. Entity-specific behaviour comes from a
    ``LoaderPolicy`` injected at construction.

Invariants enforced:
    - Records are processed strictly in input order, one at a time. Each is
      fully validated, looked up and persisted before the next begins, so
      ``affected_ids`` and ``errors`` follow input order.
    - One record's failure never aborts the batch: every hook exception is
      caught per record and reported with a recoverable flag.
    - Dry run never calls a mutating hook; counters still advance.
    - Each non-dry-run record runs inside a SAVEPOINT of the caller's session.
      A hook failure rolls back that record's writes only.
    - ``succeeded + failed + skipped == len(records)`` and
      ``created + updated + deleted == succeeded``.

Failure modes:
    - ``UnsupportedOperationError`` before any record is touched when the
      policy does not offer the requested operation.
    - Exceptions outside the hooks (e.g. in ``preprocess_records``) propagate.

Non-goals:
    - Does NOT begin or commit the outer transaction. The policy's
      persistence collaborator runs inside the caller's session.
    - Does NOT retry recoverable failures; the flag is advisory.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from contextlib import AbstractContextManager, nullcontext
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable
from uuid import uuid4

from loader_kernel.domain.errors import ValidationErrorCode, is_recoverable_error
from loader_kernel.domain.field_schema import EntityFieldSchema
from loader_kernel.domain.types import (
    CREATE_OPERATIONS,
    EntityId,
    EntityLoadResult,
    EntityValidationResult,
    ExistingEntityLookupResult,
    InputRecord,
    LoaderContext,
    LoaderMetadata,
    RecordLoadError,
    RequestContext,
    TargetOperation,
)
from loader_kernel.exceptions import LoaderKernelError, UnsupportedOperationError
from loader_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.orchestrator")


# =============================================================================
# Policy protocol
# =============================================================================


@runtime_checkable
class LoaderPolicy(Protocol):
    """Hooks one entity type plugs into the orchestrator.

    Optional hooks, looked up by name when present:
        - ``preprocess_records(records) -> list``: reorder before loading.
        - ``delete_entity(context, entity_id) -> None``: required for DELETE.
        - ``is_recoverable_error(exc) -> bool``: overrides the default classifier.
    """

    @property
    def metadata(self) -> LoaderMetadata: ...

    def validate(
        self,
        ctx: RequestContext,
        record: InputRecord,
        operation: TargetOperation,
    ) -> EntityValidationResult: ...

    def find_existing(
        self,
        ctx: RequestContext,
        lookup_fields: Sequence[str],
        record: InputRecord,
    ) -> ExistingEntityLookupResult | None: ...

    def create_entity(self, context: LoaderContext, record: InputRecord) -> EntityId | None: ...

    def update_entity(self, context: LoaderContext, entity_id: EntityId, record: InputRecord) -> None: ...

    def get_field_schema(self) -> EntityFieldSchema: ...

    def get_duplicate_error_message(self, record: InputRecord) -> str: ...


# =============================================================================
# Tally
# =============================================================================


@dataclass
class _LoadTally:
    """Mutable accumulator private to one load() call."""

    succeeded: int = 0
    failed: int = 0
    created: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0
    errors: list[RecordLoadError] = field(default_factory=list)
    affected_ids: list[EntityId] = field(default_factory=list)

    def fail(self, error: RecordLoadError) -> None:
        self.failed += 1
        self.errors.append(error)

    def freeze(self) -> EntityLoadResult:
        return EntityLoadResult(
            succeeded=self.succeeded,
            failed=self.failed,
            created=self.created,
            updated=self.updated,
            deleted=self.deleted,
            skipped=self.skipped,
            errors=tuple(self.errors),
            affected_ids=tuple(self.affected_ids),
        )


_SUCCEEDED = "succeeded"
_SKIPPED = "skipped"
_FAILED = "failed"


# =============================================================================
# Orchestrator
# =============================================================================


class EntityLoadOrchestrator:
    """Runs the load algorithm for one entity type over its policy."""

    def __init__(self, policy: LoaderPolicy):
        self._policy = policy
        self._metadata = policy.metadata

    # -------------------------------------------------------------------------
    # Descriptor passthrough
    # -------------------------------------------------------------------------

    @property
    def policy(self) -> LoaderPolicy:
        return self._policy

    @property
    def metadata(self) -> LoaderMetadata:
        return self._metadata

    @property
    def entity_type(self) -> str:
        return self._metadata.entity_type

    @property
    def name(self) -> str:
        return self._metadata.name

    @property
    def description(self) -> str:
        return self._metadata.description

    @property
    def supported_operations(self) -> tuple[TargetOperation, ...]:
        return self._metadata.supported_operations

    @property
    def lookup_fields(self) -> tuple[str, ...]:
        return self._metadata.lookup_fields

    @property
    def required_fields(self) -> tuple[str, ...]:
        return self._metadata.required_fields

    def supports(self, operation: TargetOperation | str) -> bool:
        try:
            op = TargetOperation(operation)
        except ValueError:
            return False
        if op not in self._metadata.supported_operations:
            return False
        return op != TargetOperation.DELETE or hasattr(self._policy, "delete_entity")

    def get_field_schema(self) -> EntityFieldSchema:
        return self._policy.get_field_schema()

    # -------------------------------------------------------------------------
    # Load
    # -------------------------------------------------------------------------

    def load(self, context: LoaderContext, records: Sequence[InputRecord]) -> EntityLoadResult:
        """Load one batch. See module docstring for the contract."""
        operation = context.operation
        if not self.supports(operation):
            raise UnsupportedOperationError(
                self.entity_type,
                str(getattr(operation, "value", operation)),
                tuple(op.value for op in self._metadata.supported_operations),
            )
        operation = TargetOperation(operation)

        batch_id = context.options.batch_metadata.get("batch_id") or str(uuid4())
        start_time = time.monotonic()
        tally = _LoadTally()

        with LogContext.bind(
            correlation_id=context.ctx.correlation_id,
            actor_id=str(context.ctx.actor_id),
            entity_type=self.entity_type,
            operation=operation.value,
            batch_id=str(batch_id),
        ):
            ordered = self._preprocess(records)
            logger.info(
                "entity_load_started",
                extra={
                    "record_count": len(ordered),
                    "dry_run": context.dry_run,
                    "skip_duplicates": context.options.skip_duplicates,
                    "lookup_fields": list(context.lookup_fields),
                },
            )

            for index, record in enumerate(ordered):
                try:
                    with self._record_scope(context):
                        outcome = self._load_record(context, record, tally)
                except Exception as exc:
                    self._record_exception(exc, index, record, tally)
                    continue
                if outcome == _SUCCEEDED:
                    tally.succeeded += 1

            duration_ms = int((time.monotonic() - start_time) * 1000)
            logger.info(
                "entity_load_completed",
                # "created" is a LogRecord attribute, so counters carry a suffix.
                extra={
                    "succeeded_count": tally.succeeded,
                    "failed_count": tally.failed,
                    "created_count": tally.created,
                    "updated_count": tally.updated,
                    "deleted_count": tally.deleted,
                    "skipped_count": tally.skipped,
                    "duration_ms": duration_ms,
                },
            )

        return tally.freeze()

    @staticmethod
    def _record_scope(context: LoaderContext) -> AbstractContextManager[Any]:
        session = context.ctx.session
        if session is None or context.dry_run:
            return nullcontext()
        return session.begin_nested()

    def _preprocess(self, records: Sequence[InputRecord]) -> list[InputRecord]:
        preprocess = getattr(self._policy, "preprocess_records", None)
        if preprocess is None:
            return list(records)
        return list(preprocess(list(records)))

    def _load_record(self, context: LoaderContext, record: InputRecord, tally: _LoadTally) -> str:
        operation = context.operation

        validation = self._policy.validate(context.ctx, record, operation)
        if not validation.valid:
            first_code = validation.errors[0].code if validation.errors else None
            tally.fail(
                RecordLoadError(
                    record=record,
                    message="; ".join(e.message for e in validation.errors) or "Validation failed",
                    code=first_code,
                    recoverable=False,
                    details=validation.errors,
                )
            )
            logger.warning(
                "record_validation_failed",
                extra={"error_count": len(validation.errors), "first_code": first_code},
            )
            return _FAILED

        existing = self._policy.find_existing(context.ctx, context.lookup_fields, record)

        if existing is not None:
            return self._handle_existing(context, record, existing, tally)
        return self._handle_new(context, record, tally)

    def _handle_existing(
        self,
        context: LoaderContext,
        record: InputRecord,
        existing: ExistingEntityLookupResult,
        tally: _LoadTally,
    ) -> str:
        operation = context.operation

        if operation == TargetOperation.CREATE:
            if context.options.skip_duplicates:
                tally.skipped += 1
                logger.info("record_skipped", extra={"reason": "duplicate", "entity_id": str(existing.id)})
                return _SKIPPED
            tally.fail(
                RecordLoadError(
                    record=record,
                    message=self._policy.get_duplicate_error_message(record),
                    code=ValidationErrorCode.DUPLICATE.value,
                    recoverable=False,
                )
            )
            logger.warning("record_duplicate", extra={"entity_id": str(existing.id)})
            return _FAILED

        if operation == TargetOperation.DELETE:
            if not context.dry_run:
                self._policy.delete_entity(context, existing.id)
            tally.deleted += 1
            tally.affected_ids.append(existing.id)
            return _SUCCEEDED

        # UPDATE or UPSERT
        if not context.dry_run:
            self._policy.update_entity(context, existing.id, record)
        tally.updated += 1
        tally.affected_ids.append(existing.id)
        return _SUCCEEDED

    def _handle_new(self, context: LoaderContext, record: InputRecord, tally: _LoadTally) -> str:
        operation = context.operation

        if operation not in CREATE_OPERATIONS:
            # UPDATE / DELETE: nothing to act on
            tally.skipped += 1
            logger.info("record_skipped", extra={"reason": "not_found"})
            return _SKIPPED

        if context.dry_run:
            tally.created += 1
            return _SUCCEEDED

        new_id = self._policy.create_entity(context, record)
        if new_id is None:
            tally.fail(
                RecordLoadError(
                    record=record,
                    message="Failed to create entity",
                    code=ValidationErrorCode.CREATE_FAILED.value,
                    recoverable=False,
                )
            )
            logger.warning("record_create_failed")
            return _FAILED

        tally.affected_ids.append(new_id)
        tally.created += 1
        return _SUCCEEDED

    def _record_exception(
        self,
        exc: Exception,
        index: int,
        record: InputRecord,
        tally: _LoadTally,
    ) -> None:
        classifier = getattr(self._policy, "is_recoverable_error", None) or is_recoverable_error
        recoverable = bool(classifier(exc))
        code = exc.code if isinstance(exc, LoaderKernelError) else None
        # DBAPI wrappers render the SQL and its bound values; keep the driver text only.
        cause = getattr(exc, "orig", None) or exc
        tally.fail(
            RecordLoadError(
                record=record,
                message=str(cause) or type(exc).__name__,
                code=code,
                recoverable=recoverable,
            )
        )
        logger.warning(
            "record_failed",
            exc_info=exc,
            extra={"record_index": index, "recoverable": recoverable},
        )
