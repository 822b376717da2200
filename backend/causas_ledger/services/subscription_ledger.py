"""
Subscription ledger: case to folder associations.

A case record is shared by every user who bookmarked it in a folder. Each
subscriber carries an ``enabled`` preference; the record's ``needs_sync`` flag
(read by the scraper fleet) is true iff at least one subscriber is enabled.

Every mutating path below ends in ``_write_ledger``, which aligns the entries
with the subscriber list and recomputes ``needs_sync`` through
``recompute_needs_sync``. Nothing else assigns ``needs_sync``.

Records are never deleted here, even when the last folder is removed.
"""
from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy import Text, cast
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from causas_ledger.core.config import settings
from causas_ledger.core.logger import logger
from causas_ledger.db.models import CaseRecordMixin, Partition
from causas_ledger.services.partition_resolver import model_for, resolve_partition
from causas_ledger.utils.exceptions import (
    CaseNotFoundError,
    DuplicateAssociationError,
    LedgerValidationError,
    StoreError,
)
from causas_ledger.utils.helpers import earliest_movement_date
from causas_ledger.utils.validators import (
    canonical_ref,
    canonical_refs,
    parse_record_id,
    require_text,
    validate_year,
)

# Subscribers that predate per-user entries keep syncing until told otherwise.
MISSING_ENTRY_DEFAULT = True


# ============================================================================
# Results
# ============================================================================

@dataclass
class AssociationResult:
    causa_id: uuid.UUID
    partition: Partition
    created: bool
    needs_sync: bool
    verified: bool
    is_valid: Optional[bool] = None
    caratula: Optional[str] = None
    objeto: Optional[str] = None
    juzgado: Optional[str] = None
    secretaria: Optional[str] = None
    fecha_inicio: Optional[Any] = None

    def to_api(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "causaId": str(self.causa_id),
            "causaType": self.partition.value,
            "created": self.created,
            "update": self.needs_sync,
            "verified": self.verified,
        }
        if self.verified:
            out["isValid"] = bool(self.is_valid)
        for key in ("caratula", "objeto", "juzgado", "secretaria"):
            value = getattr(self, key)
            if value:
                out[key] = value
        if self.fecha_inicio is not None:
            out["fechaInicio"] = self.fecha_inicio.isoformat()
        return out


@dataclass
class DissociationResult:
    causa_id: uuid.UUID
    partition: Partition
    changed: bool
    needs_sync: bool

    def to_api(self) -> Dict[str, Any]:
        return {
            "causaId": str(self.causa_id),
            "causaType": self.partition.value,
            "created": False,
            "changed": self.changed,
            "update": self.needs_sync,
        }


@dataclass
class BulkResult:
    """Per-partition touched counts for a scan over every partition."""
    updated: Dict[str, int] = field(
        default_factory=lambda: {p.result_key: 0 for p in Partition}
    )
    failed: int = 0
    failed_partitions: List[str] = field(default_factory=list)
    # distinct canonical ids in the roster, reconciliation only
    active_users: Optional[int] = None

    @property
    def succeeded(self) -> int:
        return sum(self.updated.values())

    @property
    def success(self) -> bool:
        return self.failed == 0 and not self.failed_partitions

    def to_api(self) -> Dict[str, Any]:
        return {
            "updated": dict(self.updated),
            "total": self.succeeded,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "failedPartitions": list(self.failed_partitions),
        }


@dataclass
class RepairResult:
    partition: Partition
    count: int = 0
    failed: int = 0

    @property
    def success(self) -> bool:
        return self.failed == 0


# ============================================================================
# Pure helpers
# ============================================================================

def recompute_needs_sync(entries: Optional[Mapping[str, Any]]) -> bool:
    """The one definition of needs_sync: some subscriber has updates enabled."""
    return any(bool(enabled) for enabled in (entries or {}).values())


def _ref_list(value: Any) -> List[str]:
    """Stored reference array as canonical, de-duplicated strings."""
    if not isinstance(value, list):
        return []
    out: List[str] = []
    for item in value:
        try:
            ref = canonical_ref(item)
        except LedgerValidationError:
            continue
        if ref not in out:
            out.append(ref)
    return out


def _entries(value: Any) -> Dict[str, bool]:
    """
    Stored entries as {user_id: enabled}. Also reads the older list shape
    ``[{"userId": ..., "enabled": ...}]``; the first entry per user wins.
    """
    pairs: Iterable[Tuple[Any, Any]]
    if isinstance(value, dict):
        pairs = value.items()
    elif isinstance(value, list):
        pairs = [
            (item.get("userId"), item.get("enabled"))
            for item in value
            if isinstance(item, dict)
        ]
    else:
        return {}

    out: Dict[str, bool] = {}
    for user, enabled in pairs:
        try:
            ref = canonical_ref(user)
        except LedgerValidationError:
            continue
        out.setdefault(ref, bool(enabled))
    return out


def _write_ledger(
    record: CaseRecordMixin,
    folders: List[str],
    users: List[str],
    entries: Mapping[str, bool],
) -> bool:
    """
    Assign the ledger fields of ``record``. Entries are restricted to the
    subscriber list (one per subscriber) and needs_sync is recomputed from
    them. Returns True when any persisted value changed.
    """
    aligned = {user: bool(entries.get(user, MISSING_ENTRY_DEFAULT)) for user in users}
    needs_sync = recompute_needs_sync(aligned)

    changed = (
        record.folder_refs != folders
        or record.subscriber_user_refs != users
        or record.subscription_entries != aligned
        or record.needs_sync != needs_sync
    )
    if changed:
        record.folder_refs = list(folders)
        record.subscriber_user_refs = list(users)
        record.subscription_entries = aligned
        record.needs_sync = needs_sync
    return changed


def _contains(db: Session, column, ref: str):
    """
    SQL filter for "ref is an element of this JSON array column".
    Text matching is only a prefilter; callers confirm with _ref_list.
    """
    if db.get_bind().dialect.name == "postgresql":
        return cast(column, JSONB).contains([ref])
    return cast(column, Text).contains(json.dumps(ref), autoescape=True)


def _identity(record: Optional[CaseRecordMixin]) -> Dict[str, Any]:
    if record is None:
        return {}
    return {"causa_id": str(record.id), "number": record.number, "year": record.year}


def case_to_api(record: CaseRecordMixin, partition: Partition) -> Dict[str, Any]:
    entries = _entries(record.subscription_entries)
    return {
        "id": str(record.id),
        "causaType": partition.value,
        "fuero": record.fuero or partition.fuero,
        "number": record.number,
        "year": record.year,
        "folderIds": _ref_list(record.folder_refs),
        "userCausaIds": _ref_list(record.subscriber_user_refs),
        "userUpdatesEnabled": [
            {"userId": user, "enabled": enabled} for user, enabled in entries.items()
        ],
        "update": bool(record.needs_sync),
        "source": record.source,
        "verified": bool(record.verified),
        "isValid": record.is_valid,
        "caratula": record.caratula,
        "objeto": record.objeto,
        "juzgado": record.juzgado,
        "secretaria": record.secretaria,
        "movimiento": record.movimiento or [],
        "createdAt": record.created_at.isoformat() if record.created_at else None,
        "updatedAt": record.updated_at.isoformat() if record.updated_at else None,
    }


def _association_result(partition: Partition, record: CaseRecordMixin, created: bool) -> AssociationResult:
    verified = bool(record.verified)
    fecha_inicio = None
    if verified and record.is_valid:
        fecha_inicio = earliest_movement_date(record.movimiento)

    return AssociationResult(
        causa_id=record.id,
        partition=partition,
        created=created,
        needs_sync=bool(record.needs_sync),
        verified=verified,
        is_valid=record.is_valid if verified else None,
        caratula=record.caratula,
        objeto=record.objeto,
        juzgado=record.juzgado,
        secretaria=record.secretaria,
        fecha_inicio=fecha_inicio,
    )


# ============================================================================
# Single-record operations
# ============================================================================

def associate_folder(
    db: Session,
    causa_type: Any,
    number: Any,
    year: Any,
    user_id: Any,
    folder_id: Any,
    has_paid_subscription: bool = False,
) -> AssociationResult:
    """
    Link ``folder_id`` (owned by ``user_id``) to the case ``number/year``,
    creating the case record on first use.

    A user's entry is only ever raised here (previous OR paid). If the folder
    was already linked, the merge is still saved and DuplicateAssociationError
    is raised afterwards (unless LEDGER_STRICT_DUPLICATES is off).
    """
    partition = resolve_partition(causa_type)
    number = require_text(number, "number")
    year = validate_year(year)
    user_ref = canonical_ref(user_id, "userId")
    folder_ref = canonical_ref(folder_id, "folderId")
    paid = bool(has_paid_subscription)

    try:
        record, created, duplicate = _upsert_association(
            db, partition, number, year, user_ref, folder_ref, paid
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(
            "associate-folder failed",
            extra={"partition": partition.value, "number": number, "year": year, "folder_id": folder_ref},
        )
        raise StoreError("associate-folder", str(e))

    result = _association_result(partition, record, created)
    if duplicate and settings.LEDGER_STRICT_DUPLICATES:
        raise DuplicateAssociationError(folder_ref, result.to_api())
    return result


def _upsert_association(
    db: Session,
    partition: Partition,
    number: str,
    year: str,
    user_ref: str,
    folder_ref: str,
    paid: bool,
) -> Tuple[CaseRecordMixin, bool, bool]:
    """
    Insert-or-merge under the (number, year) unique constraint. Losing an
    insert race surfaces as IntegrityError; the next attempt then finds the
    winner's row and merges into it.
    """
    model = model_for(partition)

    for attempt in range(1, settings.LEDGER_UPSERT_ATTEMPTS + 1):
        record = (
            db.query(model)
            .filter(model.number == number, model.year == year)
            .with_for_update()
            .one_or_none()
        )

        if record is None:
            record = model(
                number=number,
                year=year,
                fuero=partition.fuero,
                source=settings.LEDGER_SOURCE_TAG,
                verified=False,
            )
            _write_ledger(record, [folder_ref], [user_ref], {user_ref: paid})
            db.add(record)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.info(
                    "Concurrent create for %s %s/%s, merging (attempt %d)",
                    partition.value, number, year, attempt,
                )
                continue

            db.refresh(record)
            logger.info(
                "Case created",
                extra={**_identity(record), "partition": partition.value, "folder_id": folder_ref, "update": record.needs_sync},
            )
            return record, True, False

        folders = _ref_list(record.folder_refs)
        users = _ref_list(record.subscriber_user_refs)
        entries = _entries(record.subscription_entries)

        duplicate = folder_ref in folders
        if not duplicate:
            folders.append(folder_ref)
        if user_ref not in users:
            users.append(user_ref)
        entries[user_ref] = entries.get(user_ref, MISSING_ENTRY_DEFAULT) or paid

        _write_ledger(record, folders, users, entries)
        record.source = settings.LEDGER_SOURCE_TAG
        db.commit()
        db.refresh(record)

        logger.info(
            "Case merged",
            extra={
                **_identity(record),
                "partition": partition.value,
                "folder_id": folder_ref,
                "duplicate": duplicate,
                "update": record.needs_sync,
            },
        )
        return record, False, duplicate

    raise StoreError(
        "associate-folder",
        f"could not create or merge {partition.value} {number}/{year} "
        f"after {settings.LEDGER_UPSERT_ATTEMPTS} attempts",
    )


def dissociate_folder(
    db: Session,
    causa_type: Any,
    causa_id: Any,
    folder_id: Any,
    user_id: Any,
) -> DissociationResult:
    """
    Remove the folder, the user and the user's entry from the record.
    Removing references that are already gone is a no-op.
    """
    partition = resolve_partition(causa_type)
    folder_ref = canonical_ref(folder_id, "folderId")
    user_ref = canonical_ref(user_id, "userId")
    record_id = parse_record_id(causa_id)
    if record_id is None:
        raise CaseNotFoundError(str(causa_id), partition.value)

    model = model_for(partition)
    try:
        record = db.query(model).filter(model.id == record_id).with_for_update().one_or_none()
        if record is None:
            db.rollback()
            raise CaseNotFoundError(str(causa_id), partition.value)

        folders = [ref for ref in _ref_list(record.folder_refs) if ref != folder_ref]
        users = [ref for ref in _ref_list(record.subscriber_user_refs) if ref != user_ref]
        entries = _entries(record.subscription_entries)
        entries.pop(user_ref, None)

        changed = _write_ledger(record, folders, users, entries)
        needs_sync = bool(record.needs_sync)
        if changed:
            db.commit()
            db.refresh(record)
        else:
            db.rollback()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(
            "dissociate-folder failed",
            extra={"partition": partition.value, "causa_id": str(causa_id), "folder_id": folder_ref},
        )
        raise StoreError("dissociate-folder", str(e))

    logger.info(
        "Folder dissociated",
        extra={
            "causa_id": str(record_id),
            "partition": partition.value,
            "folder_id": folder_ref,
            "changed": changed,
            "remaining_folders": len(folders),
        },
    )
    return DissociationResult(
        causa_id=record_id,
        partition=partition,
        changed=changed,
        needs_sync=needs_sync,
    )


def find_case_by_folder(db: Session, causa_type: Any, folder_id: Any) -> Optional[CaseRecordMixin]:
    """Record whose folder list contains ``folder_id``, or None."""
    partition = resolve_partition(causa_type)
    folder_ref = canonical_ref(folder_id, "folderId")
    model = model_for(partition)

    try:
        candidates = (
            db.query(model)
            .filter(_contains(db, model.folder_refs, folder_ref))
            .order_by(model.created_at)
            .all()
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("find-by-folder failed", extra={"partition": partition.value, "folder_id": folder_ref})
        raise StoreError("find-by-folder", str(e))

    for record in candidates:
        if folder_ref in _ref_list(record.folder_refs):
            return record

    logger.info("No case found for folder", extra={"partition": partition.value, "folder_id": folder_ref})
    return None


# ============================================================================
# Bulk operations
# ============================================================================

def _scan_partition(
    db: Session,
    partition: Partition,
    mutate: Callable[[CaseRecordMixin], bool],
    operation: str,
) -> Tuple[int, int]:
    """
    Walk a partition in id order, one record per transaction.

    ``mutate`` returns True when it changed the record; only then is it
    committed. A failing record is rolled back, logged and counted, and the
    walk moves on. Returns (touched, failed).
    """
    model = model_for(partition)
    touched = failed = 0
    last_id = None

    while True:
        query = db.query(model.id).order_by(model.id)
        if last_id is not None:
            query = query.filter(model.id > last_id)
        ids = [row[0] for row in query.limit(settings.LEDGER_BULK_BATCH_SIZE).all()]
        db.rollback()
        if not ids:
            break

        for record_id in ids:
            ident: Dict[str, Any] = {"causa_id": str(record_id)}
            try:
                record = db.query(model).filter(model.id == record_id).with_for_update().one_or_none()
                ident = {**ident, **_identity(record)}
                if record is not None and mutate(record):
                    db.commit()
                    touched += 1
                else:
                    db.rollback()
            except Exception:
                db.rollback()
                failed += 1
                logger.exception(
                    "%s failed for record", operation,
                    extra={**ident, "partition": partition.value},
                )

        last_id = ids[-1]

    return touched, failed


def _scan_all(
    db: Session,
    mutate: Callable[[CaseRecordMixin], bool],
    operation: str,
) -> BulkResult:
    result = BulkResult()
    for partition in Partition:
        try:
            touched, failed = _scan_partition(db, partition, mutate, operation)
        except SQLAlchemyError:
            db.rollback()
            result.failed_partitions.append(partition.value)
            logger.exception("%s failed for partition %s", operation, partition.value)
            continue
        result.updated[partition.result_key] = touched
        result.failed += failed
        logger.info(
            "%s: %d records updated, %d failed in %s",
            operation, touched, failed, partition.value,
        )
    return result


def set_user_update_preference(db: Session, user_id: Any, enabled: bool) -> BulkResult:
    """Set one user's entry to ``enabled`` on every case they subscribe to."""
    user_ref = canonical_ref(user_id, "userId")
    enabled = bool(enabled)

    def mutate(record: CaseRecordMixin) -> bool:
        users = _ref_list(record.subscriber_user_refs)
        if user_ref not in users:
            return False
        entries = _entries(record.subscription_entries)
        entries[user_ref] = enabled
        return _write_ledger(record, _ref_list(record.folder_refs), users, entries)

    result = _scan_all(db, mutate, "update-status")
    logger.info(
        "Update preference set",
        extra={"user_id": user_ref, "enabled": enabled, **result.to_api()},
    )
    return result


def reconcile_active_subscribers(db: Session, active_user_ids: Iterable[Any]) -> BulkResult:
    """
    Align every subscriber entry with the roster of users holding an active
    paid subscription: enabled iff listed. Safe to re-run.
    """
    active = set(canonical_refs(active_user_ids, "userIds"))

    def mutate(record: CaseRecordMixin) -> bool:
        users = _ref_list(record.subscriber_user_refs)
        entries = {user: user in active for user in users}
        return _write_ledger(record, _ref_list(record.folder_refs), users, entries)

    result = _scan_all(db, mutate, "update-by-subscriptions")
    result.active_users = len(active)
    logger.info(
        "Subscriptions reconciled",
        extra={"active_users": result.active_users, **result.to_api()},
    )
    return result


def initialize_subscription_entries(db: Session) -> BulkResult:
    """
    Backfill an enabled entry for every subscriber that has none (records
    written before per-user preferences existed). Existing entries are kept.
    """
    def mutate(record: CaseRecordMixin) -> bool:
        users = _ref_list(record.subscriber_user_refs)
        entries = _entries(record.subscription_entries)
        if not users or all(user in entries for user in users):
            return False
        entries.update({user: True for user in users if user not in entries})
        return _write_ledger(record, _ref_list(record.folder_refs), users, entries)

    result = _scan_all(db, mutate, "initialize-updates")
    logger.info("Subscription entries initialized", extra=result.to_api())
    return result


def normalize_array_shape(db: Session, causa_type: Any) -> RepairResult:
    """
    Repair records whose folder/user arrays are missing, null, duplicated or
    hold non-canonical identifiers. Well-formed records are left untouched.
    """
    partition = resolve_partition(causa_type)

    def mutate(record: CaseRecordMixin) -> bool:
        folders = _ref_list(record.folder_refs)
        users = _ref_list(record.subscriber_user_refs)
        well_formed = (
            record.folder_refs == folders
            and record.subscriber_user_refs == users
            and isinstance(record.subscription_entries, dict)
        )
        if well_formed:
            return False
        return _write_ledger(record, folders, users, _entries(record.subscription_entries))

    touched, failed = _scan_partition(db, partition, mutate, "migrate-array-fields")
    logger.info(
        "Array fields normalized",
        extra={"partition": partition.value, "count": touched, "failed": failed},
    )
    return RepairResult(partition=partition, count=touched, failed=failed)
