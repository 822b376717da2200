"""
Causas service endpoints for the case to folder subscription ledger.

Called by the folder service when a user bookmarks or removes a case, by the
subscription job with the roster of paying users, and by admins for data
repair. Responses follow ``{ success, message, data | updated | count }``.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from causas_ledger.api.v1.deps import get_db, get_ledger_caller, require_admin
from causas_ledger.core.logger import logger
from causas_ledger.db.models import User
from causas_ledger.db.schemas import (
    AssociateFolderRequest,
    BulkUpdateResponse,
    DissociateFolderRequest,
    LedgerResponse,
    MigrationResponse,
    UpdateBySubscriptionsRequest,
    UpdateStatusRequest,
)
from causas_ledger.services import subscription_ledger
from causas_ledger.services.partition_resolver import partition_for_pjn_code, resolve_partition
from causas_ledger.utils.validators import coerce_bool

router = APIRouter()


@router.post("/associate-folder", response_model=LedgerResponse)
def associate_folder(
    payload: AssociateFolderRequest,
    db: Session = Depends(get_db),
    _caller: Optional[User] = Depends(get_ledger_caller),
) -> Dict[str, Any]:
    """Link a folder to its case, creating the case record on first use."""
    result = subscription_ledger.associate_folder(
        db,
        payload.causaType,
        number=payload.number,
        year=payload.year,
        user_id=payload.userId,
        folder_id=payload.folderId,
        has_paid_subscription=coerce_bool(payload.hasPaidSubscription),
    )
    return {
        "success": True,
        "message": "Case created and folder associated" if result.created else "Folder associated with existing case",
        "data": result.to_api(),
    }


@router.delete("/dissociate-folder", response_model=LedgerResponse)
def dissociate_folder(
    payload: DissociateFolderRequest,
    db: Session = Depends(get_db),
    _caller: Optional[User] = Depends(get_ledger_caller),
) -> Dict[str, Any]:
    """Remove a folder and its user from a case. The case record is kept."""
    result = subscription_ledger.dissociate_folder(
        db,
        payload.causaType,
        causa_id=payload.causaId,
        folder_id=payload.folderId,
        user_id=payload.userId,
    )
    return {
        "success": True,
        "message": "Folder dissociated from case" if result.changed else "Folder was not associated with case",
        "data": result.to_api(),
    }


@router.get("/find-by-folder/{causaType}/{folderId}", response_model=LedgerResponse)
def find_by_folder(
    causaType: str,
    folderId: str,
    db: Session = Depends(get_db),
    _caller: Optional[User] = Depends(get_ledger_caller),
) -> Dict[str, Any]:
    partition = resolve_partition(causaType)
    record = subscription_ledger.find_case_by_folder(db, partition, folderId)
    return {
        "success": True,
        "message": "Case found" if record else "No case found for this folder",
        "data": subscription_ledger.case_to_api(record, partition) if record else None,
    }


@router.patch("/update-status", response_model=BulkUpdateResponse)
def update_status(
    payload: UpdateStatusRequest,
    db: Session = Depends(get_db),
    _caller: Optional[User] = Depends(get_ledger_caller),
) -> Dict[str, Any]:
    """Pause or resume a user's updates on every case they subscribe to."""
    enabled = coerce_bool(payload.updateValue)
    result = subscription_ledger.set_user_update_preference(db, payload.userId, enabled)
    return {
        "success": result.success,
        "message": (
            f"Update status set to {enabled} on {result.succeeded} cases"
            if result.success
            else f"Update status set on {result.succeeded} cases, {result.failed} failed"
        ),
        "updated": result.updated,
        "failed": result.failed,
        "failedPartitions": result.failed_partitions,
    }


@router.patch("/update-by-subscriptions", response_model=BulkUpdateResponse)
def update_by_subscriptions(
    payload: UpdateBySubscriptionsRequest,
    db: Session = Depends(get_db),
    _caller: Optional[User] = Depends(get_ledger_caller),
) -> Dict[str, Any]:
    """Align every subscription entry with the active paid-subscription roster."""
    result = subscription_ledger.reconcile_active_subscribers(db, payload.userIds)
    return {
        "success": result.success,
        "message": f"{result.succeeded} cases updated from {result.active_users} active subscriptions",
        "updated": result.succeeded,
        "failed": result.failed,
        "failedPartitions": result.failed_partitions,
    }


@router.post("/initialize-updates", response_model=BulkUpdateResponse)
def initialize_updates(
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> Dict[str, Any]:
    """Backfill per-user entries on records written before they existed."""
    logger.info("initialize-updates requested by %s", admin.email)
    result = subscription_ledger.initialize_subscription_entries(db)
    return {
        "success": result.success,
        "message": f"{result.succeeded} cases initialized",
        "updated": result.succeeded,
        "failed": result.failed,
        "failedPartitions": result.failed_partitions,
    }


@router.post("/migrate-array-fields/{causaType}", response_model=MigrationResponse)
def migrate_array_fields(
    causaType: str,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> Dict[str, Any]:
    """Repair missing or malformed folder/user arrays in one partition."""
    logger.info("migrate-array-fields %s requested by %s", causaType, admin.email)
    result = subscription_ledger.normalize_array_shape(db, causaType)
    return {
        "success": result.success,
        "message": f"{result.count} {result.partition.value} records migrated",
        "count": result.count,
        "failed": result.failed,
    }


@router.get("/causa-type-by-code/{pjnCode}", response_model=LedgerResponse)
def causa_type_by_code(pjnCode: str) -> Dict[str, Any]:
    partition = partition_for_pjn_code(pjnCode)
    return {
        "success": partition is not None,
        "message": (
            f"PJN code {pjnCode} maps to {partition.value}"
            if partition
            else f"PJN code {pjnCode} does not map to a tracked partition"
        ),
        "data": {
            "causaType": partition.value if partition else None,
            "fuero": partition.fuero if partition else None,
        },
    }
