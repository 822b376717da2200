"""
Custom exception classes
"""
from typing import Any, Dict, Optional

from fastapi import HTTPException


class InvalidPartitionError(HTTPException):
    """Raised when a causaType token does not name a known partition"""
    def __init__(self, token: Any):
        super().__init__(
            status_code=400,
            detail=f"Invalid causa type '{token}'. Expected CIV, CNT, CSS, COM or a partition name",
        )
        self.token = token


class CaseNotFoundError(HTTPException):
    """Raised when case doesn't exist"""
    def __init__(self, case_id: str, partition: Optional[str] = None):
        where = f" in {partition}" if partition else ""
        super().__init__(
            status_code=404,
            detail=f"Case {case_id} not found{where}",
        )
        self.case_id = case_id


class DuplicateAssociationError(HTTPException):
    """Raised when the folder is already linked to the case"""
    def __init__(self, folder_id: str, summary: Optional[Dict[str, Any]] = None):
        super().__init__(
            status_code=409,
            detail={
                "message": f"Folder {folder_id} is already associated with this case",
                "data": summary,
            },
        )
        self.folder_id = folder_id
        self.summary = summary


class LedgerValidationError(HTTPException):
    """Raised when required identifying fields are missing or malformed"""
    def __init__(self, reason: str):
        super().__init__(
            status_code=422,
            detail=reason,
        )
        self.reason = reason


class StoreError(HTTPException):
    """Raised when the database fails during a ledger operation"""
    def __init__(self, operation: str, reason: str = "Unknown error"):
        super().__init__(
            status_code=503,
            detail=f"Store error during {operation}: {reason}",
        )
        self.operation = operation


class UnauthorizedError(HTTPException):
    """Raised when the caller lacks the admin role"""
    def __init__(self):
        super().__init__(
            status_code=403,
            detail="Admin role required",
        )
