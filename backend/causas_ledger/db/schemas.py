"""
Pydantic validation schemas
"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any, Union

# Docket numbers, years and external ids reach us as strings or as JSON numbers.
TextOrInt = Union[str, int]

# ============================================================================
# Causas service requests
# ============================================================================

class AssociateFolderRequest(BaseModel):
    causaType: str = Field(..., min_length=1)
    number: TextOrInt
    year: TextOrInt
    userId: TextOrInt
    folderId: TextOrInt
    hasPaidSubscription: Optional[Union[bool, str]] = False

    @field_validator("number", "year", mode="after")
    @classmethod
    def not_blank(cls, v):
        if isinstance(v, str) and not v.strip():
            raise ValueError("must not be blank")
        return v


class DissociateFolderRequest(BaseModel):
    causaType: str = Field(..., min_length=1)
    causaId: str = Field(..., min_length=1)
    folderId: TextOrInt
    userId: TextOrInt


class UpdateStatusRequest(BaseModel):
    """Blanket update preference for one user"""
    userId: TextOrInt
    updateValue: Union[bool, str]


class UpdateBySubscriptionsRequest(BaseModel):
    """Users that currently hold an active paid subscription"""
    userIds: List[TextOrInt]


# ============================================================================
# Responses
# ============================================================================

class LedgerResponse(BaseModel):
    success: bool
    message: str
    data: Optional[Dict[str, Any]] = None


class BulkUpdateResponse(BaseModel):
    success: bool
    message: str
    updated: Union[Dict[str, int], int]
    failed: int = 0
    failedPartitions: List[str] = []


class MigrationResponse(BaseModel):
    success: bool
    message: str
    count: int
    failed: int = 0
