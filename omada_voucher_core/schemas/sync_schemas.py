"""
Schemas describing sync runs and diagnostics results.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..enums import StepStatus, SyncOutcome, SyncState


class SyncStepResult(BaseModel):
    name: str
    site_id: Optional[str] = None
    status: StepStatus
    attempts: int = 0
    items: int = 0
    error: Optional[Dict[str, Any]] = None


class SyncRun(BaseModel):
    run_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    outcome: Optional[SyncOutcome] = None
    items_reconciled: int = 0
    error: Optional[Dict[str, Any]] = None
    steps: List[SyncStepResult] = Field(default_factory=list)


class SyncStatus(BaseModel):
    state: SyncState
    running: bool
    interval_seconds: int
    current_run: Optional[SyncRun] = None
    last_run: Optional[SyncRun] = None


class CredentialTestResult(BaseModel):
    """Outcome of a diagnostics credential test. Never carries the secret."""

    success: bool
    message: str
    error_type: Optional[str] = None
    error_code: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
