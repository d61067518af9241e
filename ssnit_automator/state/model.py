"""Persisted automation state: phases, employer records and queue items

Everything the engine needs to resume after a restart lives in one
AutomationState document. Nested records are dataclasses that convert to
plain JSON-safe dicts with the camelCase keys stored on disk.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import ssnit_automator.config as config


class Phase(str, Enum):
    IDLE = "IDLE"
    SCRAPING = "SCRAPING"
    CAPTURE = "CAPTURE"
    VALIDATION = "VALIDATION"
    WAGE_EDIT = "WAGE_EDIT"
    COMPLETE = "COMPLETE"


class ItemStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    FAILED = "failed"
    SKIPPED = "skipped"
    DUPLICATE = "duplicate"


TERMINAL_STATUSES = frozenset(
    {ItemStatus.DONE, ItemStatus.FAILED, ItemStatus.SKIPPED, ItemStatus.DUPLICATE}
)

# p1 period markers for records that did not come from the report table
MANUAL_PERIOD = "MANUAL"
EDITED_PERIOD = "EDITED"


def new_record_id():
    return uuid.uuid4().hex


@dataclass
class Observation:
    """One report-table row for a prior period"""

    period: str
    type: str
    count: int = 0
    amount: float = 0.0

    def to_dict(self):
        return {"period": self.period, "type": self.type, "lf": self.count, "amt": self.amount}

    @classmethod
    def from_dict(cls, data):
        return cls(
            period=data.get("period", ""),
            type=data.get("type", ""),
            count=int(data.get("lf", 0) or 0),
            amount=float(data.get("amt", 0) or 0),
        )


@dataclass
class EmployerRecord:
    er: str
    name: str
    period: str
    p1: List[Observation] = field(default_factory=list)
    p2: List[Observation] = field(default_factory=list)
    id: str = field(default_factory=new_record_id)
    scraped_at: int = 0
    already_captured: bool = False
    continuity_error: bool = False
    zero_value_error: bool = False
    self_capture: bool = False
    is_manual: bool = False
    is_edited: bool = False

    def normal_p1(self) -> Optional[Observation]:
        for obs in self.p1:
            if obs.type == config.NORMAL_TYPE:
                return obs
        return None

    def unit_count(self):
        obs = self.normal_p1()
        return obs.count if obs else 0

    def amount(self):
        obs = self.normal_p1()
        return obs.amount if obs else 0.0

    def to_dict(self):
        return {
            "id": self.id,
            "er": self.er,
            "employerName": self.name,
            "period": self.period,
            "p1Records": [o.to_dict() for o in self.p1],
            "p2Records": [o.to_dict() for o in self.p2],
            "scrapedAt": self.scraped_at,
            "alreadyCaptured": self.already_captured,
            "continuityError": self.continuity_error,
            "zeroCrError": self.zero_value_error,
            "isSelfCapture": self.self_capture,
            "isManualEntry": self.is_manual,
            "isEdited": self.is_edited,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data.get("id") or new_record_id(),
            er=data["er"],
            name=data.get("employerName", "Unknown"),
            period=data.get("period", ""),
            p1=[Observation.from_dict(o) for o in data.get("p1Records", [])],
            p2=[Observation.from_dict(o) for o in data.get("p2Records", [])],
            scraped_at=data.get("scrapedAt", 0),
            already_captured=data.get("alreadyCaptured", False),
            continuity_error=data.get("continuityError", False),
            zero_value_error=data.get("zeroCrError", False),
            self_capture=data.get("isSelfCapture", False),
            is_manual=data.get("isManualEntry", False),
            is_edited=data.get("isEdited", False),
        )


@dataclass
class QueueItem:
    """A record reference plus per-phase progress"""

    er: str
    name: str = "Unknown"
    record_id: str = ""
    unit_count: int = 0
    amount: float = 0.0
    status: ItemStatus = ItemStatus.PENDING
    result: str = ""
    message: str = ""
    timestamp: Optional[int] = None

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    def to_dict(self):
        return {
            "er": self.er,
            "name": self.name,
            "recordId": self.record_id,
            "lf": self.unit_count,
            "amt": self.amount,
            "status": self.status.value,
            "result": self.result,
            "message": self.message,
            "timestamp": self.timestamp,
        }

    @classmethod
    def _base_kwargs(cls, data):
        return dict(
            er=data["er"],
            name=data.get("name", "Unknown"),
            record_id=data.get("recordId", ""),
            unit_count=int(data.get("lf", 0) or 0),
            amount=float(data.get("amt", 0) or 0),
            status=ItemStatus(data.get("status", ItemStatus.PENDING.value)),
            result=data.get("result", ""),
            message=data.get("message", ""),
            timestamp=data.get("timestamp"),
        )

    @classmethod
    def from_dict(cls, data):
        return cls(**cls._base_kwargs(data))


@dataclass
class ValidationQueueItem(QueueItem):
    not_found_count: int = 0
    search_attempted: bool = False
    wage_edit_rounds: int = 0

    def to_dict(self):
        data = super().to_dict()
        data["notFoundCount"] = self.not_found_count
        data["searchAttempted"] = self.search_attempted
        data["wageEditRounds"] = self.wage_edit_rounds
        return data

    @classmethod
    def from_dict(cls, data):
        return cls(
            not_found_count=data.get("notFoundCount", 0),
            search_attempted=data.get("searchAttempted", False),
            wage_edit_rounds=data.get("wageEditRounds", 0),
            **cls._base_kwargs(data),
        )


@dataclass
class SubRecordIssue:
    """An employee whose contribution is below the minimum"""

    ss_number: str
    name: str
    current_value: float
    required_adjustment: float

    def to_dict(self):
        return {
            "ssNumber": self.ss_number,
            "name": self.name,
            "currentCtb": self.current_value,
            "requiredAdjustment": self.required_adjustment,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            ss_number=data.get("ssNumber", ""),
            name=data.get("name", ""),
            current_value=float(data.get("currentCtb", 0)),
            required_adjustment=float(data.get("requiredAdjustment", 0)),
        )


@dataclass
class WageAdjustmentItem:
    er: str
    name: str
    period: str
    current_total: float
    adjusted_total: float
    issues: List[SubRecordIssue] = field(default_factory=list)
    status: ItemStatus = ItemStatus.PENDING
    result: str = ""
    message: str = ""
    timestamp: Optional[int] = None
    search_attempted: bool = False
    rounds: int = 1

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    def to_dict(self):
        return {
            "er": self.er,
            "name": self.name,
            "period": self.period,
            "currentTotal": self.current_total,
            "adjustedTotal": self.adjusted_total,
            "affectedEmployees": len(self.issues),
            "ctbIssues": [i.to_dict() for i in self.issues],
            "status": self.status.value,
            "editResult": self.result,
            "editMessage": self.message,
            "editTimestamp": self.timestamp,
            "searchAttempted": self.search_attempted,
            "wageEditRounds": self.rounds,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            er=data["er"],
            name=data.get("name", "Unknown"),
            period=data.get("period", ""),
            current_total=float(data.get("currentTotal", 0)),
            adjusted_total=float(data.get("adjustedTotal", 0)),
            issues=[SubRecordIssue.from_dict(i) for i in data.get("ctbIssues", [])],
            status=ItemStatus(data.get("status", ItemStatus.PENDING.value)),
            result=data.get("editResult", ""),
            message=data.get("editMessage", ""),
            timestamp=data.get("editTimestamp"),
            search_attempted=data.get("searchAttempted", False),
            rounds=data.get("wageEditRounds", 1),
        )


@dataclass
class AutomationState:
    """The single persisted document shared by every loop"""

    phase: Phase = Phase.IDLE
    target_period: str = ""
    is_paused: bool = False
    intervention_required: bool = False
    intervention_message: str = ""
    login_pending: bool = False
    active_worker_id: Optional[str] = None
    started_at: Optional[int] = None

    # Scraping
    er_queue: List[str] = field(default_factory=list)
    original_er_count: int = 0
    employers: List[EmployerRecord] = field(default_factory=list)

    # Capture
    capture_queue: List[QueueItem] = field(default_factory=list)
    capture_index: int = 0
    capture_retry_count: int = 0
    awaiting_response: bool = False
    last_submit_time: int = 0

    # Validation
    validation_queue: List[ValidationQueueItem] = field(default_factory=list)
    validation_index: int = 0
    validation_state: Optional[str] = None
    validation_submit_time: int = 0
    force_validation: bool = False
    auto_post_after_validation: bool = False

    # Wage edit
    needs_wage_edit: List[WageAdjustmentItem] = field(default_factory=list)
    wage_edit_queue: List[WageAdjustmentItem] = field(default_factory=list)
    wage_edit_index: int = 0
    wage_edit_state: Optional[str] = None

    # Audit
    ctb_issue_log: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def current_er(self):
        return self.er_queue[0] if self.er_queue else None

    def find_employer(self, er) -> Optional[EmployerRecord]:
        for record in self.employers:
            if record.er == er:
                return record
        return None

    def to_document(self):
        return {
            "phase": self.phase.value,
            "targetPeriod": self.target_period,
            "isPaused": self.is_paused,
            "interventionRequired": self.intervention_required,
            "interventionMessage": self.intervention_message,
            "loginPending": self.login_pending,
            "activeWorkerId": self.active_worker_id,
            "startTime": self.started_at,
            "erQueue": list(self.er_queue),
            "originalErCount": self.original_er_count,
            "scrapedResults": [r.to_dict() for r in self.employers],
            "captureQueue": [i.to_dict() for i in self.capture_queue],
            "currentCaptureIndex": self.capture_index,
            "retryCount": self.capture_retry_count,
            "awaitingResponse": self.awaiting_response,
            "lastSubmitTime": self.last_submit_time,
            "validationQueue": [i.to_dict() for i in self.validation_queue],
            "currentValidationIndex": self.validation_index,
            "validationState": self.validation_state,
            "validationSubmitTime": self.validation_submit_time,
            "forceValidationMode": self.force_validation,
            "autoPostAfterValidation": self.auto_post_after_validation,
            "needsWageEdit": [i.to_dict() for i in self.needs_wage_edit],
            "wageEditQueue": [i.to_dict() for i in self.wage_edit_queue],
            "currentWageEditIndex": self.wage_edit_index,
            "wageEditState": self.wage_edit_state,
            "ctbIssueLog": list(self.ctb_issue_log),
        }

    @classmethod
    def from_document(cls, doc):
        doc = doc or {}
        return cls(
            phase=Phase(doc.get("phase") or Phase.IDLE.value),
            target_period=doc.get("targetPeriod", ""),
            is_paused=doc.get("isPaused", False),
            intervention_required=doc.get("interventionRequired", False),
            intervention_message=doc.get("interventionMessage", ""),
            login_pending=doc.get("loginPending", False),
            active_worker_id=doc.get("activeWorkerId"),
            started_at=doc.get("startTime"),
            er_queue=list(doc.get("erQueue", [])),
            original_er_count=doc.get("originalErCount", 0),
            employers=[EmployerRecord.from_dict(r) for r in doc.get("scrapedResults", [])],
            capture_queue=[QueueItem.from_dict(i) for i in doc.get("captureQueue", [])],
            capture_index=doc.get("currentCaptureIndex", 0),
            capture_retry_count=doc.get("retryCount", 0),
            awaiting_response=doc.get("awaitingResponse", False),
            last_submit_time=doc.get("lastSubmitTime", 0),
            validation_queue=[
                ValidationQueueItem.from_dict(i) for i in doc.get("validationQueue", [])
            ],
            validation_index=doc.get("currentValidationIndex", 0),
            validation_state=doc.get("validationState"),
            validation_submit_time=doc.get("validationSubmitTime", 0),
            force_validation=doc.get("forceValidationMode", False),
            auto_post_after_validation=doc.get("autoPostAfterValidation", False),
            needs_wage_edit=[
                WageAdjustmentItem.from_dict(i) for i in doc.get("needsWageEdit", [])
            ],
            wage_edit_queue=[
                WageAdjustmentItem.from_dict(i) for i in doc.get("wageEditQueue", [])
            ],
            wage_edit_index=doc.get("currentWageEditIndex", 0),
            wage_edit_state=doc.get("wageEditState"),
            ctb_issue_log=list(doc.get("ctbIssueLog", [])),
        )
