import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class ErrorKind(str, enum.Enum):
    UNAUTHORIZED = 'UNAUTHORIZED'
    INVALID_STATE = 'INVALID_STATE'
    NOT_FOUND = 'NOT_FOUND'
    ALREADY_PROCESSED = 'ALREADY_PROCESSED'
    SIGNATURE_INVALID = 'SIGNATURE_INVALID'
    CONFLICT = 'CONFLICT'


class Reason(str, enum.Enum):
    # not found
    TASK_NOT_FOUND = 'TASK_NOT_FOUND'
    BID_NOT_FOUND = 'BID_NOT_FOUND'
    PAYMENT_NOT_FOUND = 'PAYMENT_NOT_FOUND'
    DISPUTE_NOT_FOUND = 'DISPUTE_NOT_FOUND'
    # authorization
    FORBIDDEN = 'FORBIDDEN'
    SELF_ACCEPTANCE = 'SELF_ACCEPTANCE'
    ADMIN_ONLY = 'ADMIN_ONLY'
    NOT_A_PARTY = 'NOT_A_PARTY'
    # state
    TASK_NOT_OPEN = 'TASK_NOT_OPEN'
    PAYMENT_GATE_ACTIVE = 'PAYMENT_GATE_ACTIVE'
    PAYMENT_MISSING = 'PAYMENT_MISSING'
    PAYMENT_NOT_PENDING = 'PAYMENT_NOT_PENDING'
    PAYMENT_NOT_HELD = 'PAYMENT_NOT_HELD'
    PAYMENT_NOT_CONFIRMED = 'PAYMENT_NOT_CONFIRMED'
    BID_NOT_PENDING = 'BID_NOT_PENDING'
    WRONG_STATE = 'WRONG_STATE'
    TASK_NOT_DISPUTABLE = 'TASK_NOT_DISPUTABLE'
    NOT_IN_DISPUTE = 'NOT_IN_DISPUTE'
    DISPUTE_OPEN = 'DISPUTE_OPEN'
    DISPUTE_NOT_OPEN = 'DISPUTE_NOT_OPEN'
    ALREADY_RESPONDED = 'ALREADY_RESPONDED'
    DISPUTE_ALREADY_RESOLVED = 'DISPUTE_ALREADY_RESOLVED'
    UNKNOWN_OUTCOME = 'UNKNOWN_OUTCOME'
    # processor / concurrency
    INVALID_SIGNATURE = 'INVALID_SIGNATURE'
    PROCESSOR_UNVERIFIED = 'PROCESSOR_UNVERIFIED'
    AMOUNT_MISMATCH = 'AMOUNT_MISMATCH'
    STALE_CALLBACK = 'STALE_CALLBACK'
    DUPLICATE_PAYMENT = 'DUPLICATE_PAYMENT'
    DUPLICATE_DISPUTE = 'DUPLICATE_DISPUTE'
    REPLAY = 'REPLAY'


class DomainError(Exception):
    """
    Raised inside a transaction to abort it.

    Services catch it at their boundary and return ``OperationResult.failure``;
    it never reaches a view.
    """

    def __init__(self, kind, reason, message, **details):
        super().__init__(message)
        self.kind = ErrorKind(kind)
        self.reason = Reason(reason)
        self.message = message
        self.details = details


@dataclass
class OperationResult:
    ok: bool
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    error_kind: Optional[ErrorKind] = None
    reason: Optional[Reason] = None
    details: Dict[str, Any] = field(default_factory=dict)
    changed: bool = False
    notifications: List[Any] = field(default_factory=list)
    broadcasts: List[Any] = field(default_factory=list)

    @classmethod
    def success(cls, message, data=None, notifications=None, broadcasts=None):
        return cls(
            ok=True,
            message=message,
            data=data or {},
            changed=True,
            notifications=list(notifications or []),
            broadcasts=list(broadcasts or []),
        )

    @classmethod
    def already_processed(cls, message, data=None):
        """A replay of an operation that already committed; nothing was written."""
        return cls(
            ok=True,
            message=message,
            data=data or {},
            error_kind=ErrorKind.ALREADY_PROCESSED,
            reason=Reason.REPLAY,
        )

    @classmethod
    def failure(cls, kind, reason, message, **details):
        return cls(
            ok=False,
            message=message,
            error_kind=ErrorKind(kind),
            reason=Reason(reason),
            details=details,
        )

    @classmethod
    def from_error(cls, error: DomainError):
        return cls.failure(error.kind, error.reason, error.message, **error.details)

    @property
    def is_replay(self):
        return self.ok and self.error_kind == ErrorKind.ALREADY_PROCESSED

    def to_dict(self):
        body = {
            'status': 'success' if self.ok else 'error',
            'message': self.message,
        }
        if self.error_kind is not None:
            body['code'] = self.error_kind.value
        if self.reason is not None:
            body['reason'] = self.reason.value
        if self.data:
            body.update(self.data)
        if self.details and self.error_kind != ErrorKind.SIGNATURE_INVALID:
            body['details'] = self.details
        return body
