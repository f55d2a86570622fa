from src.capture.models import CaptureStatus
from src.shared.exceptions import InvalidStateTransition

ALLOWED_TRANSITIONS: dict[CaptureStatus, frozenset[CaptureStatus]] = {
    CaptureStatus.DRAFT: frozenset({CaptureStatus.PROCESSING, CaptureStatus.CANCELLED}),
    CaptureStatus.PROCESSING: frozenset({CaptureStatus.REVIEW, CaptureStatus.DRAFT, CaptureStatus.CANCELLED}),
    CaptureStatus.REVIEW: frozenset({CaptureStatus.COMPLETED, CaptureStatus.DRAFT, CaptureStatus.CANCELLED}),
    CaptureStatus.COMPLETED: frozenset(),
    CaptureStatus.CANCELLED: frozenset(),
}

TERMINAL_STATES = frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if not targets)


def can_transition(current: CaptureStatus, target: CaptureStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: CaptureStatus, target: CaptureStatus) -> None:
    """Raise ``InvalidStateTransition`` unless current → target is a legal edge."""
    if not can_transition(current, target):
        raise InvalidStateTransition(current.value, target.value)
