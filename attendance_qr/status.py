from __future__ import annotations

"""
Status rules shared by the server and the desktop client.

Both sides derive token and attendance status through these functions so they
never disagree about what "active" or "present" means. Nothing here is cached;
callers recompute on every read.
"""

import enum
from datetime import datetime
from typing import Any, Dict, List, Optional

from .errors import IllegalTransition, ValidationError


class TokenStatus(str, enum.Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    DEACTIVATED = "deactivated"


class AttendanceStatus(str, enum.Enum):
    NOT_STARTED = "not_started"
    PRESENT = "present"
    ON_BREAK = "on_break"
    COMPLETED = "completed"


class AttendanceAction(str, enum.Enum):
    PUNCH_IN = "punch_in"
    BREAK_START = "break_start"
    BREAK_END = "break_end"
    PUNCH_OUT = "punch_out"


# Names the older desktop build still sends
ACTION_ALIASES: Dict[str, AttendanceAction] = {
    "break_in": AttendanceAction.BREAK_START,
    "break_out": AttendanceAction.BREAK_END,
}

LEGAL_ACTIONS: Dict[AttendanceStatus, frozenset] = {
    AttendanceStatus.NOT_STARTED: frozenset({AttendanceAction.PUNCH_IN}),
    AttendanceStatus.PRESENT: frozenset({AttendanceAction.BREAK_START, AttendanceAction.PUNCH_OUT}),
    AttendanceStatus.ON_BREAK: frozenset({AttendanceAction.BREAK_END}),
    AttendanceStatus.COMPLETED: frozenset(),
}

_NEXT_STATUS: Dict[AttendanceAction, AttendanceStatus] = {
    AttendanceAction.PUNCH_IN: AttendanceStatus.PRESENT,
    AttendanceAction.BREAK_START: AttendanceStatus.ON_BREAK,
    AttendanceAction.BREAK_END: AttendanceStatus.PRESENT,
    AttendanceAction.PUNCH_OUT: AttendanceStatus.COMPLETED,
}

ACTION_LABELS: Dict[AttendanceAction, str] = {
    AttendanceAction.PUNCH_IN: "Punch in",
    AttendanceAction.BREAK_START: "Break start",
    AttendanceAction.BREAK_END: "Break end",
    AttendanceAction.PUNCH_OUT: "Punch out",
}


def parse_action(value: Any) -> AttendanceAction:
    if isinstance(value, AttendanceAction):
        return value
    raw = str(value or "").strip().lower().replace("-", "_")
    if raw in ACTION_ALIASES:
        return ACTION_ALIASES[raw]
    try:
        return AttendanceAction(raw)
    except ValueError:
        raise ValidationError(f"Unknown action: {value!r}")


def token_status(token: Any, now: datetime) -> TokenStatus:
    if not token.is_active:
        return TokenStatus.DEACTIVATED
    if token.expires_at is not None and token.expires_at <= now:
        return TokenStatus.EXPIRED
    return TokenStatus.ACTIVE


def derive_status(record: Optional[Any]) -> AttendanceStatus:
    """Project a day's timestamps onto one of the four attendance states.

    A break is open when break_start is set and break_end is not. Starting a
    new break clears break_end, so only the latest break is kept in those two
    fields; earlier breaks live on in total_break_seconds.
    """
    if record is None or record.punch_in_time is None:
        return AttendanceStatus.NOT_STARTED
    if record.punch_out_time is not None:
        return AttendanceStatus.COMPLETED
    if record.break_start_time is not None and record.break_end_time is None:
        return AttendanceStatus.ON_BREAK
    return AttendanceStatus.PRESENT


def allowed_actions(status: AttendanceStatus) -> List[AttendanceAction]:
    return [a for a in AttendanceAction if a in LEGAL_ACTIONS[status]]


def check_transition(status: AttendanceStatus, action: AttendanceAction) -> AttendanceStatus:
    if action not in LEGAL_ACTIONS[status]:
        raise IllegalTransition(current_status=status.value, attempted_action=action.value)
    return _NEXT_STATUS[action]


def next_status(status: AttendanceStatus, action: AttendanceAction) -> Optional[AttendanceStatus]:
    if action not in LEGAL_ACTIONS[status]:
        return None
    return _NEXT_STATUS[action]


def worked_seconds(record: Optional[Any]) -> Optional[int]:
    if record is None or record.punch_in_time is None or record.punch_out_time is None:
        return None
    total = (record.punch_out_time - record.punch_in_time).total_seconds()
    total -= record.total_break_seconds or 0
    return max(int(total), 0)
