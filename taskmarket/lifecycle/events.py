from dataclasses import dataclass, field
from typing import Any, Dict, Optional

# Realtime event types published on task and user channels.
TASK_UPDATED = 'task-updated'
BID_ACCEPTED = 'bid-accepted'
BID_REJECTED = 'bid-rejected'
URGENT_NOTIFICATION = 'urgent-notification'
SUBMISSION_STATUS_UPDATED = 'submission-status-updated'


def task_channel(task_id):
    return f"task-{task_id}"


def user_channel(user_id):
    return f"user-{user_id}"


@dataclass(frozen=True)
class Notification:
    """A message for one user, delivered by the configured emitter."""

    kind: str
    target_user_id: int
    title: str
    message: str
    link: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Broadcast:
    channel: str
    event_type: str
    payload: Dict[str, Any] = field(default_factory=dict)


def task_updated(task, **extra):
    payload = {'task_id': task.id, 'status': task.status, 'doer_id': task.doer_id}
    payload.update(extra)
    return Broadcast(task_channel(task.id), TASK_UPDATED, payload)
