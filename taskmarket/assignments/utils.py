from lifecycle.events import (
    BID_ACCEPTED,
    BID_REJECTED,
    SUBMISSION_STATUS_UPDATED,
    URGENT_NOTIFICATION,
    Broadcast,
    Notification,
    task_channel,
    task_updated,
    user_channel,
)


def task_link(task):
    return f"/tasks/{task.id}"


def assignment_events(task, bid, rejected_bidder_ids, via_payment=False):
    """Notifications and broadcasts for a task that has just been assigned."""
    how = "and the payment is held in escrow" if via_payment else "and you can start working"
    notifications = [
        Notification(
            kind='bid_accepted',
            target_user_id=bid.bidder_id,
            title="Your Bid Has Been Accepted",
            message=f'Your bid of {bid.amount} for "{task.title}" has been accepted {how}.',
            link=task_link(task),
            payload={'task_id': task.id, 'bid_id': bid.id},
        ),
    ]
    broadcasts = [
        task_updated(task),
        Broadcast(task_channel(task.id), BID_ACCEPTED, {'task_id': task.id, 'bid_id': bid.id, 'doer_id': bid.bidder_id}),
    ]
    for bidder_id in rejected_bidder_ids:
        notifications.append(Notification(
            kind='bid_rejected',
            target_user_id=bidder_id,
            title="Your Bid Was Not Selected",
            message=f'The poster of "{task.title}" has chosen another bid.',
            link=task_link(task),
            payload={'task_id': task.id},
        ))
        broadcasts.append(Broadcast(user_channel(bidder_id), BID_REJECTED, {'task_id': task.id}))

    if via_payment:
        notifications.append(Notification(
            kind='payment_confirmed',
            target_user_id=task.poster_id,
            title="Payment Received",
            message=f'Your payment for "{task.title}" was confirmed and is held in escrow until you approve the work.',
            link=task_link(task),
            payload={'task_id': task.id},
        ))
    return notifications, broadcasts


def submission_events(task, submission, urgent=False):
    """Events for a submission whose status changed, sent to the other party."""
    if urgent:
        target_id = task.poster_id
        notification = Notification(
            kind='work_submitted',
            target_user_id=target_id,
            title="Work Submitted for Review",
            message=f'The doer has submitted work for "{task.title}". Please review it.',
            link=task_link(task),
            payload={'task_id': task.id, 'submission_id': submission.id},
        )
        urgent_broadcast = Broadcast(user_channel(target_id), URGENT_NOTIFICATION, {
            'task_id': task.id,
            'submission_id': submission.id,
            'title': notification.title,
        })
        return [notification], [task_updated(task), urgent_broadcast]

    notification = Notification(
        kind=f'submission_{submission.status}',
        target_user_id=submission.author_id,
        title=f"Submission {submission.get_status_display()}",
        message=f'Your submission for "{task.title}" was {submission.status}.'
                + (f" Feedback: {submission.feedback}" if submission.feedback else ""),
        link=task_link(task),
        payload={'task_id': task.id, 'submission_id': submission.id},
    )
    status_broadcast = Broadcast(user_channel(submission.author_id), SUBMISSION_STATUS_UPDATED, {
        'task_id': task.id,
        'submission_id': submission.id,
        'status': submission.status,
    })
    return [notification], [task_updated(task), status_broadcast]
