"""Tests for result rendering and post-commit event delivery."""
from unittest import mock

import pytest

from lifecycle.dispatch import (
    BroadcastPublisher,
    EmailNotificationEmitter,
    LoggingBroadcastPublisher,
    NotificationEmitter,
    dispatch,
    get_broadcast_publisher,
    get_notification_emitter,
)
from lifecycle.events import Broadcast, Notification
from lifecycle.responses import http_status_for, result_response
from lifecycle.results import DomainError, ErrorKind, OperationResult, Reason


class RecordingEmitter(NotificationEmitter):

    def __init__(self):
        self.sent = []

    def emit(self, notification):
        self.sent.append(notification)


class BrokenPublisher(BroadcastPublisher):

    def publish(self, channel, event_type, payload):
        raise ConnectionError("realtime service down")


def sample_result(target_user_id=1):
    return OperationResult.success(
        "Done.",
        notifications=[Notification('bid_accepted', target_user_id, "Title", "Body", link='/tasks/1')],
        broadcasts=[Broadcast('task-1', 'task-updated', {'task_id': 1})],
    )


class TestResults:

    def test_from_error(self):
        error = DomainError(ErrorKind.INVALID_STATE, Reason.WRONG_STATE, "Nope", event='WORK_STARTED')
        result = OperationResult.from_error(error)

        assert not result.ok
        assert result.to_dict() == {
            'status': 'error',
            'message': "Nope",
            'code': 'INVALID_STATE',
            'reason': 'WRONG_STATE',
            'details': {'event': 'WORK_STARTED'},
        }

    def test_success_body_merges_data(self):
        body = OperationResult.success("Ok.", data={'task_id': 7}).to_dict()
        assert body == {'status': 'success', 'message': "Ok.", 'task_id': 7}

    @pytest.mark.parametrize('kind, expected', [
        (ErrorKind.UNAUTHORIZED, 403),
        (ErrorKind.NOT_FOUND, 404),
        (ErrorKind.INVALID_STATE, 400),
        (ErrorKind.SIGNATURE_INVALID, 400),
        (ErrorKind.CONFLICT, 409),
    ])
    def test_http_status(self, kind, expected):
        assert http_status_for(OperationResult.failure(kind, Reason.FORBIDDEN, "x")) == expected

    def test_replay_is_quiet_success(self):
        assert http_status_for(OperationResult.already_processed("Seen."), success_status=201) == 200


class TestDispatch:

    def test_delivers_everything(self):
        emitter = RecordingEmitter()
        publisher = mock.Mock(spec=BroadcastPublisher)

        failures = dispatch(sample_result(), emitter=emitter, publisher=publisher)

        assert failures == 0
        assert [n.kind for n in emitter.sent] == ['bid_accepted']
        publisher.publish.assert_called_once_with('task-1', 'task-updated', {'task_id': 1})

    def test_failures_are_counted_not_raised(self):
        failures = dispatch(sample_result(), emitter=RecordingEmitter(), publisher=BrokenPublisher())
        assert failures == 1

    def test_nothing_to_deliver(self):
        with mock.patch('lifecycle.dispatch.get_notification_emitter') as factory:
            assert dispatch(OperationResult.already_processed("Seen.")) == 0
        factory.assert_not_called()

    def test_configured_backends(self):
        assert isinstance(get_notification_emitter(), EmailNotificationEmitter)
        assert isinstance(get_broadcast_publisher(), LoggingBroadcastPublisher)

    def test_result_response_skips_replays(self):
        with mock.patch('lifecycle.responses.dispatch') as deliver:
            response = result_response(OperationResult.already_processed("Seen."))
        deliver.assert_not_called()
        assert response.status_code == 200


@pytest.mark.django_db
class TestEmailNotificationEmitter:

    def test_sends_mail(self, doer, mailoutbox, settings):
        EmailNotificationEmitter().emit(Notification('bid_accepted', doer.id, "Your Bid Has Been Accepted", "Congrats", link='/tasks/3'))

        assert len(mailoutbox) == 1
        assert mailoutbox[0].to == [doer.email]
        assert mailoutbox[0].subject == "Your Bid Has Been Accepted"
        assert f"{settings.FRONTEND_DOMAIN}/tasks/3" in mailoutbox[0].body

    def test_unknown_user_is_skipped(self, mailoutbox):
        EmailNotificationEmitter().emit(Notification('bid_accepted', 987654, "T", "M"))
        assert mailoutbox == []

    def test_mail_failure_is_reported(self, doer):
        with mock.patch('lifecycle.dispatch.send_mail', side_effect=OSError("smtp down")):
            failures = dispatch(sample_result(doer.id), publisher=LoggingBroadcastPublisher())
        assert failures == 1
