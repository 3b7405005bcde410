"""Tests for the pay-before-assign flow: initiation and processor callbacks."""
from decimal import Decimal
from unittest import mock

import pytest

from accounts.models import CustomUser
from assignments.models import Bid, Task
from assignments.services import BidAcceptanceService, CompletionService
from escrow.services import EscrowService
from lifecycle.results import ErrorKind, Reason
from lifecycle.statuses import BidStatus, PaymentStatus, TaskStatus
from payments.models import Payment

from .factories import actor, esewa_payload

pytestmark = pytest.mark.django_db


def confirm(payment, **kwargs):
    payload = esewa_payload(payment.correlation_id, payment.amount, **kwargs)
    return EscrowService().confirm_callback(payload['transaction_uuid'], payload['status'], payload)


class TestInitiate:

    def test_creates_pending_payment_and_keeps_task_open(self, task, bid, other_bid, poster, other_doer):
        result = EscrowService().initiate(task.id, other_bid.id, actor(poster))

        assert result.ok
        payment = Payment.objects.get(task=task)
        assert payment.status == PaymentStatus.PENDING
        assert payment.amount == Decimal('80.00')
        assert payment.receiver_id == other_doer.id
        assert payment.provider == 'esewa'
        assert not payment.is_captured
        assert Task.objects.get(pk=task.pk).status == TaskStatus.OPEN
        assert Bid.objects.get(pk=other_bid.pk).status == BidStatus.PENDING

    def test_returns_checkout_form(self, task, bid, poster):
        result = EscrowService().initiate(task.id, bid.id, actor(poster))

        payment = Payment.objects.get(task=task)
        assert result.data['correlation_id'] == payment.correlation_id
        assert result.data['payment_url']
        assert result.data['form_data']['transaction_uuid'] == payment.correlation_id
        assert result.data['form_data']['total_amount'] == '60.00'

    def test_reinitiating_rearms_single_payment(self, task, bid, other_bid, poster, doer):
        first = EscrowService().initiate(task.id, other_bid.id, actor(poster))
        second = EscrowService().initiate(task.id, bid.id, actor(poster))

        assert first.ok and second.ok
        assert Payment.objects.filter(task=task).count() == 1
        payment = Payment.objects.get(task=task)
        assert payment.correlation_id == second.data['correlation_id']
        assert payment.correlation_id != first.data['correlation_id']
        assert payment.amount == Decimal('60.00')
        assert payment.receiver_id == doer.id

    def test_only_poster(self, task, bid, outsider):
        result = EscrowService().initiate(task.id, bid.id, actor(outsider))
        assert result.error_kind == ErrorKind.UNAUTHORIZED
        assert not Payment.objects.exists()

    def test_task_must_be_open(self, assigned_task, other_bid, poster):
        result = EscrowService().initiate(assigned_task.id, other_bid.id, actor(poster))
        assert result.error_kind == ErrorKind.INVALID_STATE
        assert result.reason == Reason.TASK_NOT_OPEN

    def test_bid_must_belong_to_task(self, task, poster, doer):
        elsewhere = Task.objects.create(poster=poster, title="Other", description="x", budget=Decimal('10.00'))
        foreign_bid = Bid.objects.create(task=elsewhere, bidder=doer, amount=Decimal('5.00'))

        result = EscrowService().initiate(task.id, foreign_bid.id, actor(poster))

        assert result.error_kind == ErrorKind.NOT_FOUND
        assert result.reason == Reason.BID_NOT_FOUND


class TestConfirmCallback:

    @pytest.fixture
    def payment(self, task, bid, other_bid, poster):
        assert EscrowService().initiate(task.id, other_bid.id, actor(poster)).ok
        return Payment.objects.get(task=task)

    def test_scenario_confirmation_assigns_task(self, payment, task, bid, other_bid, other_doer):
        result = confirm(payment)

        assert result.ok and result.changed
        task.refresh_from_db()
        payment.refresh_from_db()
        assert task.status == TaskStatus.ASSIGNED
        assert task.doer_id == other_doer.id
        assert task.accepted_bid_id == other_bid.id
        assert payment.status == PaymentStatus.PENDING
        assert payment.is_captured
        assert payment.external_reference == '000AWEO'
        assert payment.verification_payload['transaction_uuid'] == payment.correlation_id
        assert Bid.objects.get(pk=other_bid.pk).status == BidStatus.ACCEPTED
        assert Bid.objects.get(pk=bid.pk).status == BidStatus.REJECTED

    def test_replay_is_already_processed(self, payment, task, other_doer):
        assert confirm(payment).ok
        task.refresh_from_db()
        payment.refresh_from_db()
        captured_at = payment.captured_at

        replay = confirm(payment)

        assert replay.ok
        assert replay.is_replay
        assert not replay.changed
        assert replay.error_kind == ErrorKind.ALREADY_PROCESSED
        assert replay.notifications == [] and replay.broadcasts == []
        payment.refresh_from_db()
        assert payment.captured_at == captured_at
        assert Task.objects.get(pk=task.pk).doer_id == other_doer.id
        assert Bid.objects.filter(task=task, status=BidStatus.ACCEPTED).count() == 1

    def test_unknown_correlation_id(self, payment):
        payload = esewa_payload('does-not-exist', payment.amount)
        result = EscrowService().confirm_callback('does-not-exist', 'COMPLETE', payload)
        assert result.error_kind == ErrorKind.NOT_FOUND

    def test_incomplete_status_changes_nothing(self, payment, task):
        result = confirm(payment, status='PENDING')

        assert result.error_kind == ErrorKind.INVALID_STATE
        assert result.reason == Reason.PAYMENT_NOT_CONFIRMED
        assert Task.objects.get(pk=task.pk).status == TaskStatus.OPEN
        assert not Payment.objects.get(pk=payment.pk).is_captured

    def test_bad_signature_is_rejected_without_details(self, payment, task):
        result = confirm(payment, secret_key='forged')

        assert result.error_kind == ErrorKind.SIGNATURE_INVALID
        assert 'details' not in result.to_dict()
        assert Task.objects.get(pk=task.pk).status == TaskStatus.OPEN

    def test_superseded_checkout_is_stale(self, payment, task, bid, poster):
        old_correlation_id = payment.correlation_id
        old_amount = payment.amount
        assert EscrowService().initiate(task.id, bid.id, actor(poster)).ok

        payload = esewa_payload(old_correlation_id, old_amount)
        result = EscrowService().confirm_callback(old_correlation_id, 'COMPLETE', payload)

        # The old correlation id no longer resolves to a payment row.
        assert result.error_kind == ErrorKind.NOT_FOUND
        assert Task.objects.get(pk=task.pk).status == TaskStatus.OPEN

    def test_late_callback_after_cancellation_is_recorded_and_refunded(self, payment, task, poster, other_doer):
        assert CompletionService().cancel_task(task.id, actor(poster)).ok

        result = confirm(payment)

        assert result.error_kind == ErrorKind.INVALID_STATE
        assert result.reason == Reason.TASK_NOT_OPEN
        task.refresh_from_db()
        assert task.status == TaskStatus.CANCELLED
        assert task.doer_id is None
        payment.refresh_from_db()
        assert payment.is_captured
        assert payment.status == PaymentStatus.REFUNDED
        assert payment.refunded_at is not None
        assert payment.external_reference == '000AWEO'
        assert payment.verification_payload['transaction_uuid'] == payment.correlation_id
        assert CustomUser.objects.get(pk=other_doer.pk).account_balance == Decimal('0.00')

    def test_late_callback_replay_keeps_refund(self, payment, task, poster):
        assert CompletionService().cancel_task(task.id, actor(poster)).ok
        confirm(payment)

        replay = confirm(payment)

        assert replay.is_replay
        assert Payment.objects.get(pk=payment.pk).status == PaymentStatus.REFUNDED
        assert Task.objects.get(pk=task.pk).status == TaskStatus.CANCELLED

    def test_checkout_form_signature_cannot_confirm(self, task, bid, poster):
        checkout = EscrowService().initiate(task.id, bid.id, actor(poster))
        forged = {**checkout.data['form_data'], 'status': 'COMPLETE', 'transaction_code': 'FAKE01'}

        result = EscrowService().confirm_callback(forged['transaction_uuid'], 'COMPLETE', forged)

        assert result.error_kind == ErrorKind.SIGNATURE_INVALID
        assert Task.objects.get(pk=task.pk).status == TaskStatus.OPEN
        assert not Payment.objects.get(task=task).is_captured

    def test_amount_must_match_payment(self, payment, task):
        payload = esewa_payload(payment.correlation_id, '1.00')

        result = EscrowService().confirm_callback(payment.correlation_id, 'COMPLETE', payload)

        assert result.error_kind == ErrorKind.INVALID_STATE
        assert result.reason == Reason.AMOUNT_MISMATCH
        assert Task.objects.get(pk=task.pk).status == TaskStatus.OPEN
        assert not Payment.objects.get(pk=payment.pk).is_captured

    def test_amount_formatting_is_tolerated(self, payment, task):
        payload = esewa_payload(payment.correlation_id, '80.0')

        result = EscrowService().confirm_callback(payment.correlation_id, 'COMPLETE', payload)

        assert result.ok
        assert Task.objects.get(pk=task.pk).status == TaskStatus.ASSIGNED

    def test_payload_must_name_the_same_transaction(self, payment, task):
        payload = esewa_payload('some-other-checkout', payment.amount)

        result = EscrowService().confirm_callback(payment.correlation_id, 'COMPLETE', payload)

        assert result.error_kind == ErrorKind.SIGNATURE_INVALID
        assert not Payment.objects.get(pk=payment.pk).is_captured

    def test_signed_status_must_be_complete(self, payment, task):
        payload = esewa_payload(payment.correlation_id, payment.amount, status='PENDING')

        result = EscrowService().confirm_callback(payment.correlation_id, 'COMPLETE', payload)

        assert result.error_kind == ErrorKind.SIGNATURE_INVALID
        assert Task.objects.get(pk=task.pk).status == TaskStatus.OPEN

    def test_status_check_when_enabled(self, payment, task, settings):
        settings.ESEWA = {**settings.ESEWA, 'VERIFY_STATUS': True}
        response = mock.Mock()
        response.json.return_value = {'status': 'COMPLETE'}

        with mock.patch('payments.providers.esewa.requests.get', return_value=response) as get:
            result = confirm(payment)

        assert result.ok
        get.assert_called_once()
        assert Task.objects.get(pk=task.pk).status == TaskStatus.ASSIGNED

    def test_status_check_failure_blocks_assignment(self, payment, task, settings):
        settings.ESEWA = {**settings.ESEWA, 'VERIFY_STATUS': True}
        response = mock.Mock()
        response.json.return_value = {'status': 'NOT_FOUND'}

        with mock.patch('payments.providers.esewa.requests.get', return_value=response):
            result = confirm(payment)

        assert result.reason == Reason.PROCESSOR_UNVERIFIED
        assert Task.objects.get(pk=task.pk).status == TaskStatus.OPEN

    def test_no_credit_on_confirmation(self, payment, other_doer):
        confirm(payment)
        confirm(payment)
        assert CustomUser.objects.get(pk=other_doer.pk).account_balance == Decimal('0.00')


class TestRecordFailure:

    def test_failure_redirect_changes_nothing(self, task, bid, poster):
        EscrowService().initiate(task.id, bid.id, actor(poster))
        payment = Payment.objects.get(task=task)

        result = EscrowService().record_failure(esewa_payload(payment.correlation_id, payment.amount, status='CANCELED'))

        assert result.reason == Reason.PAYMENT_NOT_CONFIRMED
        assert Task.objects.get(pk=task.pk).status == TaskStatus.OPEN

    def test_failure_without_payload(self):
        assert not EscrowService().record_failure(None).ok


class TestRaces:

    def test_direct_acceptance_after_confirmation_loses(self, task, bid, other_bid, poster, other_doer):
        EscrowService().initiate(task.id, other_bid.id, actor(poster))
        assert confirm(Payment.objects.get(task=task)).ok

        result = BidAcceptanceService().accept_bid(bid.id, task.id, actor(poster))

        assert not result.ok
        assert Task.objects.get(pk=task.pk).doer_id == other_doer.id
