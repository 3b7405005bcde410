"""Tests for eSewa request signing and callback decoding."""
import base64
import json
from decimal import Decimal
from unittest import mock

import pytest
import requests

from payments.providers import get_payment_provider
from payments.providers.esewa import EsewaProvider
from payments.signing import canonical_string, sign, sign_fields, verify_signature

from .factories import encode_callback, esewa_payload

SECRET = '8gBm/:&EnhH.1/q'


class TestSignatures:

    def test_sign_is_base64_sha256_digest(self):
        signature = sign("total_amount=100,transaction_uuid=11-201-13,product_code=EPAYTEST", SECRET)
        assert len(base64.b64decode(signature)) == 32
        assert signature == sign("total_amount=100,transaction_uuid=11-201-13,product_code=EPAYTEST", SECRET)

    def test_canonical_string_follows_field_order(self):
        data = {'b': '2', 'a': '1'}
        assert canonical_string(data, ['a', 'b']) == "a=1,b=2"
        assert canonical_string(data, ['b', 'a']) == "b=2,a=1"

    def test_verify_accepts_own_signature(self):
        data = {'total_amount': '60.00', 'transaction_uuid': 'abc', 'product_code': 'EPAYTEST'}
        data['signed_field_names'] = 'total_amount,transaction_uuid,product_code'
        data['signature'] = sign_fields(data, ['total_amount', 'transaction_uuid', 'product_code'], SECRET)
        assert verify_signature(data, SECRET)

    def test_verify_rejects_tampered_field(self):
        payload = esewa_payload('abc', '60.00', secret_key=SECRET)
        payload['total_amount'] = '6000.00'
        assert not verify_signature(payload, SECRET)

    def test_verify_rejects_wrong_key(self):
        payload = esewa_payload('abc', '60.00', secret_key='not-the-secret')
        assert not verify_signature(payload, SECRET)

    @pytest.mark.parametrize('missing', ['signature', 'signed_field_names', 'transaction_uuid'])
    def test_verify_rejects_incomplete_payload(self, missing):
        payload = esewa_payload('abc', '60.00', secret_key=SECRET)
        del payload[missing]
        assert not verify_signature(payload, SECRET)


class TestEsewaProvider:

    def test_factory(self):
        assert isinstance(get_payment_provider('esewa'), EsewaProvider)
        with pytest.raises(ValueError):
            get_payment_provider('paypal')

    def test_charge_builds_signed_form(self):
        provider = EsewaProvider(SECRET_KEY=SECRET)
        checkout = provider.charge(correlation_id='abc-123', amount=Decimal('60.00'))

        form = checkout['form_data']
        assert checkout['payment_url'] == provider.form_url
        assert form['total_amount'] == '60.00'
        assert form['transaction_uuid'] == 'abc-123'
        assert form['signed_field_names'] == 'total_amount,transaction_uuid,product_code'
        assert verify_signature(form, SECRET)

    def test_parse_callback_keeps_numbers_as_text(self):
        raw = base64.b64encode(json.dumps({'transaction_uuid': 'x', 'total_amount': 1000.0}).encode()).decode()
        payload = EsewaProvider().parse_callback(raw)
        assert payload['total_amount'] == '1000.0'

    @pytest.mark.parametrize('raw', ['', 'not base64 json!!', base64.b64encode(b'[1, 2]').decode()])
    def test_parse_callback_rejects_garbage(self, raw):
        with pytest.raises(ValueError):
            EsewaProvider().parse_callback(raw)

    def test_callback_fields(self):
        payload = EsewaProvider().parse_callback(encode_callback(esewa_payload('abc', '60.00')))
        assert EsewaProvider().callback_fields(payload) == ('abc', 'COMPLETE', '000AWEO')

    def test_verify_reads_status_endpoint(self):
        response = mock.Mock()
        response.json.return_value = {'status': 'COMPLETE', 'ref_id': '000AWEO'}
        with mock.patch('payments.providers.esewa.requests.get', return_value=response) as get:
            assert EsewaProvider().verify(correlation_id='abc', amount=Decimal('60.00'))

        params = get.call_args.kwargs['params']
        assert params == {'product_code': 'EPAYTEST', 'total_amount': '60.00', 'transaction_uuid': 'abc'}

    def test_verify_treats_network_errors_as_unverified(self):
        with mock.patch('payments.providers.esewa.requests.get', side_effect=requests.exceptions.Timeout):
            assert not EsewaProvider().verify(correlation_id='abc', amount=Decimal('60.00'))

    def test_verify_rejects_pending_status(self):
        response = mock.Mock()
        response.json.return_value = {'status': 'PENDING'}
        with mock.patch('payments.providers.esewa.requests.get', return_value=response):
            assert not EsewaProvider().verify(correlation_id='abc', amount=Decimal('60.00'))

    def test_webhook_accepts_full_callback(self):
        assert EsewaProvider(SECRET_KEY=SECRET).validate_webhook(esewa_payload('abc', '60.00', secret_key=SECRET))

    def test_webhook_rejects_checkout_form_signature(self):
        provider = EsewaProvider(SECRET_KEY=SECRET)
        form = provider.charge(correlation_id='abc', amount=Decimal('60.00'))['form_data']
        forged = {**form, 'status': 'COMPLETE', 'transaction_code': 'FAKE01'}

        assert verify_signature(forged, SECRET)
        assert not provider.validate_webhook(forged)

    def test_webhook_requires_status_to_be_signed(self):
        payload = esewa_payload('abc', '60.00', secret_key=SECRET)
        fields = ['transaction_code', 'total_amount', 'transaction_uuid', 'product_code']
        payload['signed_field_names'] = ','.join(fields)
        payload['signature'] = sign_fields(payload, fields, SECRET)

        assert not EsewaProvider(SECRET_KEY=SECRET).validate_webhook(payload)

    @pytest.mark.parametrize('raw, expected', [
        ('60.00', Decimal('60.00')),
        ('1,000.0', Decimal('1000')),
        ('', None),
        ('sixty', None),
    ])
    def test_callback_amount(self, raw, expected):
        assert EsewaProvider().callback_amount({'total_amount': raw}) == expected
