import base64
import json

from django.conf import settings

from accounts.identity import ActingUser
from accounts.models import CustomUser
from payments.signing import sign_fields

CALLBACK_SIGNED_FIELDS = 'transaction_code,status,total_amount,transaction_uuid,product_code,signed_field_names'


def make_user(email, role, **extra):
    return CustomUser.objects.create_user(
        email=email,
        password='S3cure-pass-123',
        first_name=email.split('@')[0].split('.')[0].title(),
        last_name='Tester',
        role=role,
        **extra,
    )


def actor(user):
    return ActingUser.from_user(user)


def esewa_payload(correlation_id, total_amount, status='COMPLETE', secret_key=None):
    payload = {
        'transaction_code': '000AWEO',
        'status': status,
        'total_amount': str(total_amount),
        'transaction_uuid': correlation_id,
        'product_code': settings.ESEWA['MERCHANT_CODE'],
        'signed_field_names': CALLBACK_SIGNED_FIELDS,
    }
    payload['signature'] = sign_fields(
        payload, CALLBACK_SIGNED_FIELDS.split(','), secret_key or settings.ESEWA['SECRET_KEY'],
    )
    return payload


def encode_callback(payload):
    """Encode a callback the way eSewa appends it to the success redirect."""
    return base64.b64encode(json.dumps(payload).encode('utf-8')).decode('ascii')


def esewa_callback(correlation_id, total_amount, status='COMPLETE', secret_key=None):
    return encode_callback(esewa_payload(correlation_id, total_amount, status, secret_key))
