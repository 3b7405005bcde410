import base64
import json
import logging
from decimal import Decimal, InvalidOperation

import requests
from django.conf import settings

from .base import BasePaymentProvider
from ..signing import sign_fields, signed_field_names, verify_signature

logger = logging.getLogger(__name__)

CHECKOUT_SIGNED_FIELDS = ('total_amount', 'transaction_uuid', 'product_code')
# eSewa signs these on every callback; the checkout form signs only a subset.
CALLBACK_SIGNED_FIELDS = ('transaction_code', 'status', 'total_amount', 'transaction_uuid', 'product_code')


class EsewaProvider(BasePaymentProvider):
    """eSewa ePay v2: browser form post out, base64 JSON callback back."""
    name = 'esewa'

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        config = {**settings.ESEWA, **kwargs}
        self.merchant_code = config['MERCHANT_CODE']
        self.secret_key = config['SECRET_KEY']
        self.form_url = config['FORM_URL']
        self.status_url = config['STATUS_URL']
        self.success_url = config['SUCCESS_URL']
        self.failure_url = config['FAILURE_URL']
        self.timeout = config.get('TIMEOUT', 10)

    def charge(self, *, correlation_id, amount, **kwargs):
        """
        Build the signed form the poster's browser submits to eSewa.

        Args:
            correlation_id: Sent to eSewa as ``transaction_uuid``
            amount: Bid amount (as Decimal); no tax or service charges apply

        Returns:
            Dict containing the form URL and its fields
        """
        total_amount = str(amount)
        form_data = {
            'amount': total_amount,
            'tax_amount': '0',
            'total_amount': total_amount,
            'transaction_uuid': correlation_id,
            'product_code': self.merchant_code,
            'product_service_charge': '0',
            'product_delivery_charge': '0',
            'success_url': self.success_url,
            'failure_url': self.failure_url,
            'signed_field_names': ",".join(CHECKOUT_SIGNED_FIELDS),
        }
        form_data['signature'] = sign_fields(form_data, CHECKOUT_SIGNED_FIELDS, self.secret_key)

        logger.info(f"Prepared eSewa checkout for transaction {correlation_id}, amount: {total_amount}")
        return {
            'status': 'success',
            'provider': self.name,
            'payment_url': self.form_url,
            'form_data': form_data,
        }

    def parse_callback(self, raw):
        """
        Decode the ``data`` query parameter eSewa appends to the redirect.

        Numbers are kept as the exact strings eSewa sent, since the signature
        covers their textual form.
        """
        if not raw:
            raise ValueError("Empty eSewa callback payload")
        if isinstance(raw, str):
            raw = raw.encode('ascii')
        decoded = base64.b64decode(raw, validate=False).decode('utf-8')
        payload = json.loads(decoded, parse_float=str, parse_int=str)
        if not isinstance(payload, dict):
            raise ValueError("eSewa callback payload is not an object")
        return payload

    def validate_webhook(self, payload):
        """
        A callback is genuine only if its signature covers every field in
        ``CALLBACK_SIGNED_FIELDS``. The checkout form signature is made with
        the same key over fewer fields, so it must not pass here.
        """
        missing = set(CALLBACK_SIGNED_FIELDS) - set(signed_field_names(payload))
        if missing:
            logger.warning(f"eSewa callback leaves {', '.join(sorted(missing))} unsigned")
            return False
        return verify_signature(payload, self.secret_key)

    def callback_fields(self, payload):
        return (
            payload.get('transaction_uuid'),
            payload.get('status'),
            payload.get('transaction_code') or payload.get('ref_id') or '',
        )

    def callback_amount(self, payload):
        # eSewa may format larger amounts with thousands separators, e.g. "1,000.0"
        raw = str(payload.get('total_amount', '')).replace(',', '')
        try:
            return Decimal(raw)
        except InvalidOperation:
            return None

    def verify(self, *, correlation_id, amount):
        params = {
            'product_code': self.merchant_code,
            'total_amount': str(amount),
            'transaction_uuid': correlation_id,
        }
        try:
            response = requests.get(self.status_url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"eSewa status check failed for {correlation_id}: {str(e)}")
            return False

        status_value = str(data.get('status', '')).upper()
        logger.info(f"eSewa status check for {correlation_id}: {status_value}")
        return status_value == 'COMPLETE'
