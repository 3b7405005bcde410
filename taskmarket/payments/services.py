import logging

from django.conf import settings

from .providers import get_payment_provider

logger = logging.getLogger(__name__)


class PaymentService:
    """
    Provider adapter. This class does NOT create or update Payment records.
    It only calls the configured payment provider.
    """
    def __init__(self, provider_name=None):
        self.default_provider_name = provider_name or settings.DEFAULT_PAYMENT_PROVIDER

    def _get_provider(self, provider_name=None):
        name = provider_name or self.default_provider_name
        if not name:
            raise ValueError("provider_name is required (no default configured).")
        return get_payment_provider(name), name

    def init_charge(self, *, correlation_id, amount, provider_name=None):
        provider, _ = self._get_provider(provider_name)
        return provider.charge(correlation_id=correlation_id, amount=amount)

    def parse_callback(self, raw, provider_name=None):
        provider, _ = self._get_provider(provider_name)
        return provider.parse_callback(raw)

    def callback_fields(self, payload, provider_name=None):
        provider, _ = self._get_provider(provider_name)
        return provider.callback_fields(payload)

    def callback_amount(self, payload, provider_name=None):
        provider, _ = self._get_provider(provider_name)
        return provider.callback_amount(payload)

    def validate_callback(self, payload, provider_name=None):
        provider, _ = self._get_provider(provider_name)
        return provider.validate_webhook(payload)

    def verify_payment(self, *, correlation_id, amount, provider_name=None):
        provider, _ = self._get_provider(provider_name)
        return provider.verify(correlation_id=correlation_id, amount=amount)
