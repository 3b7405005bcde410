from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation


class BasePaymentProvider(ABC):
    """
    Abstract base class for payment processors.

    A processor is an opaque external service: the engine hands the poster a
    checkout descriptor, and learns the outcome from a signed callback.
    Providers never touch the database.
    """
    name = None

    def __init__(self, **kwargs):
        """Initialize the payment provider with configuration."""
        self.config = kwargs

    @abstractmethod
    def charge(self, *, correlation_id, amount, **kwargs):
        """
        Build the checkout descriptor for a payment.

        Args:
            correlation_id: Opaque id the processor echoes back in its callback
            amount: Amount to charge (as Decimal)

        Returns:
            Dict with ``payment_url`` and ``form_data``
        """
        pass

    @abstractmethod
    def parse_callback(self, raw):
        """
        Decode the raw callback payload sent by the processor.

        Returns:
            Dict of callback fields; raises ValueError if it cannot be decoded
        """
        pass

    @abstractmethod
    def verify(self, *, correlation_id, amount):
        """
        Ask the processor whether the transaction really completed.

        Returns:
            bool: True if the processor reports the payment as complete
        """
        pass

    def validate_webhook(self, payload):
        """
        Validate the callback signature.

        Returns:
            bool: True if the payload was signed by the processor
        """
        return False

    def callback_fields(self, payload):
        """
        Pull (correlation_id, external_status, external_reference) from a
        decoded callback payload.
        """
        return payload.get('correlation_id'), payload.get('status'), payload.get('reference', '')

    def callback_amount(self, payload):
        """The amount the processor says it charged, as Decimal, or None."""
        try:
            return Decimal(str(payload.get('amount', '')))
        except InvalidOperation:
            return None
