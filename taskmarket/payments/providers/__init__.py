from .base import BasePaymentProvider
from .esewa import EsewaProvider

PROVIDERS = {
    EsewaProvider.name: EsewaProvider,
}


def get_payment_provider(provider_name: str, **kwargs) -> BasePaymentProvider:
    """
    Build the processor client registered under ``provider_name``.

    Extra keyword arguments override the provider's settings, e.g.
    ``get_payment_provider('esewa', SECRET_KEY=...)``.
    """
    try:
        provider_class = PROVIDERS[provider_name]
    except KeyError:
        raise ValueError(f"No payment provider registered as '{provider_name}'")
    return provider_class(**kwargs)
