"""Payment provider adapters."""

from tollgate.core.shared_models import PaymentProvider
from tollgate.platform.billing.providers.base import ProviderAdapter
from tollgate.platform.billing.providers.razorpay_adapter import RazorpayAdapter
from tollgate.platform.billing.providers.stripe_adapter import StripeAdapter


def get_adapter(provider: PaymentProvider) -> ProviderAdapter:
    """Build the adapter for a provider from settings."""
    if provider == PaymentProvider.STRIPE:
        return StripeAdapter()
    return RazorpayAdapter()


__all__ = ["ProviderAdapter", "RazorpayAdapter", "StripeAdapter", "get_adapter"]
