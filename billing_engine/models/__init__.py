from billing_engine.models.invoice import (
    Invoice,
    InvoiceExternalStatus,
    InvoiceStatus,
    InvoiceType,
    InvoicingProvider,
)
from billing_engine.models.invoicing_config import InvoicingConfig
from billing_engine.models.plan import BillingPeriod, FeeType, Plan, PriceComponent
from billing_engine.models.slot_transaction import SlotTransaction
from billing_engine.models.subscription import (
    CancellationEffect,
    Subscription,
    SubscriptionComponent,
    SubscriptionStatus,
)

__all__ = [
    "BillingPeriod",
    "CancellationEffect",
    "FeeType",
    "Invoice",
    "InvoiceExternalStatus",
    "InvoiceStatus",
    "InvoiceType",
    "InvoicingConfig",
    "InvoicingProvider",
    "Plan",
    "PriceComponent",
    "SlotTransaction",
    "Subscription",
    "SubscriptionComponent",
    "SubscriptionStatus",
]
