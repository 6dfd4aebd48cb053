from billing_engine.repositories.invoice_repository import InvoiceRepository
from billing_engine.repositories.invoicing_config_repository import InvoicingConfigRepository
from billing_engine.repositories.plan_repository import PlanRepository
from billing_engine.repositories.slot_transaction_repository import SlotTransactionRepository
from billing_engine.repositories.subscription_repository import SubscriptionRepository

__all__ = [
    "InvoiceRepository",
    "InvoicingConfigRepository",
    "PlanRepository",
    "SlotTransactionRepository",
    "SubscriptionRepository",
]
