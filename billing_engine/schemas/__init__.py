from billing_engine.schemas.invoice import (
    InvoiceCreate,
    InvoiceLine,
    InvoiceResponse,
    LinePeriod,
)
from billing_engine.schemas.invoicing_config import (
    InvoicingConfigResponse,
    InvoicingConfigUpdate,
)
from billing_engine.schemas.plan import (
    PlanCreate,
    PlanResponse,
    PriceComponentCreate,
    PriceComponentResponse,
)
from billing_engine.schemas.subscription import (
    ActiveSlotsResponse,
    ApplySlotsDeltaRequest,
    SubscriptionCancel,
    SubscriptionComponentResponse,
    SubscriptionCreate,
    SubscriptionParameter,
    SubscriptionResponse,
)

__all__ = [
    "ActiveSlotsResponse",
    "ApplySlotsDeltaRequest",
    "InvoiceCreate",
    "InvoiceLine",
    "InvoiceResponse",
    "InvoicingConfigResponse",
    "InvoicingConfigUpdate",
    "LinePeriod",
    "PlanCreate",
    "PlanResponse",
    "PriceComponentCreate",
    "PriceComponentResponse",
    "SubscriptionCancel",
    "SubscriptionComponentResponse",
    "SubscriptionCreate",
    "SubscriptionParameter",
    "SubscriptionResponse",
]
