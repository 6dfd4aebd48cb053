from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from billing_engine.core.config import settings
from billing_engine.routers import invoices, invoicing_config, plans, subscriptions

OPENAPI_TAGS = [
    {"name": "Plans", "description": "Create and read plans and their price components."},
    {"name": "Subscriptions", "description": "Manage subscriptions, cancellations and slots."},
    {"name": "Invoices", "description": "Read invoices and drive their lifecycle manually."},
    {"name": "Invoicing Config", "description": "Per-tenant invoicing settings."},
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "Subscription billing engine. Turns committed plans, billing periods and "
        "slot changes into invoices, and drives invoices from draft to issued."
    ),
    openapi_tags=OPENAPI_TAGS,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Total-Count"],
)

app.include_router(plans.router, prefix="/v1/plans", tags=["Plans"])
app.include_router(subscriptions.router, prefix="/v1/subscriptions", tags=["Subscriptions"])
app.include_router(invoices.router, prefix="/v1/invoices", tags=["Invoices"])
app.include_router(
    invoicing_config.router,
    prefix="/v1/invoicing_config",
    tags=["Invoicing Config"],
)


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "status": "running",
    }
