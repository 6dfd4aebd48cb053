"""Invoicing provider abstraction layer.

An invoicing provider turns a finalized invoice into an external document
(accounting system, e-invoicing network, ...). Only its success/failure
contract matters to the lifecycle.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from billing_engine.core.config import settings
from billing_engine.core.exceptions import IssuanceError
from billing_engine.models.invoice import Invoice, InvoicingProvider


@dataclass
class IssueResult:
    """Result of issuing an invoice."""

    external_id: str | None = None


def invoice_payload(invoice: Invoice) -> dict[str, Any]:
    """JSON document sent to external providers."""
    return {
        "id": str(invoice.id),
        "tenant_id": str(invoice.tenant_id),
        "invoice_number": invoice.invoice_number,
        "customer_id": str(invoice.customer_id),
        "subscription_id": str(invoice.subscription_id) if invoice.subscription_id else None,
        "invoice_type": invoice.invoice_type,
        "currency": invoice.currency,
        "billing_period_start": invoice.billing_period_start.isoformat(),
        "billing_period_end": invoice.billing_period_end.isoformat(),
        "invoice_date": invoice.invoice_date.isoformat(),
        "due_date": invoice.due_date.isoformat() if invoice.due_date else None,
        "subtotal_cents": str(invoice.subtotal_cents),
        "total_cents": str(invoice.total_cents),
        "line_items": invoice.line_items,
    }


class InvoicingProviderBase(ABC):
    """Abstract base class for invoicing providers."""

    @property
    @abstractmethod
    def provider_name(self) -> InvoicingProvider:
        """Return the provider enum value."""
        pass  # pragma: no cover

    @abstractmethod
    def issue(self, invoice: Invoice) -> IssueResult:
        """Issue the invoice externally.

        Raises:
            IssuanceError: The provider refused the invoice, failed or timed out.
        """
        pass  # pragma: no cover


class HttpInvoicingProvider(InvoicingProviderBase):
    """Posts invoices as JSON to a configured HTTP endpoint."""

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
    ):
        self.url = url if url is not None else settings.invoicing_provider_url
        self.api_key = api_key if api_key is not None else settings.invoicing_provider_api_key
        self.timeout = (
            timeout if timeout is not None else settings.invoicing_provider_timeout_seconds
        )

    @property
    def provider_name(self) -> InvoicingProvider:
        return InvoicingProvider.HTTP

    def issue(self, invoice: Invoice) -> IssueResult:
        if not self.url:
            raise IssuanceError("Invoicing provider URL is not configured")

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.post(self.url, json=invoice_payload(invoice), headers=headers)
        except httpx.TimeoutException as exc:
            raise IssuanceError(f"Invoicing provider timed out after {self.timeout}s") from exc
        except httpx.HTTPError as exc:
            raise IssuanceError(f"Invoicing provider request failed: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            body = resp.text[:1000] if resp.text else ""
            raise IssuanceError(f"Invoicing provider returned {resp.status_code}: {body}")

        external_id = None
        try:
            data = resp.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and data.get("id") is not None:
            external_id = str(data["id"])
        return IssueResult(external_id=external_id)


def get_invoicing_provider(provider: InvoicingProvider) -> InvoicingProviderBase:
    """Factory function to get the provider that issues invoices automatically."""
    providers: dict[InvoicingProvider, type[InvoicingProviderBase]] = {
        InvoicingProvider.HTTP: HttpInvoicingProvider,
    }

    provider_class = providers.get(InvoicingProvider(provider))
    if not provider_class:
        raise ValueError(f"Unsupported invoicing provider: {provider}")

    return provider_class()
