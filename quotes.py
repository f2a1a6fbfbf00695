"""Quote authoring workflow, status lifecycle and quote storage.

The authoring session owns the mutable inputs while an installer builds a
quote and reprices from scratch on every read. Submitting turns the session
into a Quote record. Catalogue and store are passed in, never global.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol
from uuid import uuid4

import pandas as pd

from constants import QUOTE_REFERENCE_PREFIX
from equipment import ProductCatalogue, line_item_from_product, validate_system, with_installation_line
from exceptions import QuoteLockedError, QuoteNotFoundError, QuoteValidationError
from models import (
    CustomerProfile,
    LineItemKind,
    PricedQuote,
    Quote,
    QuoteLineItem,
    QuoteStatus,
    TariffInfo,
)
from pricing import compute_quote_pricing, validate_tariff
from settings import get_settings

logger = logging.getLogger(__name__)

# Allowed status changes: target -> statuses it can be reached from
_TRANSITIONS = {
    QuoteStatus.SENT: {QuoteStatus.DRAFT},
    QuoteStatus.VIEWED: {QuoteStatus.SENT},
    QuoteStatus.ACCEPTED: {QuoteStatus.SENT, QuoteStatus.VIEWED},
    QuoteStatus.REJECTED: {QuoteStatus.SENT, QuoteStatus.VIEWED},
    QuoteStatus.EXPIRED: {QuoteStatus.SENT, QuoteStatus.VIEWED},
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def default_tariff() -> TariffInfo:
    settings = get_settings()
    return TariffInfo(
        import_rate=settings.default_import_rate,
        export_rate=settings.default_export_rate,
        standing_charge=settings.default_standing_charge,
        has_time_of_use=False,
        peak_rate=settings.default_peak_rate,
        off_peak_rate=settings.default_off_peak_rate,
        peak_hours_start=settings.default_peak_hours_start,
        peak_hours_end=settings.default_peak_hours_end,
    )


def generate_reference(now: Optional[datetime] = None) -> str:
    """Quote reference like QT-2026-4821 (year plus last 4 digits of epoch millis)."""
    now = now or _utcnow()
    millis = str(int(now.timestamp() * 1000))
    return f"{QUOTE_REFERENCE_PREFIX}-{now.year}-{millis[-4:]}"


def pricing_fields(pricing: PricedQuote) -> dict:
    """The PricedQuote values stored on a Quote record."""
    return {
        "subtotal": pricing.subtotal,
        "vat_rate": pricing.vat_rate,
        "vat_amount": pricing.vat_amount,
        "total": pricing.total,
        "deposit": pricing.deposit,
        "margin": pricing.margin,
        "margin_percentage": pricing.margin_percentage,
        "roi_projections": list(pricing.roi_projections),
        "payback_years": pricing.payback_years,
        "annual_savings": pricing.annual_savings,
    }


def validate_quote_inputs(customer: CustomerProfile, installation_cost: float) -> tuple[list, list]:
    errors = []
    warnings = []

    if installation_cost < 0:
        errors.append("Installation cost cannot be negative")
    if not customer.name.strip():
        errors.append("Customer name is required")
    if customer.existing_solar and not customer.solar_capacity_kwp:
        warnings.append("Existing solar is ticked but no system size is given; export savings are excluded")
    if customer.has_ev and not customer.ev_mileage_per_year:
        warnings.append("EV is ticked but no annual mileage is given; EV savings are excluded")

    return errors, warnings


class QuoteRepository(Protocol):
    def add(self, quote: Quote) -> Quote:
        ...

    def get(self, quote_id: str) -> Quote:
        ...

    def update(self, quote_id: str, **changes) -> Quote:
        ...

    def delete(self, quote_id: str) -> None:
        ...

    def list(self, company_id: Optional[str] = None, status: Optional[QuoteStatus] = None) -> list:
        ...


class InMemoryQuoteStore:
    """Quote storage held in a dict, for the dashboard session and tests."""

    def __init__(self):
        self._quotes = {}

    def add(self, quote: Quote) -> Quote:
        now = _utcnow()
        stored = quote.model_copy(update={
            "id": f"quote-{uuid4().hex[:8]}",
            "created_at": quote.created_at or now,
            "updated_at": now,
        })
        self._quotes[stored.id] = stored
        return stored

    def get(self, quote_id: str) -> Quote:
        try:
            return self._quotes[quote_id]
        except KeyError:
            raise QuoteNotFoundError(quote_id) from None

    def update(self, quote_id: str, **changes) -> Quote:
        current = self.get(quote_id)
        changes.setdefault("updated_at", _utcnow())
        updated = current.model_copy(update=changes)
        self._quotes[quote_id] = updated
        return updated

    def delete(self, quote_id: str) -> None:
        self.get(quote_id)
        del self._quotes[quote_id]

    def list(self, company_id: Optional[str] = None, status: Optional[QuoteStatus] = None) -> list:
        quotes = list(self._quotes.values())
        if company_id is not None:
            quotes = [q for q in quotes if q.company_id == company_id]
        if status is not None:
            quotes = [q for q in quotes if q.status == QuoteStatus(status)]
        return sorted(quotes, key=lambda q: q.created_at or datetime.min.replace(tzinfo=timezone.utc),
                      reverse=True)

    def __len__(self):
        return len(self._quotes)


class QuoteAuthoringSession:
    """Inputs for a quote being built, with pricing derived on demand."""

    def __init__(
        self,
        catalogue: ProductCatalogue,
        customer: Optional[CustomerProfile] = None,
        tariff: Optional[TariffInfo] = None,
        installation_cost: Optional[float] = None,
        repository: Optional[QuoteRepository] = None
    ):
        self.catalogue = catalogue
        self.repository = repository
        self.customer = customer or CustomerProfile()
        self.tariff = tariff or default_tariff()
        if installation_cost is None:
            installation_cost = get_settings().default_installation_cost
        self.installation_cost = installation_cost
        self.line_items = []

    @property
    def pricing(self) -> PricedQuote:
        return compute_quote_pricing(
            self.line_items, self.installation_cost, self.tariff, self.customer, self.catalogue
        )

    def set_customer(self, customer: CustomerProfile) -> None:
        self.customer = customer

    def set_tariff(self, tariff: TariffInfo) -> None:
        self.tariff = tariff

    def set_installation_cost(self, installation_cost: float) -> None:
        self.installation_cost = installation_cost

    def add_product(self, kind: LineItemKind, product_id: str) -> QuoteLineItem:
        product = self.catalogue.get_product(kind, product_id)
        item = line_item_from_product(kind, product)
        self.line_items = [*self.line_items, item]
        return item

    def add_manual_item(
        self,
        kind: LineItemKind,
        description: str,
        quantity: int = 1,
        unit_price: float = 0,
        cost_price: float = 0
    ) -> QuoteLineItem:
        item = QuoteLineItem(
            kind=LineItemKind(kind),
            description=description,
            quantity=quantity,
            unit_price=unit_price,
            cost_price=cost_price,
        )
        self.line_items = [*self.line_items, item]
        return item

    def _find(self, item_id: str) -> QuoteLineItem:
        for item in self.line_items:
            if item.id == item_id:
                return item
        raise KeyError(f"No line item with id {item_id}")

    def update_line_item(self, item_id: str, **changes) -> QuoteLineItem:
        current = self._find(item_id)
        # Re-validate so quantity/price constraints still hold
        updated = QuoteLineItem.model_validate({**current.model_dump(), **changes, "id": item_id})
        self.line_items = [updated if item.id == item_id else item for item in self.line_items]
        return updated

    def remove_line_item(self, item_id: str) -> None:
        self._find(item_id)
        self.line_items = [item for item in self.line_items if item.id != item_id]

    def validate(self) -> tuple[list, list]:
        errors, warnings = validate_quote_inputs(self.customer, self.installation_cost)
        for check_errors, check_warnings in (
            validate_tariff(self.tariff),
            validate_system(self.line_items, self.catalogue),
        ):
            errors.extend(check_errors)
            warnings.extend(check_warnings)
        return errors, warnings

    def _final_line_items(self) -> list:
        # Installation is priced from installation_cost, so manual installation lines are replaced
        product_lines = [item for item in self.line_items if item.kind != LineItemKind.INSTALLATION]
        return with_installation_line(product_lines, self.installation_cost)

    def submit(
        self,
        installer_id: str,
        installer_name: str,
        company_id: str,
        status: QuoteStatus = QuoteStatus.DRAFT,
        notes: str = "",
        now: Optional[datetime] = None
    ) -> Quote:
        """Turn the session into a Quote, stored if the session has a repository.

        Raises:
            QuoteValidationError: if the inputs fail validation
        """
        status = QuoteStatus(status)
        if status not in (QuoteStatus.DRAFT, QuoteStatus.SENT):
            raise QuoteValidationError([f"New quotes can only be saved as draft or sent, not {status.value}"])

        errors, warnings = self.validate()
        if errors:
            raise QuoteValidationError(errors)
        for warning in warnings:
            logger.warning("Quote for %s: %s", self.customer.name, warning)

        now = now or _utcnow()
        pricing = self.pricing
        quote = Quote(
            company_id=company_id,
            installer_id=installer_id,
            installer_name=installer_name,
            reference=generate_reference(now),
            status=status,
            customer=self.customer,
            tariff=self.tariff,
            line_items=self._final_line_items(),
            notes=notes,
            valid_until=now + timedelta(days=get_settings().quote_validity_days),
            created_at=now,
            updated_at=now,
            sent_at=now if status == QuoteStatus.SENT else None,
            **pricing_fields(pricing),
        )

        if self.repository is not None:
            quote = self.repository.add(quote)

        logger.info("Created quote %s (%s) total £%.0f, annual savings £%d",
                    quote.reference, status.value, quote.total, quote.annual_savings)
        return quote


def ensure_editable(quote: Quote) -> None:
    if quote.status != QuoteStatus.DRAFT:
        raise QuoteLockedError(
            f"Quote {quote.reference} is {quote.status.value}; only draft quotes can be edited"
        )


def installation_cost_of(quote: Quote) -> float:
    return sum(item.line_total for item in quote.line_items if item.kind == LineItemKind.INSTALLATION)


def reprice_quote(quote: Quote, catalogue: ProductCatalogue, now: Optional[datetime] = None) -> Quote:
    """Rebuild a draft quote's pricing from its stored inputs."""
    ensure_editable(quote)
    pricing = compute_quote_pricing(
        quote.line_items, installation_cost_of(quote), quote.tariff, quote.customer, catalogue
    )
    return quote.model_copy(update={**pricing_fields(pricing), "updated_at": now or _utcnow()})


def _transition(quote: Quote, target: QuoteStatus, now: Optional[datetime], stamp: Optional[str] = None) -> Quote:
    if quote.status not in _TRANSITIONS[target]:
        raise QuoteLockedError(
            f"Quote {quote.reference} can't move from {quote.status.value} to {target.value}"
        )
    now = now or _utcnow()
    logger.info("Quote %s: %s -> %s", quote.reference, quote.status.value, target.value)
    changes = {"status": target, "updated_at": now}
    if stamp:
        changes[stamp] = now
    return quote.model_copy(update=changes)


def mark_sent(quote: Quote, now: Optional[datetime] = None) -> Quote:
    return _transition(quote, QuoteStatus.SENT, now, stamp="sent_at")


def mark_viewed(quote: Quote, now: Optional[datetime] = None) -> Quote:
    return _transition(quote, QuoteStatus.VIEWED, now, stamp="viewed_at")


def mark_accepted(quote: Quote, now: Optional[datetime] = None) -> Quote:
    return _transition(quote, QuoteStatus.ACCEPTED, now, stamp="accepted_at")


def mark_rejected(quote: Quote, now: Optional[datetime] = None) -> Quote:
    return _transition(quote, QuoteStatus.REJECTED, now)


def expire_if_due(quote: Quote, now: Optional[datetime] = None) -> Quote:
    """Expire an open quote once its validity date has passed, else return it unchanged."""
    now = now or _utcnow()
    if quote.status in _TRANSITIONS[QuoteStatus.EXPIRED] and now > quote.valid_until:
        return _transition(quote, QuoteStatus.EXPIRED, now)
    return quote


def summarise_quotes(quotes: list) -> dict:
    """Dashboard statistics over a set of quotes."""
    if not quotes:
        return {
            "total_quotes": 0,
            "accepted_quotes": 0,
            "pending_quotes": 0,
            "draft_quotes": 0,
            "total_revenue": 0.0,
            "total_margin": 0.0,
            "average_quote_value": 0.0,
            "conversion_rate": 0.0,
            "quotes_by_status": {},
            "monthly_quotes": [],
        }

    df = pd.DataFrame([
        {
            "status": q.status.value,
            "total": q.total,
            "margin": q.margin,
            "created_at": q.created_at,
        }
        for q in quotes
    ])

    accepted = df[df["status"] == QuoteStatus.ACCEPTED.value]
    pending = df["status"].isin([QuoteStatus.SENT.value, QuoteStatus.VIEWED.value])

    df["month"] = pd.to_datetime(df["created_at"], utc=True).dt.strftime("%Y-%m")
    monthly = (
        df.dropna(subset=["month"])
        .groupby("month")
        .agg(quote_count=("total", "size"), value=("total", "sum"))
        .sort_index()
        .reset_index()
    )

    return {
        "total_quotes": len(df),
        "accepted_quotes": len(accepted),
        "pending_quotes": int(pending.sum()),
        "draft_quotes": int((df["status"] == QuoteStatus.DRAFT.value).sum()),
        "total_revenue": float(accepted["total"].sum()),
        "total_margin": float(accepted["margin"].sum()),
        "average_quote_value": float(df["total"].mean()),
        "conversion_rate": len(accepted) / len(df) * 100,
        "quotes_by_status": {k: int(v) for k, v in df["status"].value_counts().items()},
        "monthly_quotes": [
            {"month": row.month, "count": int(row.quote_count), "value": float(row.value)}
            for row in monthly.itertuples(index=False)
        ],
    }
