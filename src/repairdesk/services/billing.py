from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Iterable, Optional

from ..domain import (
    AppState,
    Commission,
    Invoice,
    InvoiceLineItem,
    InvoiceStatus,
    PaymentDetails,
    PaymentMethod,
    Product,
    ProductType,
    Quote,
    QuoteStatus,
    ServiceOrder,
)
from ..store import Store, get_by_id, new_id, remove_by_id, replace_by_id
from .errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_TAX_RATE = Decimal("0.18")
CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    taxes: Decimal
    total: Decimal

    @property
    def taxable_base(self) -> Decimal:
        return self.total - self.taxes


def calculate_totals(
    items: Iterable[InvoiceLineItem],
    discount,
    is_taxable: bool,
    tax_rate=DEFAULT_TAX_RATE,
) -> Totals:
    # A discount above the subtotal gives a negative base (and negative tax); kept as is.
    subtotal = sum((to_decimal(i.sell_price) * to_decimal(i.quantity) for i in items), Decimal("0"))
    base = subtotal - to_decimal(discount)
    taxes = base * to_decimal(tax_rate) if is_taxable else Decimal("0")
    return Totals(subtotal=_cents(subtotal), taxes=_cents(taxes), total=_cents(base + taxes))


def line_item(
    description: str,
    quantity,
    sell_price,
    *,
    purchase_price=0,
    type: ProductType = ProductType.MANUAL,
    product_id: Optional[str] = None,
    commission: Optional[Commission] = None,
) -> InvoiceLineItem:
    if not description.strip():
        raise ValidationError("Line item description cannot be empty.")
    qty = to_decimal(quantity)
    if qty <= 0:
        raise ValidationError("Line item quantity must be > 0.")
    price = to_decimal(sell_price)
    if price < 0:
        raise ValidationError("Sell price cannot be negative.")
    if type == ProductType.INVENTORY and not product_id:
        raise ValidationError("Inventory line items need a product_id.")
    return InvoiceLineItem(
        id=new_id("item"),
        description=description.strip(),
        quantity=qty,
        sell_price=price,
        purchase_price=to_decimal(purchase_price),
        type=type,
        product_id=product_id,
        commission=commission,
    )


def inventory_item(
    product: Product,
    quantity,
    *,
    price_level: int = 1,
    sell_price=None,
    commission: Optional[Commission] = None,
) -> InvoiceLineItem:
    """Line item priced from the catalog; ``sell_price`` overrides the chosen price level."""
    if price_level not in (1, 2):
        raise ValidationError("Price level must be 1 or 2.")
    if sell_price is None:
        sell_price = product.sell_price_1 if price_level == 1 else product.sell_price_2
    return line_item(
        product.name,
        quantity,
        sell_price,
        purchase_price=product.purchase_price,
        type=ProductType.INVENTORY,
        product_id=product.id,
        commission=commission,
    )


@dataclass
class InvoiceInput:
    customer_id: str
    items: list[InvoiceLineItem]
    discount: Decimal = Decimal("0")
    is_taxable: bool = True
    status: InvoiceStatus = InvoiceStatus.ISSUED
    date: Optional[datetime] = None
    service_order_id: Optional[str] = None
    service_order_description: Optional[str] = None


@dataclass
class QuoteInput:
    customer_id: str
    items: list[InvoiceLineItem]
    discount: Decimal = Decimal("0")
    is_taxable: bool = True
    status: QuoteStatus = QuoteStatus.DRAFT
    date: Optional[datetime] = None


def _check_document(state: AppState, customer_id: str, items: list[InvoiceLineItem], discount) -> None:
    get_by_id(state.customers, customer_id, "customer")
    if not items:
        raise ValidationError("At least one line item is required.")
    if to_decimal(discount) < 0:
        raise ValidationError("Discount cannot be negative.")
    for item in items:
        if item.type == ProductType.INVENTORY:
            get_by_id(state.products, item.product_id, "product")


def _next_invoice_number(invoices: Iterable[Invoice]) -> str:
    last = max((int(inv.invoice_number.split("-")[1]) for inv in invoices), default=0)
    return f"F-{last + 1:06d}"


def add_invoice(
    state: AppState,
    data: InvoiceInput,
    *,
    now: Optional[datetime] = None,
    tax_rate=DEFAULT_TAX_RATE,
) -> tuple[AppState, Invoice]:
    _check_document(state, data.customer_id, data.items, data.discount)
    if data.service_order_id is not None:
        get_by_id(state.service_orders, data.service_order_id, "service order")
    totals = calculate_totals(data.items, data.discount, data.is_taxable, tax_rate)
    invoice = Invoice(
        id=new_id("inv"),
        invoice_number=_next_invoice_number(state.invoices),
        customer_id=data.customer_id,
        date=data.date or now or datetime.now(),
        items=tuple(data.items),
        subtotal=totals.subtotal,
        discount=to_decimal(data.discount),
        taxes=totals.taxes,
        total=totals.total,
        is_taxable=data.is_taxable,
        status=data.status,
        service_order_id=data.service_order_id,
        service_order_description=data.service_order_description,
    )
    logger.info("Invoice %s created total=%s", invoice.invoice_number, invoice.total)
    return dataclasses.replace(state, invoices=state.invoices + (invoice,)), invoice


def update_invoice(
    state: AppState,
    invoice_id: str,
    data: InvoiceInput,
    *,
    tax_rate=DEFAULT_TAX_RATE,
) -> tuple[AppState, Invoice]:
    original = get_by_id(state.invoices, invoice_id, "invoice")
    if original.status in (InvoiceStatus.PAID, InvoiceStatus.VOID):
        raise ValidationError("Paid or voided invoices cannot be edited.")
    _check_document(state, data.customer_id, data.items, data.discount)
    totals = calculate_totals(data.items, data.discount, data.is_taxable, tax_rate)
    updated = dataclasses.replace(
        original,
        customer_id=data.customer_id,
        date=data.date or original.date,
        items=tuple(data.items),
        subtotal=totals.subtotal,
        discount=to_decimal(data.discount),
        taxes=totals.taxes,
        total=totals.total,
        is_taxable=data.is_taxable,
        status=data.status,
        service_order_id=data.service_order_id,
        service_order_description=data.service_order_description,
    )
    return dataclasses.replace(state, invoices=replace_by_id(state.invoices, updated)), updated


def build_payment(
    method: PaymentMethod,
    amount,
    *,
    payment_date: datetime,
    cash_received=None,
    bank_account_id: Optional[str] = None,
) -> PaymentDetails:
    amount = to_decimal(amount)
    if method == PaymentMethod.CASH:
        received = to_decimal(cash_received) if cash_received is not None else amount
        return PaymentDetails(
            method=method,
            amount=amount,
            payment_date=payment_date,
            cash_received=received,
            change_given=max(Decimal("0"), received - amount),
        )
    return PaymentDetails(
        method=method,
        amount=amount,
        payment_date=payment_date,
        bank_account_id=bank_account_id,
    )


def record_invoice_payment(
    state: AppState,
    invoice_id: str,
    payment: PaymentDetails,
) -> tuple[AppState, Invoice]:
    invoice = get_by_id(state.invoices, invoice_id, "invoice")
    if invoice.status == InvoiceStatus.VOID:
        raise ValidationError("Cannot record a payment on a voided invoice.")
    if payment.amount <= 0:
        raise ValidationError("Payment amount must be > 0.")
    if payment.bank_account_id is not None:
        get_by_id(state.bank_accounts, payment.bank_account_id, "bank account")

    payments = invoice.payments + (payment,)
    paid = sum((p.amount for p in payments), Decimal("0"))
    status = InvoiceStatus.PAID if paid >= invoice.total else InvoiceStatus.PARTIALLY_PAID
    updated = dataclasses.replace(invoice, payments=payments, paid_amount=paid, status=status)
    logger.info("Payment of %s on %s, status=%s", payment.amount, invoice.invoice_number, status.value)
    return dataclasses.replace(state, invoices=replace_by_id(state.invoices, updated)), updated


def add_quote(
    state: AppState,
    data: QuoteInput,
    *,
    actor_id: Optional[str] = None,
    now: Optional[datetime] = None,
    tax_rate=DEFAULT_TAX_RATE,
) -> tuple[AppState, Quote]:
    _check_document(state, data.customer_id, data.items, data.discount)
    number = state.last_quote_number + 1
    totals = calculate_totals(data.items, data.discount, data.is_taxable, tax_rate)
    quote = Quote(
        id=new_id("qt"),
        quote_number=f"COT-{number:06d}",
        customer_id=data.customer_id,
        date=data.date or now or datetime.now(),
        items=tuple(data.items),
        subtotal=totals.subtotal,
        discount=to_decimal(data.discount),
        taxes=totals.taxes,
        total=totals.total,
        is_taxable=data.is_taxable,
        status=data.status,
        created_by_id=actor_id or state.current_user_id,
    )
    new_state = dataclasses.replace(state, quotes=state.quotes + (quote,), last_quote_number=number)
    return new_state, quote


def update_quote(
    state: AppState,
    quote_id: str,
    data: QuoteInput,
    *,
    tax_rate=DEFAULT_TAX_RATE,
) -> tuple[AppState, Quote]:
    original = get_by_id(state.quotes, quote_id, "quote")
    _check_document(state, data.customer_id, data.items, data.discount)
    totals = calculate_totals(data.items, data.discount, data.is_taxable, tax_rate)
    updated = dataclasses.replace(
        original,
        customer_id=data.customer_id,
        date=data.date or original.date,
        items=tuple(data.items),
        subtotal=totals.subtotal,
        discount=to_decimal(data.discount),
        taxes=totals.taxes,
        total=totals.total,
        is_taxable=data.is_taxable,
        status=data.status,
    )
    return dataclasses.replace(state, quotes=replace_by_id(state.quotes, updated)), updated


def delete_quote(state: AppState, quote_id: str) -> AppState:
    get_by_id(state.quotes, quote_id, "quote")
    return dataclasses.replace(state, quotes=remove_by_id(state.quotes, quote_id))


def invoice_input_from_order(order: ServiceOrder, sell_price, *, is_taxable: bool = True) -> InvoiceInput:
    item = line_item(order.appliance_type, 1, sell_price)
    return InvoiceInput(
        customer_id=order.customer_id,
        items=[item],
        is_taxable=is_taxable,
        service_order_id=order.id,
        service_order_description=order.issue_description,
    )


def invoice_input_from_quote(quote: Quote) -> InvoiceInput:
    return InvoiceInput(
        customer_id=quote.customer_id,
        items=[dataclasses.replace(i, id=new_id("item")) for i in quote.items],
        discount=quote.discount,
        is_taxable=quote.is_taxable,
    )


@dataclass
class BillingService:
    """Store-bound facade over the invoice and quote transitions."""

    store: Store
    tax_rate: Decimal = DEFAULT_TAX_RATE
    clock: Callable[[], datetime] = field(default=datetime.now)

    def add_invoice(self, data: InvoiceInput) -> Invoice:
        return self.store.dispatch(add_invoice, data, now=self.clock(), tax_rate=self.tax_rate)

    def update_invoice(self, invoice_id: str, data: InvoiceInput) -> Invoice:
        return self.store.dispatch(update_invoice, invoice_id, data, tax_rate=self.tax_rate)

    def record_payment(
        self,
        invoice_id: str,
        method: PaymentMethod,
        amount,
        *,
        cash_received=None,
        bank_account_id: Optional[str] = None,
    ) -> Invoice:
        payment = build_payment(
            method,
            amount,
            payment_date=self.clock(),
            cash_received=cash_received,
            bank_account_id=bank_account_id,
        )
        return self.store.dispatch(record_invoice_payment, invoice_id, payment)

    def add_quote(self, data: QuoteInput, *, actor_id: Optional[str] = None) -> Quote:
        return self.store.dispatch(add_quote, data, actor_id=actor_id, now=self.clock(), tax_rate=self.tax_rate)

    def update_quote(self, quote_id: str, data: QuoteInput) -> Quote:
        return self.store.dispatch(update_quote, quote_id, data, tax_rate=self.tax_rate)

    def delete_quote(self, quote_id: str) -> None:
        self.store.dispatch(delete_quote, quote_id)

    def inventory_item(self, product_id: str, quantity, *, price_level: int = 1, sell_price=None) -> InvoiceLineItem:
        product = get_by_id(self.store.state.products, product_id, "product")
        return inventory_item(product, quantity, price_level=price_level, sell_price=sell_price)

    def invoice_from_order(self, order_id: str, sell_price) -> Invoice:
        order = get_by_id(self.store.state.service_orders, order_id, "service order")
        return self.add_invoice(invoice_input_from_order(order, sell_price))

    def invoice_from_quote(self, quote_id: str) -> Invoice:
        quote = get_by_id(self.store.state.quotes, quote_id, "quote")
        return self.add_invoice(invoice_input_from_quote(quote))
