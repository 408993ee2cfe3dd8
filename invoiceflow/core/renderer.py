from pathlib import Path
from typing import Any, Mapping, Optional, Type, TypeVar
import logging
from jinja2 import Environment, FileSystemLoader, StrictUndefined
from pydantic import BaseModel, ValidationError
from invoiceflow.core.calculator import totals_for_invoice
from invoiceflow.core.errors import InvalidInput
from invoiceflow.schemas.business import Account, BusinessData, Issuer, Recipient
from invoiceflow.schemas.document import ItemRow, PartyBlock, PaymentBlock, RenderedInvoice, TotalsBlock
from invoiceflow.schemas.invoice import Invoice

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

LABELS = {
    "invoice": "Factura",
    "document": "DOCUMENTO",
    "number": "NÚMERO",
    "date": "FECHA",
    "concept": "DESCRIPCIÓN",
    "quantity": "CANT",
    "price": "PRECIO",
    "subtotal": "SUBTOTAL",
    "base": "BASE",
    "tax": "I.V.A.",
    "retention": "I.R.P.F.",
    "total": "TOTAL",
    "due": "Vencimiento",
    "account": "Cuenta Bancaria",
}

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=True,
    undefined=StrictUndefined,
    keep_trailing_newline=True,
)

ModelT = TypeVar("ModelT", bound=BaseModel)

def format_money(value: float, currency: str = "€") -> str:
    return f"{value:.2f}{currency}"

def format_deduction(value: float, currency: str = "€") -> str:
    # Shown as subtracted from the total; a credit note deducts a negative amount
    if value == 0:
        return "-" + format_money(0.0, currency)
    return format_money(-value, currency)

def format_quantity(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)

def _coerce(model: Type[ModelT], value: Any, label: str) -> ModelT:
    if value is None:
        raise InvalidInput(f"{label} is required")
    if isinstance(value, model):
        return value
    if isinstance(value, Mapping):
        try:
            return model.model_validate(value)
        except ValidationError as e:
            first = e.errors()[0]
            where = ".".join(str(part) for part in first.get("loc", ()))
            raise InvalidInput(f"Invalid {label}: {where or label}: {first.get('msg', 'invalid value')}") from e
    raise InvalidInput(f"Invalid {label}: expected an object")

def _issuer_block(issuer: Issuer) -> PartyBlock:
    locality = " ".join(part for part in (issuer.postal_code, issuer.city) if part)
    return PartyBlock(name=issuer.name, tax_id=issuer.tax_id, address=issuer.address, locality=locality)

def _recipient_block(recipient: Optional[Recipient]) -> PartyBlock:
    # Historical invoices may point at deleted recipients
    if recipient is None:
        return PartyBlock()
    return PartyBlock(name=recipient.name, tax_id=recipient.tax_id, address=recipient.address)

def _payment_block(due_date: str, account: Optional[Account]) -> PaymentBlock:
    if account is None:
        return PaymentBlock(due_date=due_date)
    return PaymentBlock(due_date=due_date, iban=account.iban, swift=account.swift or "")

def render_invoice(invoice: Any, business_data: Any, currency: str = "€") -> RenderedInvoice:
    """
    Build the printable invoice document from an invoice and the business data snapshot.

    Accepts models or plain JSON mappings. Missing recipients or accounts render as
    empty fields; only a missing or malformed invoice/snapshot raises InvalidInput.
    The output is a pure function of the inputs.
    """
    invoice = _coerce(Invoice, invoice, "invoice")
    data = _coerce(BusinessData, business_data, "business data")

    recipient = data.find_recipient(invoice.recipient_id)
    account = data.find_account(invoice.account_id)
    if recipient is None and invoice.recipient_id:
        logger.debug(f"Recipient {invoice.recipient_id} not found; rendering empty recipient block")
    if account is None and invoice.account_id:
        logger.debug(f"Account {invoice.account_id} not found; rendering empty payment account")

    amounts = totals_for_invoice(invoice, data.issuer)

    rows = [
        ItemRow(
            concept=item.concept,
            quantity=format_quantity(item.quantity),
            price=format_money(item.price, currency),
            subtotal=format_money(item.line_subtotal, currency)
        )
        for item in invoice.items
    ]
    totals = TotalsBlock(
        subtotal=format_money(amounts.subtotal, currency),
        tax=format_money(amounts.tax, currency),
        retention=format_deduction(amounts.retention, currency),
        total=format_money(amounts.total, currency)
    )

    title = f"{LABELS['invoice']} {invoice.number}"
    issuer_block = _issuer_block(data.issuer)
    recipient_block = _recipient_block(recipient)
    payment = _payment_block(invoice.date, account)

    html = _env.get_template("invoice.html").render(
        lang="es",
        title=title,
        labels=LABELS,
        number=invoice.number,
        date=invoice.date,
        issuer=issuer_block,
        recipient=recipient_block,
        rows=rows,
        totals=totals,
        payment=payment,
    )

    return RenderedInvoice(
        title=title,
        number=invoice.number,
        date=invoice.date,
        issuer=issuer_block,
        recipient=recipient_block,
        rows=rows,
        totals=totals,
        payment=payment,
        amounts=amounts,
        html=html
    )
