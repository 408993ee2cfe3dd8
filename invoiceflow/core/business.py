"""
Operations over a user's BusinessData document.

Every mutation follows the same contract: read the whole document from the
store, change it in memory, write the whole document back. The store has no
merge capability, so nothing here ever sends a partial document.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Mapping, Optional
from uuid import uuid4
import logging
import re
from pydantic import ValidationError
from invoiceflow.core.calculator import totals_for_invoice
from invoiceflow.core.converter import PdfConverter
from invoiceflow.core.errors import Conflict, InvalidInput, NotFound
from invoiceflow.core.renderer import render_invoice
from invoiceflow.db.store import BusinessDataStore, UserRecord
from invoiceflow.schemas.business import Account, BusinessData, BusinessSummary, Issuer, Recipient, Template
from invoiceflow.schemas.invoice import Invoice, LineItem

logger = logging.getLogger(__name__)

DEFAULT_CONCEPT = "Servicios Profesionales"

@dataclass
class GeneratedInvoice:
    filename: str
    pdf: bytes
    invoice: Invoice
    data: Optional[BusinessData] = None

def seed_business_data(user: UserRecord) -> BusinessData:
    return BusinessData(issuer=Issuer(name=user.display_name or "New User", email=user.email))

def load_business_data(store: BusinessDataStore, user: UserRecord) -> BusinessData:
    """Fetch the user's document, seeding and persisting a default one on first access."""
    data = store.get(user.id)
    if data is None:
        data = seed_business_data(user)
        store.put(user.id, data)
        logger.info(f"Seeded business data for user {user.id}")
    return data

def save_business_data(store: BusinessDataStore, user_id: str, data: BusinessData) -> BusinessData:
    store.put(user_id, data)
    logger.info(
        f"Business data saved for user {user_id}: "
        f"{len(data.recipients)} recipients, {len(data.templates)} templates, {len(data.invoices)} invoices"
    )
    return data

def _read_modify_write(store: BusinessDataStore, user: UserRecord, change: Callable[[BusinessData], None]) -> BusinessData:
    # The store hands out a freshly decoded document, so changing it in place is safe
    data = load_business_data(store, user)
    change(data)
    return save_business_data(store, user.id, data)

def _validate(model, payload: Mapping[str, Any], label: str):
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        first = e.errors()[0]
        where = ".".join(str(part) for part in first.get("loc", ()))
        raise InvalidInput(f"Invalid {label}: {where or label}: {first.get('msg', 'invalid value')}") from e

def new_invoice_id() -> str:
    return f"inv_{uuid4().hex}"

def update_issuer(store: BusinessDataStore, user: UserRecord, issuer: Issuer) -> BusinessData:
    def change(data: BusinessData):
        data.issuer = issuer
    return _read_modify_write(store, user, change)

def add_recipient(store: BusinessDataStore, user: UserRecord, payload: Mapping[str, Any]) -> BusinessData:
    recipient = _validate(Recipient, {**payload, "id": str(uuid4())}, "recipient")
    def change(data: BusinessData):
        data.recipients.append(recipient)
    return _read_modify_write(store, user, change)

def toggle_recipient_favorite(store: BusinessDataStore, user: UserRecord, recipient_id: str) -> BusinessData:
    def change(data: BusinessData):
        recipient = data.find_recipient(recipient_id)
        if recipient is None:
            raise NotFound(f"Recipient {recipient_id} not found")
        recipient.is_favorite = not recipient.is_favorite
    return _read_modify_write(store, user, change)

def add_template(store: BusinessDataStore, user: UserRecord, payload: Mapping[str, Any]) -> BusinessData:
    template = _validate(Template, {**payload, "id": str(uuid4())}, "template")
    def change(data: BusinessData):
        data.templates.append(template)
    return _read_modify_write(store, user, change)

def add_account(store: BusinessDataStore, user: UserRecord, payload: Mapping[str, Any]) -> BusinessData:
    account = _validate(Account, {"id": str(uuid4()), **payload}, "account")
    def change(data: BusinessData):
        if data.find_account(account.id) is not None:
            raise Conflict(f"Account {account.id} already exists")
        data.issuer.accounts.append(account)
    return _read_modify_write(store, user, change)

def delete_account(store: BusinessDataStore, user: UserRecord, account_id: str) -> BusinessData:
    # Invoices and templates keep their accountId; rendering tolerates the dangling reference
    def change(data: BusinessData):
        if data.find_account(account_id) is None:
            raise NotFound(f"Account {account_id} not found")
        data.issuer.accounts = [a for a in data.issuer.accounts if a.id != account_id]
    return _read_modify_write(store, user, change)

def set_next_invoice_number(store: BusinessDataStore, user: UserRecord, last_number: int) -> BusinessData:
    def change(data: BusinessData):
        data.issuer.next_invoice_number = last_number + 1
    return _read_modify_write(store, user, change)

def upsert_invoice(store: BusinessDataStore, user: UserRecord, invoice: Invoice) -> BusinessData:
    """Replace the invoice with the same id, or append it."""
    if not invoice.id:
        invoice = invoice.model_copy(update={"id": new_invoice_id()})

    def change(data: BusinessData):
        for index, existing in enumerate(data.invoices):
            if existing.id == invoice.id:
                data.invoices[index] = invoice
                return
        data.invoices.append(invoice)
    return _read_modify_write(store, user, change)

def draft_invoice(
    data: BusinessData,
    template_id: Optional[str] = None,
    recipient_id: Optional[str] = None,
    account_id: Optional[str] = None,
    number: Optional[str] = None,
    concept: Optional[str] = None,
    price: Optional[float] = None,
    default_tax_rate: float = 21.0,
    today: Optional[date] = None,
) -> Invoice:
    """
    Pre-fill a new invoice from a template or from a few quick fields.

    Explicit arguments win over the template, and the template wins over the
    first recipient/account on file. Nothing is persisted.
    """
    template = None
    if template_id:
        template = data.find_template(template_id)
        if template is None:
            raise NotFound(f"Template {template_id} not found")

    if template is not None:
        recipient_id = recipient_id or template.recipient_id
        account_id = account_id or template.account_id
    if not recipient_id and data.recipients:
        recipient_id = data.recipients[0].id
    if not account_id and data.issuer.accounts:
        account_id = data.issuer.accounts[0].id

    if template is not None and template.items and concept is None and price is None:
        items = [item.model_copy(deep=True) for item in template.items]
    else:
        items = [LineItem(
            concept=concept or (template.concept if template and template.concept else DEFAULT_CONCEPT),
            quantity=1,
            price=price if price is not None else (template.price if template and template.price is not None else 0.0),
            tax=default_tax_rate
        )]

    if not number:
        if data.issuer.next_invoice_number is not None:
            number = str(data.issuer.next_invoice_number)
        else:
            number = "INV-" + str(int(datetime.now().timestamp() * 1000))[-6:]

    return Invoice(
        number=number,
        date=(today or date.today()).isoformat(),
        recipient_id=recipient_id,
        account_id=account_id,
        items=items
    )

def invoice_filename(number: str, prefix: str = "Factura", extension: str = "pdf") -> str:
    safe = re.sub(r"[^A-Za-z0-9._-]+", "_", number or "").strip("_.")
    return f"{prefix}_{safe or 'invoice'}.{extension}"

def generate_invoice(
    store: BusinessDataStore,
    user: UserRecord,
    invoice: Invoice,
    converter: PdfConverter,
    snapshot: Optional[BusinessData] = None,
    persist: bool = True,
    currency: str = "€",
    filename_prefix: str = "Factura",
) -> GeneratedInvoice:
    """
    Render, convert, and only then record the invoice.

    A conversion failure propagates before anything is written, so the stored
    document never references an invoice whose PDF was not produced.
    """
    data = snapshot if snapshot is not None else load_business_data(store, user)
    document = render_invoice(invoice, data, currency)

    logger.info(f"PDF generation STARTED for user {user.id}, invoice {invoice.number}")
    pdf = converter.convert(document)

    if not invoice.id:
        invoice = invoice.model_copy(update={"id": new_invoice_id()})
    saved = upsert_invoice(store, user, invoice) if persist else None

    logger.info(f"PDF generation COMPLETED for user {user.id}, invoice {invoice.number} ({len(pdf)} bytes)")
    return GeneratedInvoice(
        filename=invoice_filename(invoice.number, filename_prefix),
        pdf=pdf,
        invoice=invoice,
        data=saved
    )

def summarize(data: BusinessData) -> BusinessSummary:
    invoiced = sum(totals_for_invoice(inv, data.issuer).total for inv in data.invoices)
    return BusinessSummary(
        issuer_name=data.issuer.name,
        recipients=len(data.recipients),
        favorite_recipients=sum(1 for r in data.recipients if r.is_favorite),
        templates=len(data.templates),
        accounts=len(data.issuer.accounts),
        invoices=len(data.invoices),
        invoiced_total=round(invoiced, 2)
    )
