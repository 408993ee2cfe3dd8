from pydantic import BaseModel
from typing import List
from invoiceflow.schemas.invoice import InvoiceTotals

# Display-ready invoice content. The HTML and the ReportLab layout are both
# built from these blocks, so any field added here must appear in both.

class PartyBlock(BaseModel):
    name: str = ""
    tax_id: str = ""
    address: str = ""
    locality: str = ""

class ItemRow(BaseModel):
    concept: str
    quantity: str
    price: str
    subtotal: str

class TotalsBlock(BaseModel):
    subtotal: str
    tax: str
    retention: str
    total: str

class PaymentBlock(BaseModel):
    due_date: str = ""
    iban: str = ""
    swift: str = ""

class RenderedInvoice(BaseModel):
    title: str
    number: str
    date: str
    issuer: PartyBlock
    recipient: PartyBlock
    rows: List[ItemRow] = []
    totals: TotalsBlock
    payment: PaymentBlock
    amounts: InvoiceTotals
    html: str
