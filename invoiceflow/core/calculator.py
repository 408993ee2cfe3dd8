from typing import Iterable, Optional
from invoiceflow.schemas.invoice import Invoice, InvoiceTotals, LineItem
from invoiceflow.schemas.business import Issuer

def calculate_totals(items: Iterable[LineItem], retention_rate: Optional[float] = 0.0) -> InvoiceTotals:
    """
    Subtotal, tax, retention and total for a list of line items.
    Each item carries its own tax rate. Retention applies to the subtotal only.
    Nothing is rounded here; rounding happens when amounts are displayed.
    """
    subtotal = 0.0
    tax = 0.0
    for item in items:
        line = item.quantity * item.price
        subtotal += line
        tax += line * (item.tax or 0.0) / 100

    retention = subtotal * (retention_rate or 0.0) / 100

    return InvoiceTotals(
        subtotal=subtotal,
        tax=tax,
        retention=retention,
        total=subtotal + tax - retention
    )

def totals_for_invoice(invoice: Invoice, issuer: Optional[Issuer]) -> InvoiceTotals:
    retention_rate = 0.0
    if invoice.apply_retention and issuer is not None:
        retention_rate = issuer.retention_rate or 0.0
    return calculate_totals(invoice.items, retention_rate)
