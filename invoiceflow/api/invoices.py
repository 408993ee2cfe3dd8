from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse, StreamingResponse
import io
import logging
from invoiceflow.api.deps import app_converter, app_settings, app_store, current_user
from invoiceflow.core import business
from invoiceflow.core.calculator import totals_for_invoice
from invoiceflow.core.config import Settings
from invoiceflow.core.converter import PdfConverter
from invoiceflow.core.renderer import render_invoice
from invoiceflow.db.store import BusinessDataStore, UserRecord
from invoiceflow.schemas.business import BusinessData, DraftRequest, GenerateRequest, InvoiceRequest
from invoiceflow.schemas.invoice import Invoice, InvoiceTotals

router = APIRouter(prefix="/api/invoices")
logger = logging.getLogger(__name__)

def _snapshot(request: InvoiceRequest, store: BusinessDataStore, user: UserRecord) -> BusinessData:
    """The snapshot sent with the request, else the stored document."""
    if request.business_data is not None:
        return request.business_data
    return business.load_business_data(store, user)

@router.post("/draft")
def draft_invoice(
    payload: DraftRequest,
    user: UserRecord = Depends(current_user),
    store: BusinessDataStore = Depends(app_store),
    settings: Settings = Depends(app_settings),
):
    data = business.load_business_data(store, user)
    invoice = business.draft_invoice(
        data,
        template_id=payload.template_id,
        recipient_id=payload.recipient_id,
        account_id=payload.account_id,
        number=payload.number,
        concept=payload.concept,
        price=payload.price,
        default_tax_rate=settings.DEFAULT_TAX_RATE
    )
    return invoice.model_dump(mode="json", by_alias=True)

@router.post("/totals", response_model=InvoiceTotals)
def invoice_totals(
    payload: InvoiceRequest,
    user: UserRecord = Depends(current_user),
    store: BusinessDataStore = Depends(app_store),
):
    data = _snapshot(payload, store, user)
    return totals_for_invoice(payload.invoice, data.issuer)

@router.post("/render", response_class=HTMLResponse)
def render_invoice_html(
    payload: InvoiceRequest,
    user: UserRecord = Depends(current_user),
    store: BusinessDataStore = Depends(app_store),
    settings: Settings = Depends(app_settings),
):
    document = render_invoice(payload.invoice, _snapshot(payload, store, user), settings.CURRENCY_SYMBOL)
    return HTMLResponse(content=document.html)

@router.post("/generate")
def generate_invoice_pdf(
    payload: GenerateRequest,
    user: UserRecord = Depends(current_user),
    store: BusinessDataStore = Depends(app_store),
    converter: PdfConverter = Depends(app_converter),
    settings: Settings = Depends(app_settings),
):
    logger.info(f"PDF requested by user {user.id} for invoice {payload.invoice.number}")
    result = business.generate_invoice(
        store,
        user,
        payload.invoice,
        converter,
        snapshot=payload.business_data,
        persist=payload.persist,
        currency=settings.CURRENCY_SYMBOL,
        filename_prefix=settings.INVOICE_FILENAME_PREFIX
    )

    return StreamingResponse(
        io.BytesIO(result.pdf),
        media_type="application/pdf",
        headers={
            "Content-Disposition": f"attachment; filename={result.filename}",
            "Content-Length": str(len(result.pdf)),
            "X-Invoice-Id": result.invoice.id or ""
        }
    )

@router.put("/{invoice_id}")
def save_invoice(
    invoice_id: str,
    invoice: Invoice,
    user: UserRecord = Depends(current_user),
    store: BusinessDataStore = Depends(app_store),
):
    invoice = invoice.model_copy(update={"id": invoice_id})
    return business.upsert_invoice(store, user, invoice).to_json_dict()
