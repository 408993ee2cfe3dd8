from fastapi import APIRouter, Body, Depends
from typing import Any, Dict
from invoiceflow.api.deps import app_store, current_user
from invoiceflow.core import business
from invoiceflow.db.store import BusinessDataStore, UserRecord
from invoiceflow.schemas.business import BusinessData, Issuer, NextInvoiceNumberUpdate

router = APIRouter(prefix="/api")

# Each mutation route responds with the whole document as stored after the write.
# Handlers are plain functions: store calls block, so they run in the threadpool.

@router.get("/data")
def get_data(user: UserRecord = Depends(current_user), store: BusinessDataStore = Depends(app_store)):
    return business.load_business_data(store, user).to_json_dict()

@router.api_route("/data", methods=["PUT", "POST"])
def replace_data(
    data: BusinessData,
    user: UserRecord = Depends(current_user),
    store: BusinessDataStore = Depends(app_store),
):
    business.save_business_data(store, user.id, data)
    return {"success": True}

@router.put("/issuer")
def update_issuer(
    issuer: Issuer,
    user: UserRecord = Depends(current_user),
    store: BusinessDataStore = Depends(app_store),
):
    return business.update_issuer(store, user, issuer).to_json_dict()

@router.put("/issuer/next-invoice-number")
def set_next_invoice_number(
    payload: NextInvoiceNumberUpdate,
    user: UserRecord = Depends(current_user),
    store: BusinessDataStore = Depends(app_store),
):
    return business.set_next_invoice_number(store, user, payload.number).to_json_dict()

@router.post("/recipients")
def add_recipient(
    payload: Dict[str, Any] = Body(...),
    user: UserRecord = Depends(current_user),
    store: BusinessDataStore = Depends(app_store),
):
    return business.add_recipient(store, user, payload).to_json_dict()

@router.post("/recipients/{recipient_id}/favorite")
def toggle_favorite(
    recipient_id: str,
    user: UserRecord = Depends(current_user),
    store: BusinessDataStore = Depends(app_store),
):
    return business.toggle_recipient_favorite(store, user, recipient_id).to_json_dict()

@router.post("/templates")
def add_template(
    payload: Dict[str, Any] = Body(...),
    user: UserRecord = Depends(current_user),
    store: BusinessDataStore = Depends(app_store),
):
    return business.add_template(store, user, payload).to_json_dict()

@router.post("/accounts")
def add_account(
    payload: Dict[str, Any] = Body(...),
    user: UserRecord = Depends(current_user),
    store: BusinessDataStore = Depends(app_store),
):
    return business.add_account(store, user, payload).to_json_dict()

@router.delete("/accounts/{account_id}")
def delete_account(
    account_id: str,
    user: UserRecord = Depends(current_user),
    store: BusinessDataStore = Depends(app_store),
):
    return business.delete_account(store, user, account_id).to_json_dict()
