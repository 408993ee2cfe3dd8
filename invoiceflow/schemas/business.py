from pydantic import BaseModel, ConfigDict, Field, AliasChoices
from typing import List, Optional
from invoiceflow.schemas.invoice import Invoice, LineItem

# Legacy documents use Spanish keys (nombre, nif, cp, irpf...); they are
# accepted on input and written back under the camelCase names.

class Account(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    name: str = ""
    iban: str = ""
    swift: Optional[str] = None


class Issuer(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str = Field("", validation_alias=AliasChoices("name", "nombre"))
    tax_id: str = Field("", alias="taxId", validation_alias=AliasChoices("taxId", "nif"))
    address: str = Field("", validation_alias=AliasChoices("address", "direccion"))
    city: str = Field("", validation_alias=AliasChoices("city", "ciudad"))
    postal_code: str = Field("", alias="postalCode", validation_alias=AliasChoices("postalCode", "cp"))
    province: str = Field("", validation_alias=AliasChoices("province", "provincia"))
    email: Optional[str] = None
    retention_rate: Optional[float] = Field(
        None, alias="retentionRate", validation_alias=AliasChoices("retentionRate", "irpf")
    )
    next_invoice_number: Optional[int] = Field(None, alias="nextInvoiceNumber")
    accounts: List[Account] = []


class Recipient(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    name: str = ""
    tax_id: str = Field("", alias="taxId", validation_alias=AliasChoices("taxId", "cif"))
    address: str = ""
    city: str = ""
    postal_code: str = Field("", alias="postalCode", validation_alias=AliasChoices("postalCode", "cp"))
    province: str = ""
    is_favorite: bool = Field(False, alias="isFavorite")


class Template(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    name: str = ""
    recipient_id: Optional[str] = Field(None, alias="recipientId")
    account_id: Optional[str] = Field(None, alias="accountId")
    concept: Optional[str] = None
    price: Optional[float] = None
    items: Optional[List[LineItem]] = None


class BusinessData(BaseModel):
    """The single per-user document: issuer, recipients, templates, invoices."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    issuer: Issuer = Field(default_factory=Issuer)
    recipients: List[Recipient] = []
    templates: List[Template] = []
    invoices: List[Invoice] = []

    def find_recipient(self, recipient_id: Optional[str]) -> Optional[Recipient]:
        return next((r for r in self.recipients if r.id == recipient_id), None)

    def find_account(self, account_id: Optional[str]) -> Optional[Account]:
        return next((a for a in self.issuer.accounts if a.id == account_id), None)

    def find_template(self, template_id: Optional[str]) -> Optional[Template]:
        return next((t for t in self.templates if t.id == template_id), None)

    def find_invoice(self, invoice_id: Optional[str]) -> Optional[Invoice]:
        return next((i for i in self.invoices if i.id == invoice_id), None)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class NextInvoiceNumberUpdate(BaseModel):
    number: int


class InvoiceRequest(BaseModel):
    """An invoice plus, optionally, the snapshot it should be rendered against."""
    model_config = ConfigDict(populate_by_name=True)

    invoice: Invoice
    business_data: Optional[BusinessData] = Field(
        None, alias="businessData", validation_alias=AliasChoices("businessData", "globalData")
    )


class GenerateRequest(InvoiceRequest):
    persist: bool = True


class DraftRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    template_id: Optional[str] = Field(None, alias="templateId")
    recipient_id: Optional[str] = Field(None, alias="recipientId")
    account_id: Optional[str] = Field(None, alias="accountId")
    number: Optional[str] = None
    concept: Optional[str] = None
    price: Optional[float] = None


class BusinessSummary(BaseModel):
    issuer_name: str
    recipients: int = 0
    favorite_recipients: int = 0
    templates: int = 0
    accounts: int = 0
    invoices: int = 0
    invoiced_total: float = 0.0
