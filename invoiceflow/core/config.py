from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PROJECT_NAME: str = "InvoiceFlow"
    LOG_LEVEL: str = "INFO"

    # Storage: "memory" keeps documents in-process, "sql" uses DATABASE_URL
    STORAGE_BACKEND: str = "memory"
    DATABASE_URL: str = "sqlite:///./data/invoiceflow.sqlite"

    # Sessions
    SESSION_COOKIE_NAME: str = "invoiceflow_session"
    SESSION_TTL_MINUTES: int = 24 * 60

    # PDF conversion: "reportlab" builds in-process, "browser" shells out to a headless browser
    PDF_CONVERTER: str = "reportlab"
    PDF_BROWSER_PATH: str = "chromium"
    PDF_TIMEOUT_SECONDS: float = 30.0

    # Invoice defaults
    CURRENCY_SYMBOL: str = "€"
    DEFAULT_TAX_RATE: float = 21.0
    INVOICE_FILENAME_PREFIX: str = "Factura"

    class Config:
        case_sensitive = True

settings = Settings()
