from typing import Optional
import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from invoiceflow.core.config import Settings, settings as default_settings
from invoiceflow.core.converter import PdfConverter, get_converter
from invoiceflow.core.errors import InvoiceFlowError
from invoiceflow.core.middleware import SessionGateMiddleware
from invoiceflow.core.security import SessionRegistry
from invoiceflow.db.session import create_store
from invoiceflow.db.store import BusinessDataStore
from invoiceflow.api import auth, data, health, invoices

logger = logging.getLogger(__name__)

def create_app(
    settings: Optional[Settings] = None,
    store: Optional[BusinessDataStore] = None,
    converter: Optional[PdfConverter] = None,
) -> FastAPI:
    settings = settings or default_settings
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    app = FastAPI(title=settings.PROJECT_NAME)
    app.state.settings = settings
    app.state.store = store if store is not None else create_store(settings)
    app.state.sessions = SessionRegistry(settings.SESSION_TTL_MINUTES)
    app.state.converter = converter if converter is not None else get_converter(settings)

    app.add_middleware(SessionGateMiddleware)

    # Include routers
    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(data.router)
    app.include_router(invoices.router)

    @app.exception_handler(InvoiceFlowError)
    async def invoiceflow_error_handler(request: Request, exc: InvoiceFlowError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc.detail}")
        else:
            logger.warning(f"{request.method} {request.url.path} rejected: {exc.code}: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "error": exc.code}
        )

    return app

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
