import logging
from invoiceflow.core.config import Settings
from invoiceflow.db.memory import InMemoryStore
from invoiceflow.db.sql import SqlStore
from invoiceflow.db.store import BusinessDataStore

logger = logging.getLogger(__name__)

def create_store(settings: Settings) -> BusinessDataStore:
    if settings.STORAGE_BACKEND == "sql":
        store = SqlStore(settings.DATABASE_URL)
        store.initialize_schema()
        logger.info(f"Store configured for: {store.engine.url.render_as_string(hide_password=True)}")
        return store
    logger.info("Store configured in memory; data is lost on restart")
    return InMemoryStore()
