from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from storefront import __version__, config
from storefront.database import database
from storefront.models.pricing import DEFAULT_PRICING_SETTINGS
from storefront.routes import billing_router, checkout_router
from storefront.services.order_service import OrderLifecycleController
from storefront.services.order_store import InMemoryOrderStore, MongoOrderStore

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting Storefront API")
    if config.MONGO_URL:
        await database.connect()
        store = MongoOrderStore()
    else:
        logger.warning("MONGO_URL is not set. Orders are kept in memory only.")
        store = InMemoryOrderStore()

    app.state.pricing_settings = DEFAULT_PRICING_SETTINGS.model_copy(
        update={"currency": config.DEFAULT_CURRENCY}
    )
    app.state.order_controller = OrderLifecycleController(store=store)

    yield

    # Shutdown
    logger.info("Shutting down Storefront API")
    await database.close()


# Create FastAPI app
app = FastAPI(
    title="Storefront API",
    description="Order & payment pipeline",
    version=__version__,
    lifespan=lifespan
)

# Include routers
app.include_router(checkout_router)
app.include_router(billing_router)


@app.get("/api/health")
async def health_check():
    return {"status": "healthy", "version": __version__}


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "storefront.server:app",
        host="0.0.0.0",
        port=8001,
    )
