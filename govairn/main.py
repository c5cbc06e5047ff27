import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from govairn import __version__
from govairn.routers.deps import get_engine, get_initialized_engine, set_engine
from govairn.routers.fastapi_router import router as api_router
from govairn.utils.logger import logger

logger.info("govAIrn Backend starting up...")

app = FastAPI(title="govAIrn Backend", version=__version__)

# Cannot use "*" when credentials are enabled
cors_origins_env = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173")
allowed_origins = [origin.strip() for origin in cors_origins_env.split(",") if origin.strip()]
logger.info(f"Allowed origins: {allowed_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=["*"],
)
logger.info("✅ CORS middleware configured")


@app.get("/healthz")
async def healthz() -> dict:
    """Health check with data store status."""
    health_status = {"status": "ok", "version": __version__}

    if not os.environ.get("GOVAIRN_API_TOKEN"):
        health_status["config"] = "missing: GOVAIRN_API_TOKEN"
        health_status["status"] = "error"
    else:
        health_status["config"] = "ok"

    try:
        engine = get_engine()
        health_status["store"] = type(engine.store).__name__
        pool = getattr(engine.store, "pool", None)
        if pool is not None:
            health_status["pool"] = pool.get_stats()
        if not await engine.store.ping():
            health_status["status"] = "degraded"
    except Exception as e:
        health_status["store"] = f"error: {str(e)[:100]}"
        health_status["status"] = "degraded"

    return health_status


@app.on_event("startup")
async def startup_event():
    """Build the decision engine eagerly so configuration errors show up at boot."""
    logger.info("Starting govAIrn Backend...")
    try:
        get_engine()
    except Exception as e:
        # Keep serving /healthz so the failure is visible
        logger.error(f"❌ Decision engine unavailable at startup: {e}")


@app.on_event("shutdown")
async def shutdown_event():
    engine = get_initialized_engine()
    try:
        if engine is not None:
            await engine.close()
    except Exception as e:
        logger.warning(f"Error during shutdown: {e}")
    finally:
        set_engine(None)
    logger.info("govAIrn Backend stopped")


app.include_router(api_router)
