from contextlib import asynccontextmanager
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.core.config import get_settings
from app.core.errors import RemoteOperationFailed
from app.dependencies import cart_sessions

# Routers
from app.routers.auth import router as auth_router
from app.routers.cart import router as cart_router
from app.routers.categories import router as categories_router
from app.routers.products import router as products_router
from app.routers.store import router as store_router

settings = get_settings()

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Nothing to open: Supabase clients are created on first use.

    Shutdown:
      - Tear down every open cart session.
    """
    logger.info("🔄 Startup: FreshCart storefront using Supabase at %s", settings.SUPABASE_URL)
    yield
    logger.info("🛑 Shutdown: closing %d cart session(s)", len(cart_sessions))
    await cart_sessions.close_all()


app = FastAPI(
    title=settings.PROJECT_NAME or "FreshCart Storefront API",
    version="0.1.0",
    lifespan=lifespan,
)


# --- CORS configuration ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RemoteOperationFailed)
async def remote_operation_failed_handler(request: Request, exc: RemoteOperationFailed):
    """
    Catalog reads that fail upstream surface as 502.

    Cart mutations never get here: they answer with a notice instead.
    """
    logger.error("❌ Supabase %s failed: %r", exc.operation, exc.cause)
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": "Store backend unavailable, please try again"},
    )


# Versioned API prefix, e.g. /api/v1
app.include_router(store_router, prefix=settings.API_V1_STR)
app.include_router(products_router, prefix=settings.API_V1_STR)
app.include_router(categories_router, prefix=settings.API_V1_STR)
app.include_router(cart_router, prefix=settings.API_V1_STR)
app.include_router(auth_router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "freshcart-storefront"}
