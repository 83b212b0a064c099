"""FastAPI application entry point."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shelfwise.database import engine


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifespan: dispose the connection pool on shutdown.

    The schema (including the pg_trgm and fuzzystrmatch extensions) is
    owned by the Alembic migrations.
    """
    yield
    await engine.dispose()


app = FastAPI(
    title="Shelfwise",
    description="Retail catalog search and listing API",
    version="0.1.0",
    lifespan=lifespan,
)

# --- CORS Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Router includes ---
from shelfwise.api.categories import router as categories_router  # noqa: E402
from shelfwise.api.products import router as products_router  # noqa: E402

app.include_router(products_router, prefix="/api")
app.include_router(categories_router, prefix="/api")


@app.get("/api/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint.

    Returns a simple status response to verify the API is running.
    """
    return {"status": "ok"}
