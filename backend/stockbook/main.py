from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stockbook.config import settings
from stockbook.middleware.exceptions import register_exception_handlers
from stockbook.middleware.tenant import TenantMiddleware
from stockbook.routers import dashboard, health, invoices, stock, sync_verification, warranty
from stockbook.services.scheduler import lifespan

app = FastAPI(
    title="Stockbook",
    description="Invoice lifecycle and stock reconciliation for retail back offices",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware (outermost first) ─────────────────────────────
# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Tenant context (innermost - processes request data)
app.add_middleware(TenantMiddleware)

# ── Routers ──────────────────────────────────────────────────
# Public
app.include_router(health.router)

# Client-scoped
app.include_router(invoices.router, prefix="/api/invoice", tags=["invoices"])
app.include_router(stock.router, prefix="/api/stock", tags=["stock"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["dashboard"])
app.include_router(sync_verification.router, prefix="/api/sync-verification", tags=["sync"])
app.include_router(warranty.router, prefix="/api/warranty", tags=["warranty"])
