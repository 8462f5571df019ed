import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coilyard.config import settings
from coilyard.middleware.exceptions import register_exception_handlers
from coilyard.routers import allocation, coils, health, locations, positions, reconciliation, stock_takes

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="CoilYard",
    description="Steel coil yard: stacking positions, allocation and stock-take reconciliation",
    version="0.1.0",
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)

# Yard configuration
app.include_router(locations.router, prefix="/api/locations", tags=["locations"])
app.include_router(positions.router, prefix="/api/positions", tags=["positions"])

# Coils and occupancy
app.include_router(coils.router, prefix="/api/coils", tags=["coils"])
app.include_router(allocation.router, prefix="/api/allocation", tags=["allocation"])

# Stock take
app.include_router(stock_takes.router, prefix="/api/stock-takes", tags=["stock-takes"])
app.include_router(reconciliation.router, prefix="/api/reconciliation", tags=["reconciliation"])
