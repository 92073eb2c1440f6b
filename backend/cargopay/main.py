"""
Main FastAPI application entry point.
"""
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from cargopay.api import collection, delivery_assignments, rates, verifications
from cargopay.db.database import engine, Base
from cargopay.services.rate_table import get_rate_table

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

# Fail fast on an unusable rate table
get_rate_table()

# Create database tables
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="Cargo Verification & Payment Collection",
    description="Shipment weight/rate verification and code-gated driver payment collection",
    version="1.0.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],  # Dashboard / driver page dev servers
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(rates.router, prefix="/api/rates", tags=["rates"])
app.include_router(verifications.router, prefix="/api/verifications", tags=["verifications"])
app.include_router(delivery_assignments.router, prefix="/api/delivery-assignments", tags=["delivery-assignments"])
app.include_router(collection.router, prefix="/api/collect", tags=["payment-collection"])


@app.get("/")
async def root():
    return {"message": "Cargo Verification & Payment Collection API"}


@app.get("/health")
async def health():
    return {"status": "healthy"}
