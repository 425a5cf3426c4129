"""
Pharmacy POS API - Main Application.

FastAPI application with CORS enabled for the POS terminals.
"""

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from api.dependencies import PosServices
from api.routers import checkout, customers, medicines, quotes, reports, transactions
from services.settings import PosSettings


def create_app(settings: Optional[PosSettings] = None, services: Optional[PosServices] = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Runtime settings (read from the environment when omitted)
        services: Prebuilt services; when omitted they are wired from
            settings on the first request
    """
    if services is not None:
        settings = services.settings
    settings = settings or PosSettings.from_env()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Pharmacy POS API",
        description="REST API for pricing, committing and refunding pharmacy sales",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings
    app.state.services = services

    # Configure CORS - Allow all origins for development
    # TODO: Restrict origins to the terminal hosts in production
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["Health"])
    def health_check():
        """
        Health check endpoint.

        Returns the API status and version.
        """
        return {
            "status": "healthy",
            "version": __version__,
            "service": "pharmacy-pos-api",
            "store": settings.store,
        }

    @app.get("/", tags=["Root"])
    def root():
        """
        Root endpoint with API information.
        """
        return {
            "message": "Pharmacy POS API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health"
        }

    app.include_router(quotes.router, prefix="/api/v1", tags=["Quotes"])
    app.include_router(checkout.router, prefix="/api/v1", tags=["Checkout"])
    app.include_router(customers.router, prefix="/api/v1", tags=["Customers"])
    app.include_router(medicines.router, prefix="/api/v1", tags=["Medicines"])
    app.include_router(transactions.router, prefix="/api/v1", tags=["Transactions"])
    app.include_router(reports.router, prefix="/api/v1", tags=["Reports"])

    return app


app = create_app()
