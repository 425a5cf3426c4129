"""
Service wiring for the API.

Services are built once per application from PosSettings and handed to the
routers through FastAPI's `Depends`. Tests pass a prebuilt PosServices (usually
backed by an InMemoryStore) to `create_app` instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Request

from repositories.client import create_supabase_client
from repositories.customer_repository import SupabaseCustomerRepository
from repositories.daily_sales_repository import SupabaseDailySalesRepository
from repositories.medicine_repository import SupabaseMedicineRepository
from repositories.memory_store import InMemoryStore
from repositories.staff_repository import SupabaseStaffDirectory
from repositories.transaction_repository import SupabaseTransactionRepository
from services.catalog_service import CatalogService
from services.checkout_service import CheckoutService
from services.compliance_service import ComplianceGate
from services.identity_service import IdentityResolver
from services.pricing_service import PricingEngine
from services.refund_service import RefundService
from services.reporting_service import ReportingService
from services.settings import PosSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PosServices:
    settings: PosSettings
    pricing: PricingEngine
    compliance: ComplianceGate
    identity: IdentityResolver
    catalog: CatalogService
    checkout: CheckoutService
    refunds: RefundService
    reporting: ReportingService


def build_services(settings: PosSettings, store: InMemoryStore | None = None) -> PosServices:
    """
    Wire every service against the configured store.

    Args:
        settings: Runtime settings
        store: In-process store to use when settings.store == "memory"
            (a fresh empty one is created when omitted)

    Raises:
        RuntimeError: If the Supabase store is selected without credentials
    """
    if settings.store == "memory":
        store = store or InMemoryStore()
        catalog = customers = transactions = daily_sales = staff = store
        logger.warning("Using in-memory store; data is lost on exit")
    else:
        client = create_supabase_client(settings.supabase_url, settings.supabase_key)
        catalog = SupabaseMedicineRepository(client)
        customers = SupabaseCustomerRepository(client)
        transactions = SupabaseTransactionRepository(client)
        daily_sales = SupabaseDailySalesRepository(client)
        staff = SupabaseStaffDirectory(client)

    pricing = PricingEngine(settings.tax_rate)
    compliance = ComplianceGate(settings.credential_length)
    identity = IdentityResolver(
        customers,
        search_limit=settings.search_limit,
        auto_match_min_length=settings.auto_match_min_length,
        partial_match_min_length=settings.partial_match_min_length,
    )
    checkout = CheckoutService(
        catalog,
        customers,
        transactions,
        daily_sales=daily_sales,
        staff=staff,
        pricing=pricing,
        compliance=compliance,
        identity=identity,
        require_staff_verification=settings.require_staff_verification,
        currency=settings.currency,
    )
    return PosServices(
        settings=settings,
        pricing=pricing,
        compliance=compliance,
        identity=identity,
        catalog=CatalogService(catalog),
        checkout=checkout,
        refunds=RefundService(catalog, customers, transactions, daily_sales=daily_sales),
        reporting=ReportingService(daily_sales, transactions, customers),
    )


def get_services(request: Request) -> PosServices:
    """FastAPI dependency: services for the running app, built on first use."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        services = build_services(request.app.state.settings)
        request.app.state.services = services
    return services


__all__ = ["PosServices", "build_services", "get_services"]
