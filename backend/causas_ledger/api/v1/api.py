"""
Main API router aggregator
"""
from fastapi import APIRouter

from causas_ledger.api.v1.endpoints import causas_service, health

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["Health"])
api_router.include_router(causas_service.router, prefix="/causas-service", tags=["CausaService"])
