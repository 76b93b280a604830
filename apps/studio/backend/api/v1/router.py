"""
V1 API router: mounts every endpoint group under ``/api``.
"""

from fastapi import APIRouter

from apps.studio.backend.api.v1.endpoints import agents, gmail, health, session

v1_router = APIRouter(prefix="/api")

v1_router.include_router(health.router, tags=["Health"])
v1_router.include_router(session.router, tags=["Session"])
v1_router.include_router(gmail.router, tags=["Gmail"])
v1_router.include_router(agents.router, tags=["Agents"])
