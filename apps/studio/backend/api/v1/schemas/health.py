"""
Health check API schemas.
"""

import time
from typing import List, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Liveness response."""

    status: str = Field(..., description="Overall health status", examples=["healthy"])
    version: str = Field(default="1.0.0", description="API version")
    timestamp: float = Field(default_factory=time.time)
    message: str = Field(default="Voice agent studio API is running")


class ServiceCheck(BaseModel):
    """Individual dependency check."""

    component: str = Field(..., examples=["redis"])
    status: str = Field(..., description="healthy, unhealthy or not_configured")
    error: Optional[str] = None


class ReadinessResponse(BaseModel):
    status: str = Field(..., description="ready or degraded")
    timestamp: float = Field(default_factory=time.time)
    checks: List[ServiceCheck] = Field(default_factory=list)
