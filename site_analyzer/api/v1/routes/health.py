"""Health check endpoints for load balancer and monitoring."""

from fastapi import APIRouter
from pydantic import BaseModel

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str
    checks: dict[str, str]


@router.get("", response_model=HealthResponse, include_in_schema=False)
async def health_check() -> HealthResponse:
    from site_analyzer.core.config import get_settings
    from site_analyzer.engines.analyzer.spelling import get_spell_checker
    settings = get_settings()

    checks: dict[str, str] = {}

    # Typo detection is optional: a missing dictionary degrades, it is not unhealthy
    checks["spellcheck"] = "enabled" if get_spell_checker() is not None else "disabled"
    checks["screenshots"] = "enabled" if settings.SCREENSHOTS_ENABLED else "disabled"

    return HealthResponse(
        status="healthy",
        version=settings.APP_VERSION,
        checks=checks,
    )


@router.get("/ready", include_in_schema=False)
async def readiness() -> dict:
    """Kubernetes readiness probe."""
    return {"ready": True}


@router.get("/live", include_in_schema=False)
async def liveness() -> dict:
    """Kubernetes liveness probe."""
    return {"alive": True}
