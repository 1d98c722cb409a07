"""Health check endpoint.

Learn: Simple GET endpoint that verifies the server is running, the
booking database is reachable, and reports the detector's counters.
"""

from fastapi import APIRouter, Request

from bookingrelay import __version__

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Check server health and dependency connectivity."""
    relay = request.app.state.relay
    checks = {"server": "ok", "version": __version__}

    try:
        await relay.source.ping()
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    status = "healthy" if all(
        v == "ok" for k, v in checks.items() if k != "version"
    ) else "degraded"

    return {
        "status": status,
        **checks,
        "detector": relay.detector.get_stats(),
    }
