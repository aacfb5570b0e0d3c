"""Liveness and readiness probes for the search server."""

from pathlib import Path
from typing import Literal

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

router = APIRouter(prefix="/health", tags=["health"])


class LivenessResponse(BaseModel):
    """Answer to the liveness probe; ``status`` is always ``alive``."""

    status: Literal["alive"]


class ReadinessCheck(BaseModel):
    """One readiness condition.

    Attributes:
        name: ``search_service`` or ``root:<path>``.
        status: Result of the check ('ok' or 'failed').
        message: Error details when status is 'failed'.
    """

    name: str
    status: Literal["ok", "failed"]
    message: str | None = None


class ReadinessResponse(BaseModel):
    """Answer to the readiness probe.

    Attributes:
        status: 'ready' when every check passed.
        checks: Service check followed by one check per workspace root.
        indexed_items: Size of the aggregated index.
    """

    status: Literal["ready", "not_ready"]
    checks: list[ReadinessCheck]
    indexed_items: int = 0


def _check_root(path: Path) -> ReadinessCheck:
    """Verify a workspace root exists and can be listed.

    Args:
        path: Workspace root directory.

    Returns:
        Check result with status and optional error message.
    """
    name = f"root:{path}"
    try:
        if path.is_dir():
            next(path.iterdir(), None)
            return ReadinessCheck(name=name, status="ok")
        return ReadinessCheck(name=name, status="failed", message="Directory not found")
    except PermissionError as e:
        return ReadinessCheck(name=name, status="failed", message=f"Permission denied: {e}")
    except OSError as e:
        return ReadinessCheck(name=name, status="failed", message=str(e))


@router.get("/live", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Liveness probe endpoint.

    Returns:
        Liveness status response.
    """
    return LivenessResponse(status="alive")


@router.get("/ready", response_model=ReadinessResponse)
async def readiness(request: Request) -> JSONResponse:
    """Readiness probe endpoint.

    Checks that the search service is running and every workspace root
    is readable. Returns 200 if all checks pass, 503 if any fail.

    Returns:
        Readiness status with individual check results.
    """
    service = getattr(request.app.state, "search_service", None)
    checks = [
        ReadinessCheck(name="search_service", status="ok")
        if service is not None
        else ReadinessCheck(name="search_service", status="failed", message="Not started")
    ]
    if service is not None:
        checks.extend(_check_root(root) for root in service.workspace.roots)

    all_ok = all(c.status == "ok" for c in checks)
    response = ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        checks=checks,
        indexed_items=len(service.items) if service is not None else 0,
    )
    code = status.HTTP_200_OK if all_ok else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(content=response.model_dump(), status_code=code)
