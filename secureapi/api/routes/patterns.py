"""Pattern listing endpoint."""

from typing import Optional

from fastapi import APIRouter, Request

from secureapi.api.schemas import PatternListResponse, PatternResponse

router = APIRouter()


@router.get("/patterns", response_model=PatternListResponse)
async def list_patterns(
    request: Request,
    kind: Optional[str] = None,
    policy: Optional[str] = None,
) -> PatternListResponse:
    """
    List the loaded secret patterns in priority order.

    Optionally filtered by secret kind or policy.
    """
    patterns = [
        PatternResponse(
            name=pattern.name,
            kind=pattern.kind.value,
            policy=pattern.policy.value,
            description=pattern.description or None,
            provider_tag=pattern.provider_tag,
        )
        for pattern in request.app.state.catalog
        if (kind is None or pattern.kind.value == kind)
        and (policy is None or pattern.policy.value == policy)
    ]
    return PatternListResponse(patterns=patterns, total=len(patterns))
