from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from doctor_reputation.api.deps import get_lookup_service, status_for
from doctor_reputation.models.schemas import (
    LookupMode,
    LookupRequest,
    LookupResponse,
    SourceInfo,
    SourcesResponse,
)
from doctor_reputation.services.lookup import LookupService

router = APIRouter(prefix="/api/doctors", tags=["doctors"])


async def _respond(service: LookupService, request: LookupRequest) -> JSONResponse:
    response = await service.handle(request)
    return JSONResponse(
        status_code=status_for(response),
        content=response.model_dump(exclude_none=True),
    )


@router.get("/search", response_model=LookupResponse)
async def search_doctors(
    query: str | None = None,
    service: LookupService = Depends(get_lookup_service),
):
    """Search every active source in priority order."""
    return await _respond(service, LookupRequest(mode=LookupMode.SEARCH, query=query))


@router.get("/speciality", response_model=LookupResponse)
async def doctors_by_speciality(
    source: str | None = None,
    speciality: str | None = None,
    service: LookupService = Depends(get_lookup_service),
):
    """List doctors for one speciality from the named source."""
    return await _respond(
        service,
        LookupRequest(mode=LookupMode.SPECIALITY, source=source, query=speciality),
    )


@router.get("/report", response_model=LookupResponse)
async def doctor_report(
    source: str | None = None,
    identifier: str | None = None,
    review_limit: int | None = Query(default=None, ge=1),
    service: LookupService = Depends(get_lookup_service),
):
    """Build (or serve from cache) the reputation report for one doctor."""
    return await _respond(
        service,
        LookupRequest(
            mode=LookupMode.REPORT,
            source=source,
            identifier=identifier,
            review_limit=review_limit,
        ),
    )


@router.get("/sources", response_model=SourcesResponse)
async def list_sources(service: LookupService = Depends(get_lookup_service)):
    return SourcesResponse(
        sources=[
            SourceInfo(
                identifier=entry.identifier,
                name=entry.name,
                priority=entry.priority,
                active=entry.active,
                capabilities=sorted(entry.adapter.capabilities),
            )
            for entry in service.aggregator.registry
        ]
    )
