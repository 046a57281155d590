from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse
from src.api.deps import get_artifact_service
from src.domain.services.artifact_store import ArtifactPathError
from src.domain.services.artifacts import ArtifactLookup, ArtifactService

router = APIRouter(tags=["Reports"])

RETRY_AFTER_SECONDS = "30"
NOT_AVAILABLE = "Report not available"


def artifact_response(lookup: ArtifactLookup) -> FileResponse:
    """Translate an artifact lookup into the PDF response or the matching HTTP error."""
    if lookup.available and lookup.path is not None:
        return FileResponse(
            lookup.path,
            media_type="application/pdf",
            filename=lookup.path.name,
        )
    if lookup.retryable:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Report is temporarily unavailable",
            headers={"Retry-After": RETRY_AFTER_SECONDS},
        )
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_AVAILABLE)


@router.get("/uploads/{file_path:path}", response_class=FileResponse)
async def serve_upload(
    file_path: str,
    service: ArtifactService = Depends(get_artifact_service),  # noqa: B008
) -> FileResponse:
    """Serve a stored report by its public path, recovering it when the file is gone."""
    try:
        lookup = await service.fetch(f"/uploads/{file_path}")
    except ArtifactPathError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return artifact_response(lookup)
