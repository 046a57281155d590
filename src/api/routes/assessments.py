from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession
from src.api.deps import get_artifact_service, get_completion_orchestrator, get_db_session
from src.api.routes.artifacts import artifact_response
from src.api.schemas.assessments import (
    AnswerItem,
    AnswersRequest,
    CompletionResponse,
    SavedAnswersResponse,
    StageOutcomeItem,
)
from src.domain.errors import ValidationError
from src.domain.scoring import ScoringError
from src.domain.services.artifacts import ArtifactService
from src.domain.services.assessments import (
    AssessmentAlreadyCompletedError,
    AssessmentNotFoundError,
    AssessmentService,
)
from src.domain.services.completion import CompletionOrchestrator

router = APIRouter(prefix="/assessments", tags=["Assessments"])


@router.post("/{assessment_id}/answers", response_model=SavedAnswersResponse)
async def save_answers(
    assessment_id: int,
    payload: AnswersRequest,
    session: AsyncSession = Depends(get_db_session),  # noqa: B008
) -> SavedAnswersResponse:
    service = AssessmentService(session)
    try:
        result = await service.save_answers(assessment_id, payload.answers)
    except AssessmentNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except AssessmentAlreadyCompletedError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    return SavedAnswersResponse(
        assessment_id=result.assessment_id,
        status=result.status,
        answers=[AnswerItem(**answer) for answer in result.answers],
    )


@router.post("/{assessment_id}/complete", response_model=CompletionResponse)
async def complete_assessment(
    assessment_id: int,
    payload: AnswersRequest,
    orchestrator: CompletionOrchestrator = Depends(get_completion_orchestrator),  # noqa: B008
) -> CompletionResponse:
    """
    Complete an assessment.

    - Scores the answers and marks the assessment completed
    - Generates recommendations, renders the PDF report and emails the owner
    - Later stages degrade gracefully; their outcome is listed in ``stages``
    """
    try:
        result = await orchestrator.complete(assessment_id, payload.answers)
    except AssessmentNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except AssessmentAlreadyCompletedError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except (ValidationError, ScoringError) as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    body = result.to_dict()
    return CompletionResponse(
        assessment_id=body["assessment_id"],
        status=body["status"],
        score=body["score"],
        completed_on=body["completed_on"],
        pdf_path=body["pdf_path"],
        stages=[StageOutcomeItem(**stage) for stage in body["stages"]],
    )


@router.get("/{assessment_id}/report", response_class=FileResponse)
async def download_report(
    assessment_id: int,
    service: ArtifactService = Depends(get_artifact_service),  # noqa: B008
) -> FileResponse:
    """Return the assessment's PDF report, regenerating it when the file is missing."""
    lookup = await service.fetch_for_assessment(assessment_id)
    return artifact_response(lookup)
