"""
RxScribe Backend: Record AI Routes
===================================

What:  Summaries of a single record and pattern analysis across a patient's
       records.

Endpoints:
    POST /api/records/summarize   {text, audience} → AIResult
    POST /api/records/analyze     {records: [...]} → AIResult
"""

from fastapi import APIRouter, Depends

from app.dependencies import get_ai_service
from app.schemas.ai import AIResult, AnalyzeRequest, SummarizeRequest
from app.services.ai_service import MedicalAIService

router = APIRouter(prefix="/api/records", tags=["Records"])


@router.post(
    "/summarize",
    response_model=AIResult,
    summary="Summarize a record for a patient or a clinician",
)
async def summarize(
    payload: SummarizeRequest,
    ai: MedicalAIService = Depends(get_ai_service),
) -> AIResult:
    return await ai.summarize_record(payload.text, payload.audience)


@router.post(
    "/analyze",
    response_model=AIResult,
    summary="Find trends and concerns across a patient's records",
    description="Records are analyzed in the order given; send them oldest first.",
)
async def analyze(
    payload: AnalyzeRequest,
    ai: MedicalAIService = Depends(get_ai_service),
) -> AIResult:
    return await ai.analyze_pattern_across_records(payload.records)
