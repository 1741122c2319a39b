"""Analysis endpoint for files already uploaded through the proxy."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from equilens.api.deps import get_file_service
from equilens.api.schemas import AnalyzeRequest
from equilens.models.analysis import AnalysisResult
from equilens.models.upload import RemoteFileHandle, RemoteFileState
from equilens.services.analysis import AnalysisRequestDriver
from equilens.services.interfaces import IRemoteFileService

router = APIRouter(prefix="/api/v1", tags=["analysis"])


@router.post("/analyze", response_model=AnalysisResult)
async def analyze(
    req: AnalyzeRequest,
    service: IRemoteFileService = Depends(get_file_service),
) -> AnalysisResult:
    """Run the jump analysis; the response uses camelCase field names."""
    handle = RemoteFileHandle(
        name=req.file_name or req.file_uri,
        uri=req.file_uri,
        mime_type=req.mime_type,
        state=RemoteFileState.ACTIVE,
    )
    return await AnalysisRequestDriver(service).request_analysis(handle)
