"""
API routes for the pageguard service
"""
import logging
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from bs4 import BeautifulSoup

from pageguard.analysis import STATUS_ERROR, STATUS_SUCCESS
from pageguard.config import settings
from pageguard.detectors.types import finding_to_dict
from pageguard.errors import GuardError
from pageguard.models import (
    AnalyzeRequest, AnalyzeResponse,
    ScanRequest, ScanResponse,
    SanitizeTextRequest, SanitizeTextResponse,
    ActivityResponse,
)
from pageguard.session import ScanSession

logger = logging.getLogger(__name__)

# Create API router
router = APIRouter()


def get_session(request: Request) -> ScanSession:
    """Session created by the application lifespan."""
    session = getattr(request.app.state, "session", None)
    if session is None:
        raise HTTPException(status_code=503, detail="Scan session not initialised")
    return session


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze_text(request: AnalyzeRequest, session: ScanSession = Depends(get_session)):
    """
    Classify text and return span findings.

    Failures are reported in-band as status ERROR so remote callers can
    degrade without parsing HTTP errors.
    """
    try:
        findings = await session.engine.analyze(request.text, include_patterns=request.include_patterns)
    except GuardError as e:
        logger.warning(f"Analysis failed [{e.code}]: {e}")
        return AnalyzeResponse(status=STATUS_ERROR, message=str(e))

    return AnalyzeResponse(
        status=STATUS_SUCCESS,
        findings=[finding_to_dict(f) for f in findings],
    )


@router.post("/scan", response_model=ScanResponse)
async def scan_html(request: ScanRequest, session: ScanSession = Depends(get_session)):
    """
    Scan an HTML document, sanitise it in place and return the result.
    """
    try:
        soup = BeautifulSoup(request.html, "html.parser")
        result = await session.scan_now(soup, url=request.url or "", title=request.title)
    except Exception as e:
        logger.error(f"Scan failed for {request.url or 'inline document'}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Scan failed: {str(e)}")

    return ScanResponse(
        success=True,
        html=str(soup),
        findings=result.to_dict()["findings"],
        threat_count=result.threat_count,
        sanitized_count=result.sanitized_count,
        scanned_at=datetime.now(timezone.utc),
    )


@router.post("/sanitize-text", response_model=SanitizeTextResponse)
async def sanitize_text(request: SanitizeTextRequest, session: ScanSession = Depends(get_session)):
    """
    Text-only scan: label directives and redact senders and links.
    """
    safe_list = list(settings.get_safe_senders()) + request.safe_senders
    processed = await session.orchestrator.process_content(request.text, safe_list)
    return SanitizeTextResponse(
        original=processed["original"],
        cleaned=processed["cleaned"],
        findings=[finding_to_dict(f) for f in processed["findings"]],
    )


@router.get("/activity", response_model=ActivityResponse)
async def list_activity(
    limit: int = Query(default=100, ge=1, le=1000),
    session: ScanSession = Depends(get_session),
):
    """Recent detections, newest first."""
    entries = session.activity.to_list()[:limit]
    return ActivityResponse(entries=entries, count=len(entries))


@router.delete("/activity")
async def clear_activity(session: ScanSession = Depends(get_session)):
    """Forget all recorded detections."""
    session.activity.clear()
    return {"success": True}
