"""
Pydantic models for the pageguard API requests and responses
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from datetime import datetime


# Request Models
class AnalyzeRequest(BaseModel):
    """Text classification request (the classification service wire format)"""
    text: str
    include_patterns: bool = True


class ScanRequest(BaseModel):
    """Scan and sanitise an HTML document or fragment"""
    html: str
    url: Optional[str] = None
    title: Optional[str] = None


class SanitizeTextRequest(BaseModel):
    """Text-only scan request"""
    text: str
    safe_senders: List[str] = Field(default_factory=list)


# Response Models
class AnalyzeResponse(BaseModel):
    """Classification result; status is SUCCESS or ERROR"""
    status: str
    findings: List[Dict[str, Any]] = Field(default_factory=list)
    message: Optional[str] = None


class ScanResponse(BaseModel):
    """Sanitised document and what was found in it"""
    success: bool
    html: str
    findings: List[Dict[str, Any]] = Field(default_factory=list)
    threat_count: int = 0
    sanitized_count: int = 0
    scanned_at: datetime


class SanitizeTextResponse(BaseModel):
    """Original and sanitised text"""
    original: str
    cleaned: str
    findings: List[Dict[str, Any]] = Field(default_factory=list)


class ActivityResponse(BaseModel):
    """Recent detections, newest first"""
    entries: List[Dict[str, Any]] = Field(default_factory=list)
    count: int = 0
