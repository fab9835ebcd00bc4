"""Pydantic schemas for API requests and responses."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# Request schemas
class UploadRequest(BaseModel):
    """JSON-wrapped upload."""
    model_config = ConfigDict(populate_by_name=True)

    file_data: str = Field(..., alias="fileData", description="Base64-encoded .zip archive")


# Response schemas
class ScanResponse(BaseModel):
    """Response schema for a completed scan."""
    model_config = ConfigDict(populate_by_name=True)

    refactored_keys: list[str] = Field(
        default_factory=list,
        alias="refactoredKeys",
        description="Configuration variables created from hardcoded secrets",
    )
    redacted_keys: list[str] = Field(
        default_factory=list,
        alias="redactedKeys",
        description="Truncated previews of redacted secrets",
    )
    download_data: str = Field(..., alias="downloadData", description="Base64 of the scrubbed archive")
    remaining_scans: int = Field(..., alias="remainingScans", description="Scans left in the current window")
    message: str = Field("", description="Human-readable summary")


class PatternResponse(BaseModel):
    """Response schema for a single pattern."""
    name: str
    kind: str
    policy: str
    description: Optional[str] = None
    provider_tag: Optional[str] = None


class PatternListResponse(BaseModel):
    """Response schema for listing patterns."""
    patterns: list[PatternResponse]
    total: int


class HealthResponse(BaseModel):
    """Response schema for health check."""
    status: str
    version: str
    patterns_loaded: int
    quota_store: str
    uptime_seconds: float


class ErrorResponse(BaseModel):
    """Response schema for errors."""
    error: str
