"""Scan endpoint: upload an archive, get it back without secrets."""

import base64
import binascii
import re
from typing import Sequence

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from secureapi.api.schemas import ScanResponse, UploadRequest
from secureapi.core.exceptions import (
    MalformedRequestError,
    PayloadTooLargeError,
    QuotaExceededError,
    QuotaStoreError,
)
from secureapi.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()

ANONYMOUS_CLIENT = "anonymous"

_ZIP_MAGIC = (b"PK\x03\x04", b"PK\x05\x06")
_RE_DATA_URL = re.compile(r"^data:[^,]*;base64,", re.IGNORECASE)
_NO_FILE_MESSAGE = "No file data received. Please upload a valid .zip file."


def client_key(request: Request, headers: Sequence[str]) -> str:
    """Identify the caller by the first forwarded-IP header present."""
    for header in headers:
        value = request.headers.get(header)
        if value:
            first = value.split(",")[0].strip()
            if first:
                return first
    if request.client and request.client.host:
        return request.client.host
    return ANONYMOUS_CLIENT


def _decode_base64(data: str) -> bytes:
    data = _RE_DATA_URL.sub("", data.strip())
    data = "".join(data.split())
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise MalformedRequestError("File data is not valid base64.")


async def read_archive(request: Request, max_bytes: int) -> bytes:
    """
    Extract the archive bytes from the request body.

    Accepts raw ZIP bytes, base64 text, or JSON ``{"fileData": "<base64>"}``.

    Raises:
        MalformedRequestError: If the body is empty or cannot be decoded
        PayloadTooLargeError: If the archive exceeds ``max_bytes``
    """
    body = await request.body()
    if not body:
        raise MalformedRequestError(_NO_FILE_MESSAGE)
    # Base64 inflates by 4/3, anything far beyond that cannot fit
    if len(body) > max_bytes * 2:
        raise PayloadTooLargeError(f"Upload exceeds the {max_bytes} byte limit.")

    if "application/json" in request.headers.get("content-type", ""):
        try:
            upload = UploadRequest.model_validate_json(body)
        except ValidationError:
            raise MalformedRequestError(_NO_FILE_MESSAGE)
        archive = _decode_base64(upload.file_data)
    elif body.startswith(_ZIP_MAGIC):
        archive = body
    else:
        try:
            archive = _decode_base64(body.decode("ascii"))
        except UnicodeDecodeError:
            raise MalformedRequestError("Upload is neither a .zip file nor base64 text.")

    if not archive:
        raise MalformedRequestError(_NO_FILE_MESSAGE)
    if len(archive) > max_bytes:
        raise PayloadTooLargeError(f"Upload exceeds the {max_bytes} byte limit.")
    return archive


@router.post("/scan", response_model=ScanResponse)
async def scan_archive(request: Request) -> ScanResponse:
    """
    Scrub an uploaded archive.

    Hardcoded provider keys and connection strings assigned to variables are
    moved into a generated `.env` file; every other detected secret is
    redacted. The response carries the new archive as base64.
    """
    state = request.app.state
    settings = state.settings
    gate = state.quota_gate
    client = client_key(request, settings.client_ip_headers)

    decision = await gate.check_and_reserve(client)
    if not decision.allowed:
        raise QuotaExceededError(decision.count, decision.limit)

    try:
        archive = await read_archive(request, settings.max_upload_bytes)
        output, result = await run_in_threadpool(state.transcoder.process, archive)
    except Exception:
        await gate.release(client)
        raise

    try:
        count = await gate.commit(client)
    except QuotaStoreError:
        await gate.release(client)
        raise
    logger.info(
        f"Scan for {client}: {len(result.refactors)} refactored, "
        f"{len(result.redactions)} redacted ({count}/{gate.limit} scans used)"
    )

    return ScanResponse(
        refactored_keys=result.refactored_keys,
        redacted_keys=result.redacted_keys,
        download_data=base64.b64encode(output).decode("ascii"),
        remaining_scans=max(gate.limit - count, 0),
        message=f"Scan complete! Found {result.total_findings} potential keys.",
    )
