import math
import time

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import PlainTextResponse

from pastebox.errors import ContentTooLarge, DuplicateId, StorageUnavailable, ValidationFailed
from pastebox.ids import generate_paste_id
from pastebox.logger import logger
from pastebox.runtime import Runtime
from pastebox.schemas import PasteCreate, PasteCreated, PasteMetadataOut, PasteOut
from pastebox.services.bot_detection import detect_bot_headers, detect_bot_submission
from pastebox.services.client_identity import get_client_ip, hash_ip
from pastebox.services.paste_service import CreatePasteInput

router = APIRouter(prefix="/api/pastes", tags=["pastes"])

# expired, burned and never-existed all look the same from outside
NOT_FOUND = "Paste not found"


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def _rate_limit(
    request: Request, response: Response, runtime: Runtime, action: str, scope: str | None = None
) -> dict[str, str]:
    """Consume one unit of ``action`` for the client; raise 429 when exhausted, else return the rate headers."""
    identity = get_client_ip(request)
    if scope is not None:
        identity = f"{identity}/{scope}"
    result = runtime.rate_limiter.check(identity, action)
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(int(result.reset_at)),
    }
    if not result.allowed:
        retry_after = max(1, math.ceil(result.reset_at - time.time()))
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests",
            headers={**headers, "X-RateLimit-Remaining": "0", "Retry-After": str(retry_after)},
        )
    response.headers.update(headers)
    return headers


def _bot_reason(request: Request, body: PasteCreate, runtime: Runtime) -> str | None:
    settings = runtime.settings
    reason = detect_bot_submission(body.honeypot, body.rendered_at, settings.bot_min_fill_seconds)
    if reason is None and settings.bot_header_check:
        reason = detect_bot_headers(request.headers)
    return reason


def _storage_unavailable(exc: Exception) -> HTTPException:
    logger.error("Storage unavailable: %s", exc)
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Storage unavailable, try again")


@router.post("", response_model=PasteCreated, status_code=status.HTTP_201_CREATED)
def create_paste(
    body: PasteCreate,
    request: Request,
    response: Response,
    runtime: Runtime = Depends(get_runtime),
):
    _rate_limit(request, response, runtime, "create")

    bot_reason = _bot_reason(request, body, runtime)
    if bot_reason is not None:
        # answer like a success so the client learns nothing; the id leads nowhere
        logger.info("Dropped automated paste submission (%s)", bot_reason)
        return {"id": generate_paste_id()}

    ip = get_client_ip(request)
    data = CreatePasteInput(**body.model_dump(exclude={"honeypot", "rendered_at"}))
    try:
        paste_id = runtime.pastes.create(data, ip_hash=hash_ip(ip, runtime.settings.ip_hash_secret))
    except ContentTooLarge as exc:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(exc))
    except ValidationFailed as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except (StorageUnavailable, DuplicateId) as exc:
        raise _storage_unavailable(exc)
    return {"id": paste_id}


@router.get("/{paste_id}", response_model=PasteOut)
def get_paste(
    paste_id: str,
    request: Request,
    response: Response,
    runtime: Runtime = Depends(get_runtime),
):
    _rate_limit(request, response, runtime, "view")
    try:
        paste = runtime.pastes.retrieve(paste_id)
    except StorageUnavailable as exc:
        raise _storage_unavailable(exc)
    if paste is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND)
    return paste


@router.get("/{paste_id}/meta", response_model=PasteMetadataOut)
def get_paste_metadata(
    paste_id: str,
    request: Request,
    response: Response,
    runtime: Runtime = Depends(get_runtime),
):
    _rate_limit(request, response, runtime, "view")
    try:
        metadata = runtime.pastes.retrieve_metadata(paste_id)
    except StorageUnavailable as exc:
        raise _storage_unavailable(exc)
    if metadata is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND)
    return metadata


@router.get("/{paste_id}/raw", response_class=PlainTextResponse)
def get_raw_content(
    paste_id: str,
    request: Request,
    response: Response,
    runtime: Runtime = Depends(get_runtime),
):
    rate_headers = _rate_limit(request, response, runtime, "view")
    try:
        content = runtime.pastes.retrieve_raw_content(paste_id)
    except StorageUnavailable as exc:
        raise _storage_unavailable(exc)
    if content is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND)
    return PlainTextResponse(
        content,
        headers={**rate_headers, "Cache-Control": "public, max-age=300"},
    )


@router.post("/{paste_id}/decrypt-attempts", status_code=status.HTTP_204_NO_CONTENT)
def record_decrypt_attempt(
    paste_id: str,
    request: Request,
    response: Response,
    runtime: Runtime = Depends(get_runtime),
):
    # decryption happens in the browser; it asks here before every password try
    _rate_limit(request, response, runtime, "decrypt", scope=paste_id)
    try:
        metadata = runtime.pastes.retrieve_metadata(paste_id)
    except StorageUnavailable as exc:
        raise _storage_unavailable(exc)
    if metadata is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND)
    if not metadata.is_encrypted:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Paste is not encrypted")
    return None
