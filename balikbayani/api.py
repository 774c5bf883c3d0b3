# balikbayani/api.py
from __future__ import annotations
import json
import logging
from typing import Any, Generic, TypeVar, TypeAlias
from dataclasses import dataclass, field

import httpx

from .config import API_BASE_URL, AUTH_COOKIE, HTTP_TIMEOUT
from .form_data_builder import ProgramType, PROGRAM_REGISTRY

logger = logging.getLogger(__name__)

T = TypeVar('T')

NETWORK_ERROR_MESSAGE: str = "Network error. Please check your internet connection and try again."
UNEXPECTED_RESPONSE_MESSAGE: str = "Unexpected response from server."

# ===================================================================
# 1. RESULT TYPES (nothing past this module sees a raw response)
# ===================================================================

@dataclass(frozen=True)
class Ok(Generic[T]):
    data: T


@dataclass(frozen=True)
class Err:
    # 0 means the request never got an HTTP answer.
    code: int
    message: str = ''


ApiResult: TypeAlias = 'Ok[Any] | Err'


@dataclass(frozen=True)
class DocumentRecord:
    id: str
    document_type: str
    file_name: str
    mime_type: str = ''
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CorrectionItem:
    field_key: str
    message: str = ''


@dataclass(frozen=True)
class Blob:
    content: bytes
    content_type: str = 'application/octet-stream'

# ===================================================================
# 2. DECODING
# ===================================================================

def parse_meta(raw: Any) -> dict[str, Any]:
    """Document metadata arrives as an object or as a JSON string. Anything else is `{}`."""
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str) and raw.strip():
        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.warning("Discarding document metadata that is not valid JSON.")
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}

def _error_message(body: Any) -> str:
    if isinstance(body, dict):
        return str(body.get('error') or body.get('message') or '')
    return ''

def decode_envelope(response: httpx.Response) -> ApiResult:
    """`{success, data}` on 2xx becomes Ok(data); non-2xx and `success: false` become Err."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if not response.is_success:
        message = _error_message(body) or response.text.strip()
        return Err(response.status_code, message)
    if not isinstance(body, dict):
        return Err(response.status_code, UNEXPECTED_RESPONSE_MESSAGE)
    if not body.get('success'):
        return Err(response.status_code, _error_message(body))
    return Ok(body.get('data'))

def _decode_document(item: Any) -> DocumentRecord | None:
    if not isinstance(item, dict) or item.get('id') is None:
        return None
    return DocumentRecord(
        id=str(item['id']),
        document_type=str(item.get('document_type') or ''),
        file_name=str(item.get('file_name') or ''),
        mime_type=str(item.get('mime_type') or ''),
        meta=parse_meta(item.get('meta')),
    )

def _decode_correction(item: Any) -> CorrectionItem | None:
    if not isinstance(item, dict) or not item.get('field_key'):
        return None
    return CorrectionItem(field_key=str(item['field_key']), message=str(item.get('message') or ''))

# ===================================================================
# 3. THE CLIENT
# ===================================================================

class PortalApiClient:
    """
    Thin async client for the portal backend.

    Every method returns Ok/Err. Transport failures become Err(0, ...) so callers
    can degrade instead of handling httpx exceptions.
    """

    def __init__(self, base_url: str = API_BASE_URL, *, token: str | None = None,
                 transport: httpx.AsyncBaseTransport | None = None,
                 timeout: float | None = HTTP_TIMEOUT) -> None:
        self.token = token
        kwargs: dict[str, Any] = {'base_url': base_url, 'transport': transport}
        if token:
            kwargs['cookies'] = {AUTH_COOKIE: token}
        if timeout is not None:
            kwargs['timeout'] = timeout
        self._client = httpx.AsyncClient(**kwargs)

    async def __aenter__(self) -> PortalApiClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response | Err:
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {url} failed: {e}")
            return Err(0, NETWORK_ERROR_MESSAGE)

    async def _request(self, method: str, url: str, **kwargs: Any) -> ApiResult:
        response = await self._send(method, url, **kwargs)
        if isinstance(response, Err):
            return response
        return decode_envelope(response)

    # --- Reads ---

    async def get_application(self, program: ProgramType, application_id: str) -> Ok[dict[str, Any]] | Err:
        url = PROGRAM_REGISTRY[program]['endpoints']['application'].format(id=application_id)
        result = await self._request('GET', url)
        if isinstance(result, Ok) and not isinstance(result.data, dict):
            return Err(200, UNEXPECTED_RESPONSE_MESSAGE)
        return result

    async def get_corrections(self, program: ProgramType, application_id: str) -> Ok[list[CorrectionItem]] | Err:
        url = PROGRAM_REGISTRY[program]['endpoints']['corrections'].format(id=application_id)
        result = await self._request('GET', url)
        if isinstance(result, Err):
            return result
        items = result.data if isinstance(result.data, list) else []
        return Ok([c for c in map(_decode_correction, items) if c is not None])

    async def list_documents(self, application_id: str, application_type: str) -> Ok[list[DocumentRecord]] | Err:
        result = await self._request('GET', '/documents', params={
            'applicationId': application_id, 'applicationType': application_type,
        })
        if isinstance(result, Err):
            return result
        items = result.data if isinstance(result.data, list) else []
        return Ok([d for d in map(_decode_document, items) if d is not None])

    async def fetch_document(self, document_id: str) -> Ok[Blob] | Err:
        """Binary content, not an envelope."""
        response = await self._send('GET', f'/documents/{document_id}/view')
        if isinstance(response, Err):
            return response
        if not response.is_success:
            return Err(response.status_code, _error_message(_safe_json(response)))
        content_type = response.headers.get('content-type', 'application/octet-stream').split(';')[0].strip()
        return Ok(Blob(content=response.content, content_type=content_type))

    async def validate_session(self) -> bool:
        if not self.token:
            return False
        result = await self._request('POST', '/auth/validate', json={'token': self.token})
        return isinstance(result, Ok)

    # --- Writes ---

    async def create_application(self, program: ProgramType, *, json_body: dict[str, Any] | None = None,
                                 data: dict[str, str] | None = None,
                                 files: list[tuple[str, tuple[str, bytes, str]]] | None = None) -> ApiResult:
        url = PROGRAM_REGISTRY[program]['endpoints']['create']
        return await self._request('POST', url, **_body_kwargs(json_body, data, files))

    async def resolve_corrections(self, program: ProgramType, application_id: str, *,
                                  json_body: dict[str, Any] | None = None,
                                  data: dict[str, str] | None = None,
                                  files: list[tuple[str, tuple[str, bytes, str]]] | None = None) -> ApiResult:
        url = PROGRAM_REGISTRY[program]['endpoints']['resolve'].format(id=application_id)
        return await self._request('POST', url, **_body_kwargs(json_body, data, files))


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None

def _body_kwargs(json_body: dict[str, Any] | None, data: dict[str, str] | None,
                 files: list[tuple[str, tuple[str, bytes, str]]] | None) -> dict[str, Any]:
    if json_body is not None:
        return {'json': json_body}
    kwargs: dict[str, Any] = {'data': data or {}}
    if files:
        kwargs['files'] = files
    return kwargs
