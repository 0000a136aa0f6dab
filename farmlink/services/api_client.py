"""
Request Dispatcher.

Every call the client makes to the backend passes through one
``ApiClient`` and its single ``httpx.AsyncClient``.  The dispatcher:

1. attaches ``Authorization: Bearer <token>`` when a token is stored;
2. classifies every failure exactly once into the ``farmlink.errors``
   taxonomy, so raw ``httpx`` or JSON exceptions never reach callers;
3. tears the session down globally on HTTP 401, whatever the caller
   does with the raised ``Unauthorized``;
4. reaps an expired session on any other classified failure.

There are no retries.  In development mode the ``AsyncClient`` is built
on a ``FixtureTransport``; nothing else about the code path changes.
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Callable, Optional, Sequence

import httpx

from farmlink.auth import SessionTerminator, TokenStore
from farmlink.config import AppConfig
from farmlink.errors import (
    ApiError,
    NetworkError,
    Unauthorized,
    UnknownError,
    error_for_status,
)
from farmlink.logger import StructuredLogger
from farmlink.models.auth_models import UploadResult

# (filename, content, content_type)
UploadFile = tuple[str, bytes, str]
ProgressCallback = Callable[[int], None]

_UPLOAD_CHUNK_SIZE: int = 64 * 1024


def _normalise_errors(raw: Any) -> Optional[dict[str, list[str]]]:
    """Coerce a backend ``errors`` map to ``{field: [message, ...]}``."""
    if not isinstance(raw, dict):
        return None
    normalised: dict[str, list[str]] = {}
    for field, messages in raw.items():
        if isinstance(messages, (list, tuple)):
            normalised[str(field)] = [str(m) for m in messages]
        else:
            normalised[str(field)] = [str(messages)]
    return normalised


async def _progress_stream(
    body: bytes,
    on_progress: ProgressCallback,
) -> AsyncIterator[bytes]:
    """Yield *body* in chunks, reporting the percentage sent after each."""
    total = len(body)
    if total == 0:
        on_progress(100)
        return
    sent = 0
    for start in range(0, total, _UPLOAD_CHUNK_SIZE):
        chunk = body[start:start + _UPLOAD_CHUNK_SIZE]
        sent += len(chunk)
        yield chunk
        on_progress(round(sent * 100 / total))


class ApiClient:
    """Single chokepoint for backend HTTP calls.

    Parameters
    ----------
    config:
        Supplies ``API_BASE_URL`` and ``REQUEST_TIMEOUT_S``.
    tokens:
        Source of the bearer token attached to each request.
    terminator:
        Session teardown invoked on 401 and used to reap expired tokens.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    transport:
        Optional ``httpx`` transport.  ``FixtureTransport`` in
        development mode, ``httpx.MockTransport`` in tests, ``None`` for
        the real network.
    """

    def __init__(
        self,
        config: AppConfig,
        tokens: TokenStore,
        terminator: SessionTerminator,
        logger: StructuredLogger,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._tokens: TokenStore = tokens
        self._terminator: SessionTerminator = terminator
        self._logger: StructuredLogger = logger
        self._client: httpx.AsyncClient = httpx.AsyncClient(
            base_url=config.API_BASE_URL,
            timeout=config.REQUEST_TIMEOUT_S,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # JSON verbs
    # ------------------------------------------------------------------

    async def get(self, url: str, params: Optional[dict[str, Any]] = None) -> Any:
        return await self.request("GET", url, params=params)

    async def post(self, url: str, data: Any = None) -> Any:
        return await self.request("POST", url, json=data)

    async def put(self, url: str, data: Any = None) -> Any:
        return await self.request("PUT", url, json=data)

    async def patch(self, url: str, data: Any = None) -> Any:
        return await self.request("PATCH", url, json=data)

    async def delete(self, url: str) -> Any:
        return await self.request("DELETE", url)

    async def request(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Send one JSON request and return the decoded response body.

        Raises
        ------
        ApiError
            The classified failure; ``Unauthorized`` after teardown on 401.
        """
        request = self._client.build_request(
            method, url, json=json, params=params, headers=self._auth_headers(),
        )
        return await self._dispatch(request)

    # ------------------------------------------------------------------
    # Multipart uploads
    # ------------------------------------------------------------------

    async def upload_file(
        self,
        url: str,
        file: UploadFile,
        on_progress: Optional[ProgressCallback] = None,
    ) -> UploadResult:
        """Upload a single file under the ``file`` form field."""
        body = await self._send_multipart(url, {"file": file}, on_progress)
        return UploadResult.model_validate(body or {})

    async def upload_files(
        self,
        url: str,
        files: Sequence[UploadFile],
        on_progress: Optional[ProgressCallback] = None,
    ) -> UploadResult:
        """Upload several files as ``files[0]``, ``files[1]``, ..."""
        fields = [(f"files[{index}]", file) for index, file in enumerate(files)]
        body = await self._send_multipart(url, fields, on_progress)
        return UploadResult.model_validate(body or {})

    async def _send_multipart(
        self,
        url: str,
        files: Any,
        on_progress: Optional[ProgressCallback],
    ) -> Any:
        request = self._client.build_request(
            "POST", url, files=files, headers=self._auth_headers(),
        )
        if on_progress is not None:
            body = request.read()
            headers = {
                **self._auth_headers(),
                "Content-Type": request.headers["Content-Type"],
                "Content-Length": str(len(body)),
            }
            request = self._client.build_request(
                "POST", url, content=_progress_stream(body, on_progress), headers=headers,
            )
        return await self._dispatch(request)

    # ------------------------------------------------------------------
    # Dispatch & classification
    # ------------------------------------------------------------------

    def _auth_headers(self) -> dict[str, str]:
        token = self._tokens.get_token()
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def _dispatch(self, request: httpx.Request) -> Any:
        try:
            response = await self._client.send(request)
        except httpx.DecodingError as exc:
            self._logger.warning(
                "%s %s returned an undecodable body.", request.method, request.url.path,
            )
            self._terminator.reap_if_expired()
            raise UnknownError() from exc
        except httpx.RequestError as exc:
            self._logger.warning(
                "%s %s failed: %s", request.method, request.url.path, type(exc).__name__,
            )
            self._terminator.reap_if_expired()
            raise NetworkError() from exc

        self._logger.debug(
            "%s %s -> %d", request.method, request.url.path, response.status_code,
        )
        if not response.is_success:
            raise self._classify(response)

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            self._terminator.reap_if_expired()
            raise UnknownError(status=response.status_code) from exc

    def _classify(self, response: httpx.Response) -> ApiError:
        """Build the classified error for a non-2xx *response*."""
        payload: Any = None
        if response.content:
            try:
                payload = response.json()
            except ValueError:
                payload = None

        message: Optional[str] = None
        errors: Optional[dict[str, list[str]]] = None
        if isinstance(payload, dict):
            if isinstance(payload.get("message"), str):
                message = payload["message"]
            errors = _normalise_errors(payload.get("errors"))

        status = response.status_code
        if status == 401:
            self._terminator.terminate("unauthorized")
            return Unauthorized(message, status)

        self._logger.warning(
            "%s %s rejected with HTTP %d.",
            response.request.method,
            response.request.url.path,
            status,
        )
        self._terminator.reap_if_expired()
        return error_for_status(status, message, errors)
