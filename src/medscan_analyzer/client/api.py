"""
Caller-side client for the analysis server.

The client encodes files locally and posts them to the server. It has no
way to hold or send a provider credential: the server owns those.
"""

from __future__ import annotations

import requests

from ..core.exceptions import AnalyzerError, EmptyResponseError, ErrorKind, ProviderError
from ..core.logging import LoggerMixin
from ..domain.models import AnalysisRequest, EncodedAnalysisRequest, ProviderId
from ..services.encoder import ChunkedEncoder, ProgressCallback
from ..services.size_guard import check_payload_size
from ..web.schemas import AnalyzePayload

# Only statuses the server uses for exactly one kind.
KIND_BY_STATUS: dict[int, ErrorKind] = {
    401: ErrorKind.INVALID_CREDENTIAL,
    413: ErrorKind.PAYLOAD_TOO_LARGE,
    429: ErrorKind.QUOTA_EXCEEDED,
}


class ServerResponseError(AnalyzerError):
    """
    The server answered with an error status.

    ``kind`` is exact for 401, 413 and 429. Other statuses are shared by
    several kinds (400, 502, 503) and are reported as ``ProviderError``;
    ``status_code`` and the server message are kept as sent.
    """

    def __init__(self, message: str, *, status_code: int) -> None:
        super().__init__(message, status_code=status_code)
        self.status_code = status_code
        self.kind = KIND_BY_STATUS.get(status_code, ErrorKind.PROVIDER_ERROR)

    def caller_message(self) -> str:
        return self.message


class BoundaryClient(LoggerMixin):
    """
    HTTP client for ``POST {base_url}/models/{provider}/analyze``.

    Args:
        base_url: API base, e.g. ``http://localhost:8000/api``
        encoder: Encoder used for local files
        max_total_bytes: Local pre-check before encoding
        timeout_seconds: HTTP timeout; covers the server's provider call
        session: Optional requests session
    """

    def __init__(
        self,
        base_url: str,
        *,
        encoder: ChunkedEncoder | None = None,
        max_total_bytes: int = 20 * 1_048_576,
        timeout_seconds: float = 330.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.encoder = encoder or ChunkedEncoder()
        self.max_total_bytes = max_total_bytes
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    def endpoint(self, provider: ProviderId) -> str:
        return f"{self.base_url}/models/{provider.value}/analyze"

    async def encode(
        self,
        request: AnalysisRequest,
        progress: ProgressCallback | None = None,
    ) -> EncodedAnalysisRequest:
        check_payload_size(request.files, self.max_total_bytes)
        files = await self.encoder.encode_files(request.files, progress)
        return EncodedAnalysisRequest(
            subject_name=request.subject_name,
            subject_age=request.subject_age,
            notes=request.notes,
            files=tuple(files),
        )

    def submit(self, provider: ProviderId | str, request: EncodedAnalysisRequest) -> str:
        """
        Send an encoded request and return the report text.

        Raises:
            AnalyzerError: Typed from the server's status and message
        """
        provider = ProviderId.parse(provider)
        body = AnalyzePayload.from_domain(request).to_json_body()
        url = self.endpoint(provider)
        self.logger.info("submitting_analysis", url=url, file_count=len(request.files))

        try:
            response = self.session.post(url, json=body, timeout=self.timeout_seconds)
        except requests.RequestException as e:
            raise ProviderError(f"Could not reach analysis server: {type(e).__name__}", provider="Server") from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if not response.ok:
            message = data.get("error") or f"API request failed with status {response.status_code}"
            self.logger.warning("analysis_rejected", status=response.status_code, error=message)
            raise ServerResponseError(message, status_code=response.status_code)

        if "result" not in data:
            raise EmptyResponseError("Server response had no result")
        return data["result"]
