"""Routing of prepared analyses to provider adapters."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from ..core.exceptions import AnalyzerError, ProviderError, UnknownProviderError
from ..core.logging import LoggerMixin
from ..domain.models import AnalysisResult, EncodedFile, ProviderId
from ..providers.base import ProviderAdapter


class Dispatcher(LoggerMixin):
    """
    Select the adapter for a provider and normalize its outcome.

    The dispatcher knows nothing about any backend: it only looks up the
    adapter and turns raised errors into failure results.
    """

    def __init__(self, adapters: Mapping[ProviderId, ProviderAdapter]) -> None:
        self._adapters = dict(adapters)

    @property
    def providers(self) -> list[ProviderId]:
        return list(self._adapters)

    def adapter_for(self, provider: ProviderId) -> ProviderAdapter:
        try:
            return self._adapters[provider]
        except KeyError:
            raise UnknownProviderError(str(provider.value)) from None

    async def dispatch(
        self,
        provider: ProviderId,
        prompt: str,
        files: Sequence[EncodedFile],
    ) -> AnalysisResult:
        """
        Run the selected adapter.

        Returns:
            A success result with the report, or a failure result carrying
            the classified error
        """
        try:
            adapter = self.adapter_for(provider)
        except UnknownProviderError as e:
            self.logger.error("adapter_not_registered", provider=provider.value)
            return AnalysisResult.failure(e, provider=provider)

        self.logger.debug("dispatching", provider=provider.value, model=adapter.model)
        try:
            report = await adapter.analyze(prompt, files)
        except AnalyzerError as e:
            return AnalysisResult.failure(e, provider=provider)
        except Exception as e:
            self.logger.exception("adapter_unexpected_error", provider=provider.value)
            return AnalysisResult.failure(
                ProviderError("Unexpected adapter failure", provider=provider.value, error=type(e).__name__),
                provider=provider,
            )
        return AnalysisResult.success(report, provider=provider)
