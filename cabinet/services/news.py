# =============================================================================
# News Provider — Sector and Client News Retrieval
# =============================================================================
#
# The sectoral and client-strategy agents ground some of their analyses in
# recent news. They only need prose to paste into a prompt, so the contract
# is a single method: get_updates(query) -> str.
#
# DESIGN DECISION: Perplexity through the OpenAI SDK.
# Perplexity's online models answer with up-to-date, sourced prose and
# expose an OpenAI-compatible chat endpoint, so the same SDK used by
# OpenAICompatibleProvider works with a different base_url.
# =============================================================================

from __future__ import annotations

import logging
from typing import Protocol

from cabinet.config import settings

logger = logging.getLogger(__name__)


_NEWS_SYSTEM = (
    "Tu es un veilleur économique pour un cabinet d'expertise comptable. "
    "Résume les actualités récentes et vérifiables sur le sujet demandé, "
    "en citant les sources et les dates quand elles sont connues."
)


class NewsProvider(Protocol):
    """Protocol for news retrieval. Failure is signalled by an exception."""

    async def get_updates(self, query: str) -> str:
        ...


class PerplexityNewsProvider:
    """News retrieval backed by Perplexity's OpenAI-compatible API."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
    ) -> None:
        from openai import AsyncOpenAI

        resolved_key = api_key or settings.news_api_key
        if not resolved_key:
            raise ValueError(
                "No news API key configured. Set NEWS_API_KEY in .env"
            )

        self._client = AsyncOpenAI(
            api_key=resolved_key,
            base_url=base_url or settings.news_base_url,
        )
        self._model = model or settings.news_model

        logger.info("Initialized PerplexityNewsProvider (model=%s)", self._model)

    async def get_updates(self, query: str) -> str:
        """Return a prose digest of recent news for `query`."""
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": _NEWS_SYSTEM},
                {"role": "user", "content": query},
            ],
            temperature=0.2,
        )
        content = response.choices[0].message.content or ""
        logger.info(
            "News lookup complete: query='%s', chars=%d",
            query[:80], len(content),
        )
        return content


_news_provider: PerplexityNewsProvider | None = None


def get_news_provider() -> PerplexityNewsProvider:
    """Return the configured news provider, creating it on first use."""
    global _news_provider
    if _news_provider is None:
        _news_provider = PerplexityNewsProvider()
    return _news_provider
