# =============================================================================
# Sectoral Agent — Benchmarking and Sector Watch
# =============================================================================
#
# Positions a client against its sector and follows sector trends:
#   analyze_sectoral_position() → client vs. peers on four axes
#   analyze_sectoral_trends()   → structural trends for a client category
#   generate_sectoral_insights()→ insights extracted from recent news
#
# The news lookup goes through an injected NewsProvider, shared with the
# client-strategy agent via NewsReaderAgent. Without one, or when the
# lookup fails or times out, the news-based operation returns its error
# payload like any other provider failure.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from typing import Any

from cabinet.agents.base import Agent
from cabinet.models.domain import StructuredError
from cabinet.services.llm import LLMProvider
from cabinet.services.news import NewsProvider
from cabinet.services.structured import StructuredOutputError, to_prompt_json

logger = logging.getLogger(__name__)


def _json_document(data: Any) -> dict[str, Any] | list[Any]:
    if not isinstance(data, (dict, list)):
        raise StructuredOutputError("expected a JSON object or list")
    return data


class NewsReaderAgent(Agent):
    """
    Agent whose operations can be grounded in a news lookup.

    The lookup is bounded by the agent timeout like a completion call.
    A missing provider, a timeout or a failed lookup all come back as
    StructuredError("<operation> failed").
    """

    def __init__(
        self,
        llm: LLMProvider,
        news: NewsProvider | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(llm, **kwargs)
        self._news = news

    async def _lookup_news(self, operation: str, query: str) -> str | StructuredError:
        if self._news is None:
            logger.warning("%s: %s needs a news provider", self.name, operation)
            return StructuredError(error=f"{operation} failed")
        try:
            return await asyncio.wait_for(
                self._news.get_updates(query), timeout=self.timeout,
            )
        except Exception as e:
            # TimeoutError carries no message
            reason = str(e) or type(e).__name__
            logger.warning("%s: news lookup failed: %s", self.name, reason)
            self._log_conscience(f"{self.name} {operation} failed: {reason}")
            return StructuredError(error=f"{operation} failed")


class SectoralAgent(NewsReaderAgent):
    """Sector analysis and peer benchmarking."""

    default_name = "Analyste Sectoriel"
    default_description = "Spécialiste en analyse sectorielle et benchmarking"
    default_system_prompt = (
        "Tu es un expert en analyse sectorielle pour cabinet d'expertise "
        "comptable.\n"
        "Ta mission est d'analyser les données d'un client par rapport à son "
        "secteur d'activité.\n"
        "Tu compares les ratios financiers, la structure de coûts et les "
        "indicateurs de performance.\n"
        "Tu identifies les forces, faiblesses et opportunités du client face à "
        "ses pairs.\n"
        "Tu repères les tendances sectorielles et les risques potentiels pour "
        "formuler des recommandations stratégiques."
    )
    default_capabilities = ("benchmark", "tendances", "veille_sectorielle")

    conversation_temperature = 0.4

    async def process(self, input_text: str) -> str:
        return await self._converse(input_text)

    async def analyze_sectoral_position(
        self,
        client_data: Any,
        sectoral_data: Any,
    ) -> dict[str, Any] | list[Any] | StructuredError:
        prompt = (
            f"Sur base des données client suivantes:\n{to_prompt_json(client_data)}\n\n"
            f"Et des données sectorielles suivantes:\n{to_prompt_json(sectoral_data)}\n\n"
            "Analyse la position de l'entreprise par rapport à son secteur selon "
            "ces axes:\n"
            "1. Ratios financiers clés (rentabilité, liquidité, solvabilité)\n"
            "2. Structure des coûts et marges\n"
            "3. Productivité et indicateurs opérationnels\n"
            "4. Dynamique de croissance\n\n"
            "Pour chaque axe, détermine:\n"
            "- Position actuelle (percentile dans le secteur)\n"
            "- Forces distinctives\n"
            "- Zones de fragilité\n"
            "- Opportunités d'amélioration\n"
            "- Recommandations adaptées au secteur"
        )
        return await self._extract(
            "analyze_sectoral_position", prompt, 0.4, _json_document,
        )

    async def analyze_sectoral_trends(
        self,
        sectoral_data: Any,
        client_category: str,
    ) -> dict[str, Any] | list[Any] | StructuredError:
        prompt = (
            f"Sur base des données sectorielles suivantes:\n{to_prompt_json(sectoral_data)}\n\n"
            f"Pour une entreprise de catégorie: {client_category}\n\n"
            "Identifie les principales tendances sectorielles actuelles:\n"
            "1. Évolution des indicateurs clés sur les 3 dernières années\n"
            "2. Modifications structurelles du secteur\n"
            "3. Nouveaux modèles économiques émergeants\n"
            "4. Impacts réglementaires récents ou annoncés\n\n"
            "Pour chaque tendance, détermine:\n"
            "- Description et importance stratégique\n"
            "- Niveau d'impact potentiel (faible, moyen, fort)\n"
            "- Horizon temporel (court, moyen, long terme)\n"
            "- Opportunités à saisir\n"
            "- Risques à anticiper\n"
            "- Stratégies d'adaptation recommandées"
        )
        return await self._extract(
            "analyze_sectoral_trends", prompt, 0.5, _json_document,
        )

    async def generate_sectoral_insights(
        self,
        sector_name: str,
    ) -> dict[str, Any] | list[Any] | StructuredError:
        """Insights for a sector, grounded in a news lookup."""
        operation = "generate_sectoral_insights"
        news = await self._lookup_news(
            operation, f"actualités récentes secteur {sector_name} finance économie",
        )
        if isinstance(news, StructuredError):
            return news

        prompt = (
            f"Sur base des actualités sectorielles suivantes:\n{news}\n\n"
            f"Pour le secteur: {sector_name}\n\n"
            "Extrais les insights stratégiques pertinents pour les entreprises du "
            "secteur:\n"
            "1. Développements majeurs récents\n"
            "2. Impacts économiques et financiers probables\n"
            "3. Opportunités commerciales ou stratégiques\n"
            "4. Risques émergents à surveiller\n\n"
            "Pour chaque insight, précise:\n"
            "- Description synthétique\n"
            "- Source(s) identifiée(s)\n"
            "- Niveau de confiance (faible, moyen, élevé)\n"
            "- Pertinence stratégique (1-5)\n"
            "- Applications pratiques pour une entreprise du secteur"
        )
        return await self._extract(operation, prompt, 0.6, _json_document)
