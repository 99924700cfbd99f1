# =============================================================================
# Warehouse Query Agent — Questions over Mutualised Company Data
# =============================================================================
#
# Answers statistical questions ("quelle est la marge moyenne dans le BTP ?")
# from the firm's mutualised company records:
#
#   1. extract_metrics()  → which metrics the question is about
#   2. statistics         → mean / median / count per metric over the
#                           sector's records; when none match, over all
#                           records, reported as "Tous secteurs"
#   3. LLM                → phrases the answer around those figures
#
# source_count is the number of records used and confidence the share of
# them that carry every requested metric; both are computed, not guessed.
# =============================================================================

from __future__ import annotations

import logging
import re
import statistics
from typing import Any

from cabinet.agents.base import Agent
from cabinet.agents.review import sector_records
from cabinet.models.domain import (
    CompanyRecord,
    MetricStatistics,
    WarehouseAnswer,
    WarehouseData,
)
from cabinet.services.llm import LLMProvider

logger = logging.getLogger(__name__)

ALL_SECTORS = "Tous secteurs"

DEFAULT_METRICS = ["ca", "resultat", "effectif"]

# (metric, pattern) in extraction order
_METRIC_PATTERNS = [
    ("ca", re.compile(r"\bca\b|chiffre d'affaires")),
    ("marge", re.compile(r"marge|rentabilité")),
    ("resultat", re.compile(r"résultat|bénéfice")),
    ("effectif", re.compile(r"effectif|employés|salariés")),
    ("charges", re.compile(r"coût|cout|dépense")),
]

METRIC_DESCRIPTIONS = {
    "ca": "chiffre d'affaires",
    "marge": "marge bénéficiaire",
    "resultat": "résultat net",
    "effectif": "nombre d'employés",
    "charges": "charges d'exploitation",
}


def extract_metrics(query: str) -> list[str]:
    """Metrics a question refers to, or the default trio."""
    lowered = query.lower().replace("’", "'")
    metrics = [name for name, pattern in _METRIC_PATTERNS if pattern.search(lowered)]
    return metrics or list(DEFAULT_METRICS)


def metric_statistics(
    records: list[CompanyRecord],
    metrics: list[str],
) -> dict[str, MetricStatistics]:
    """Mean, median and count of each metric over the records reporting it."""
    result = {}
    for metric in metrics:
        values = [
            value for value in (getattr(r, metric, None) for r in records)
            if value is not None
        ]
        if not values:
            continue
        result[metric] = MetricStatistics(
            mean=statistics.fmean(values),
            median=statistics.median(values),
            count=len(values),
        )
    return result


def coverage(records: list[CompanyRecord], metrics: list[str]) -> float:
    """Share of records carrying every metric."""
    if not records:
        return 0.0
    complete = sum(
        1 for r in records
        if all(getattr(r, metric, None) is not None for metric in metrics)
    )
    return complete / len(records)


class WarehouseQueryAgent(Agent):
    """Statistical Q&A over the firm's mutualised data warehouse."""

    default_name = "WarehouseQuery"
    default_description = (
        "Interroge le datawarehouse mutualisé du cabinet pour répondre aux "
        "questions statistiques"
    )
    default_system_prompt = (
        "Tu es l'agent d'interrogation du datawarehouse mutualisé d'un cabinet "
        "d'expertise comptable.\n"
        "Tu réponds aux questions en t'appuyant uniquement sur les statistiques "
        "fournies, de manière factuelle, concise et professionnelle."
    )
    default_capabilities = ("statistiques_sectorielles",)

    conversation_temperature = 0.3

    apology = (
        "Désolé, je n'ai pas pu traiter votre demande. Veuillez réessayer "
        "ultérieurement."
    )

    def __init__(
        self,
        llm: LLMProvider,
        records: list[CompanyRecord] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(llm, **kwargs)
        self.records = list(records or [])

    async def process(self, input_text: str) -> str:
        return (await self.query(input_text)).response

    async def query(self, question: str, sector: str | None = None) -> WarehouseAnswer:
        metrics = extract_metrics(question)
        records, fell_back = sector_records(self.records, sector)
        if fell_back:
            logger.info(
                "%s: no record in sector %s, answering over all sectors",
                self.name, sector,
            )
            sector = None
        stats = metric_statistics(records, metrics)

        try:
            response = await self._complete(
                [{"role": "user", "content": self._prompt(question, metrics, sector, stats, len(records))}],
                temperature=self.conversation_temperature,
            )
        except Exception as e:
            logger.warning("%s: completion failed: %s", self.name, e)
            self._log_conscience(f"{self.name} could not answer: {e}")
            return WarehouseAnswer(
                response=self.apology,
                data=None,
                source_count=0,
                confidence=0.0,
                original_query=question,
            )

        self.send_message(response.content, {"metrics": metrics})
        return WarehouseAnswer(
            response=response.content,
            data=WarehouseData(
                metrics=metrics,
                sector=sector or ALL_SECTORS,
                statistics=stats,
                sector_fallback=fell_back,
            ),
            source_count=len(records),
            confidence=coverage(records, metrics),
            original_query=question,
        )

    @staticmethod
    def _prompt(
        question: str,
        metrics: list[str],
        sector: str | None,
        stats: dict[str, MetricStatistics],
        record_count: int,
    ) -> str:
        scope = f"dans le secteur {sector}" if sector else "tous secteurs confondus"
        described = ", ".join(METRIC_DESCRIPTIONS.get(m, m) for m in metrics)
        figures = "\n".join(
            f"- {METRIC_DESCRIPTIONS.get(m, m)}: moyenne {s.mean:.2f}, "
            f"médiane {s.median:.2f} ({s.count} entreprises)"
            for m, s in stats.items()
        ) or "- aucune donnée disponible"
        return (
            f'Question de l\'utilisateur: "{question}"\n\n'
            "En tant qu'agent d'interrogation du datawarehouse mutualisé, "
            "réponds à cette question en te basant sur l'analyse statistique "
            f"des données d'entreprises {scope}.\n\n"
            f"Métriques identifiées comme pertinentes: {described}\n\n"
            f"Statistiques calculées sur {record_count} entreprises:\n{figures}\n\n"
            "Dans ta réponse:\n"
            "1. Cite les chiffres fournis (moyennes, médianes)\n"
            "2. Mentionne que ces données proviennent du datawarehouse mutualisé\n"
            "3. Indique le nombre d'entreprises analysées\n"
            "4. Reste factuel et objectif\n\n"
            "Réponds de manière concise et professionnelle."
        )
