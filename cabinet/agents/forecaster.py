# =============================================================================
# Forecaster Agent — Scenarios, Hypotheses, Follow-up Missions
# =============================================================================
#
# Two kinds of forecast:
#
#   generate_scenarios()   → 24-month neutral / optimized / critical
#                            projections from financial + sectoral data
#   forecast_hypothesis()  → "what if" analysis of a business hypothesis:
#                            optimiste / neutre / pessimiste headline deltas,
#                            strategic insights and impact scores
#
# suggest_missions() then turns scenarios into engagement names the firm
# can offer.
#
# DESIGN DECISION: The hypothesis forecast always answers.
# It feeds a dashboard, so a provider or parse failure returns a
# conservative default forecast flagged with `fallback=True` rather than
# an error payload. Impact scores are computed locally from the deltas.
# =============================================================================

from __future__ import annotations

import logging
import re
from typing import Any

from cabinet.agents.base import Agent
from cabinet.models.domain import (
    ForecastScenarios,
    HypothesisForecast,
    HypothesisScenario,
    ImpactScore,
    StructuredError,
)
from cabinet.services.structured import (
    StructuredOutputError,
    extract_json_block,
    to_prompt_json,
    with_json_instruction,
)

logger = logging.getLogger(__name__)

HYPOTHESIS_SCENARIOS = ("optimiste", "neutre", "pessimiste")

DEFAULT_INSIGHTS = [
    "La gestion de trésorerie sera un facteur critique de succès, "
    "particulièrement dans le scénario pessimiste où une baisse significative "
    "est anticipée.",
    "L'investissement dans la formation des équipes pourrait atténuer "
    "l'impact négatif sur la productivité dans les scénarios moins favorables.",
    "Une stratégie de diversification des revenus permettrait de réduire la "
    "volatilité prévue dans les différents scénarios.",
]

# Item numbers at line starts; "2.5%" inside an item is not a split point
# Item numbers at line starts only, so decimals inside an item survive
_NUMBERED_ITEM = re.compile(r"(?m)^\s*\d+\.\s+")
_LEADING_NUMBER = re.compile(r"^\s*([+-]?\d+(?:[.,]\d+)?)")


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def _leading_number(value: Any) -> float:
    """Numeric prefix of a delta such as "+10%" or "-15k€"; 0 when absent."""
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    match = _LEADING_NUMBER.match(str(value))
    if match is None:
        return 0.0
    return float(match.group(1).replace(",", "."))


def calculate_impact_scores(
    scenarios: dict[str, HypothesisScenario],
) -> dict[str, ImpactScore]:
    """
    Score each scenario from its headline deltas.

        financial   = |CA + 2 x marge|
        operational = |effectifs x 5|
        investment  = |investissements / 10000|
        total       = financial + operational + investment
    """
    scores: dict[str, ImpactScore] = {}
    for name, scenario in scenarios.items():
        financial = abs(
            _leading_number(scenario.revenue) + 2 * _leading_number(scenario.margin)
        )
        operational = abs(_leading_number(scenario.headcount) * 5)
        investment = abs(_leading_number(scenario.investments) / 10000)
        scores[name] = ImpactScore(
            financial=financial,
            operational=operational,
            investment=investment,
            total=financial + operational + investment,
        )
    return scores


def split_insights(text: str) -> list[str]:
    """Split a numbered list ("1. ... 2. ...") into its items."""
    return [part.strip() for part in _NUMBERED_ITEM.split(text) if part.strip()]


def default_hypothesis_forecast(
    hypothesis: str,
    sector: str | None = None,
) -> HypothesisForecast:
    """Conservative forecast used when the model cannot be reached."""
    scenarios = {
        "optimiste": HypothesisScenario(
            revenue="+10%", margin="+8%", cash="+15k€",
            headcount="+2", investments="+20k€",
        ),
        "neutre": HypothesisScenario(
            revenue="+5%", margin="+3%", cash="+5k€",
            headcount="0", investments="+10k€",
        ),
        "pessimiste": HypothesisScenario(
            revenue="-2%", margin="-5%", cash="-10k€",
            headcount="-1", investments="0k€",
        ),
    }
    return HypothesisForecast(
        hypothesis=hypothesis,
        sector=sector,
        scenarios=scenarios,
        justification=(
            "Estimation basée sur des données historiques similaires du "
            "datawarehouse mutualisé."
        ),
        key_factors=[
            "Tendance générale du marché",
            "Inflation estimée à 2%",
            "Concurrence stable",
        ],
        reliability=0.75,
        insights=list(DEFAULT_INSIGHTS),
        impact_scores=calculate_impact_scores(scenarios),
        fallback=True,
    )


def _mission_name(item: Any) -> str | None:
    if isinstance(item, dict):
        return item.get("name") or item.get("titre") or item.get("mission")
    if isinstance(item, str):
        return item
    return None


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------


class ForecasterAgent(Agent):
    """Financial and strategic forecasting for client companies."""

    default_name = "Prévisionniste Stratégique"
    default_description = (
        "Spécialiste en prévision financière et stratégique pour cabinet comptable"
    )
    default_system_prompt = (
        "Tu es un expert en prévision financière et stratégique pour cabinet "
        "d'expertise comptable.\n"
        "Ta mission est d'analyser les données financières et sectorielles "
        "pour produire des prévisions crédibles.\n"
        "Tu génères 3 scénarios (neutre, optimisé, critique) et tu proposes "
        "des missions d'accompagnement adaptées.\n"
        "Tu as accès aux données du cabinet et du secteur pour contextualiser "
        "tes analyses.\n"
        "Tu sais identifier les risques financiers et les opportunités de "
        "croissance dès les premiers signaux."
    )
    default_capabilities = ("scenarios", "hypotheses", "missions")

    conversation_temperature = 0.7

    async def process(self, input_text: str) -> str:
        return await self._converse(input_text)

    async def generate_scenarios(
        self,
        financial_data: Any,
        sectoral_data: Any,
    ) -> ForecastScenarios | StructuredError:
        prompt = (
            f"Sur base des données financières suivantes:\n{to_prompt_json(financial_data)}\n\n"
            f"Et des données sectorielles suivantes:\n{to_prompt_json(sectoral_data)}\n\n"
            "Génère trois scénarios de prévision pour les 24 prochains mois:\n"
            "1. neutral_scenario: tendances actuelles prolongées\n"
            "2. optimized_scenario: avec optimisation de la gestion\n"
            "3. critical_scenario: avec matérialisation des risques identifiés\n\n"
            "Pour chaque scénario, fournis:\n"
            "- revenue_evolution: évolution du CA ([{month, value}])\n"
            "- cash_evolution: évolution de la trésorerie ([{month, value}])\n"
            "- wc_requirements: évolution du BFR ([{month, value}])\n"
            "- risks: principaux risques\n"
            "- opportunities: opportunités clés\n\n"
            "Renvoie un objet JSON avec les clés neutral_scenario, "
            "optimized_scenario et critical_scenario."
        )
        return await self._extract(
            "generate_scenarios", prompt, 0.5, ForecastScenarios.model_validate,
        )

    async def suggest_missions(self, scenarios: Any) -> list[str]:
        """
        Engagement names derived from forecast scenarios.

        Returns the raw answer as a single item when the model did not
        produce a JSON block, and a single error item on failure.
        """
        prompt = with_json_instruction(
            f"Sur base des scénarios de prévision suivants:\n{to_prompt_json(scenarios)}\n\n"
            "Propose 3 à 5 missions d'accompagnement que le cabinet d'expertise "
            "comptable pourrait offrir pour aider le client à optimiser sa "
            "trajectoire financière et éviter les risques.\n\n"
            "Pour chaque mission:\n"
            "- name: un nom court et explicite\n"
            "- objectif: l'objectif principal en une phrase\n"
            "- impact: l'impact attendu sur les indicateurs financiers\n\n"
            "Renvoie une liste JSON."
        )
        try:
            response = await self._complete(
                [{"role": "user", "content": prompt}], temperature=0.7,
            )
        except Exception as e:
            logger.warning("%s: suggest_missions failed: %s", self.name, e)
            self._log_conscience(f"{self.name} suggest_missions failed: {e}")
            return ["Erreur lors de la génération des missions"]

        try:
            missions = extract_json_block(response.content)
        except StructuredOutputError as e:
            if "no ```json block" in str(e):
                return [response.content]
            logger.warning("%s: could not parse missions: %s", self.name, e)
            return ["Erreur: Format de réponse invalide"]

        if isinstance(missions, dict):
            missions = missions.get("missions", [missions])
        if not isinstance(missions, list):
            return ["Erreur: Format de réponse invalide"]
        return [name for name in map(_mission_name, missions) if name]

    # -----------------------------------------------------------------------
    # Hypothesis forecasting
    # -----------------------------------------------------------------------

    async def forecast_hypothesis(
        self,
        hypothesis: str,
        sector: str | None = None,
    ) -> HypothesisForecast:
        """
        Analyse a business hypothesis ("Et si on recrutait 2 développeurs ?").

        Returns the default forecast (fallback=True) when the scenarios
        cannot be produced; insights fall back to defaults independently.
        """
        forecast = await self._extract(
            "forecast_hypothesis",
            self._hypothesis_prompt(hypothesis, sector),
            0.5,
            lambda data: self._parse_hypothesis(data, hypothesis, sector),
        )
        if isinstance(forecast, StructuredError):
            logger.info(
                "%s: using default forecast for '%s' (%s)",
                self.name, hypothesis[:80], forecast.error,
            )
            return default_hypothesis_forecast(hypothesis, sector)

        forecast.insights = await self._hypothesis_insights(forecast)
        forecast.impact_scores = calculate_impact_scores(forecast.scenarios)
        return forecast

    def _hypothesis_prompt(self, hypothesis: str, sector: str | None) -> str:
        return (
            f'Analyse cette hypothèse business: "{hypothesis}"\n'
            f"Pour le secteur: {sector or 'Non spécifié'}\n\n"
            "En t'appuyant sur des entreprises comparables du datawarehouse "
            "mutualisé, estime l'impact de cette hypothèse à 12 mois selon "
            "trois scénarios: optimiste, neutre, pessimiste.\n\n"
            "Renvoie un objet JSON avec les clés:\n"
            "- scenarios: {optimiste, neutre, pessimiste}, chacun avec CA, "
            "marge, tresorerie, effectifs, investissements exprimés en "
            "variations (ex: \"+5%\", \"-10k€\", \"+2\")\n"
            "- justification: justification de l'estimation\n"
            "- facteurs_cles: liste des facteurs clés\n"
            "- fiabilite: fiabilité de l'estimation entre 0 et 1"
        )

    @staticmethod
    def _parse_hypothesis(
        data: Any,
        hypothesis: str,
        sector: str | None,
    ) -> HypothesisForecast:
        if not isinstance(data, dict):
            raise StructuredOutputError("hypothesis block is not an object")
        raw_scenarios = data.get("scenarios") or {}
        missing = [name for name in HYPOTHESIS_SCENARIOS if name not in raw_scenarios]
        if missing:
            raise StructuredOutputError(f"missing scenarios: {missing}")

        return HypothesisForecast(
            hypothesis=hypothesis,
            sector=sector,
            scenarios={
                name: HypothesisScenario.model_validate(raw_scenarios[name])
                for name in HYPOTHESIS_SCENARIOS
            },
            justification=str(data.get("justification") or ""),
            key_factors=[str(f) for f in data.get("facteurs_cles") or []],
            reliability=float(data.get("fiabilite", 0.75)),
        )

    async def _hypothesis_insights(self, forecast: HypothesisForecast) -> list[str]:
        blocks = []
        for name, scenario in forecast.scenarios.items():
            lines = "\n".join(
                f"- {key}: {value}"
                for key, value in scenario.model_dump(by_alias=True).items()
                if value is not None
            )
            blocks.append(f"Scénario {name}:\n{lines}")

        prompt = (
            f'Analyse cette hypothèse business: "{forecast.hypothesis}"\n'
            f"Pour le secteur: {forecast.sector or 'Non spécifié'}\n\n"
            + "\n\n".join(blocks)
            + "\n\nGénère 3 insights stratégiques pertinents basés sur ces "
            "projections, sous forme de liste numérotée."
        )
        text = await self._ask("hypothesis_insights", prompt, 0.7, fallback="")
        insights = split_insights(text)
        return insights or list(DEFAULT_INSIGHTS)
