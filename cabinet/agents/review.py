# =============================================================================
# Review Agent — Accounting Review, Anomalies, Correcting Entries
# =============================================================================
#
# Two review paths share this agent:
#
# 1. LLM review (structured, fenced JSON):
#    analyze_entries()       → anomalies found in the entries
#    generate_od_proposals() → correcting entries (OD) per anomaly
#    analyze_sectoral_gaps() → per-account gaps vs. sector averages
#
# 2. Local financial review (review_financials):
#
#    FEC entries ─► compute_kpis ─┐
#                                 ├─► compare_with_sector ─► detect_anomalies
#    peer records ─► average_sector_metrics ┘                     │
#                                        LLM mission recommendations ◄┘
#
#    KPIs, comparisons and anomalies are pure computations; only the
#    mission recommendations call the model.
#
# DESIGN DECISION: Anomaly thresholds on the absolute gap to the sector
# average: > 15% LOW, > 30% MEDIUM, > 50% HIGH. LOW anomalies are reported
# but do not trigger mission recommendations.
# =============================================================================

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from typing import Any

from cabinet.agents.base import Agent
from cabinet.models.domain import (
    AccountingEntry,
    Anomaly,
    CompanyRecord,
    FinancialKPIs,
    FinancialReview,
    MissionRecommendation,
    MissionType,
    ODProposal,
    SectorComparison,
    Severity,
    StructuredError,
)
from cabinet.services.structured import StructuredOutputError, to_prompt_json

logger = logging.getLogger(__name__)

# Metrics compared with the sector, in report order
REVIEW_METRICS = (
    "ca", "resultat", "effectif", "charges", "marge", "dso", "dpo", "tresorerie",
)

METRIC_LABELS = {
    "ca": "Chiffre d'affaires",
    "resultat": "Résultat net",
    "effectif": "Effectif",
    "charges": "Charges d'exploitation",
    "marge": "Marge bénéficiaire",
    "dso": "Délai moyen de paiement clients",
    "dpo": "Délai moyen de paiement fournisseurs",
    "tresorerie": "Trésorerie",
}

# Subject used in anomaly descriptions
_METRIC_SUBJECTS = {
    "ca": "Chiffre d'affaires",
    "resultat": "Résultat net",
    "effectif": "Effectif",
    "charges": "Charges d'exploitation",
    "marge": "Marge bénéficiaire",
    "dso": "Délai de paiement clients",
    "dpo": "Délai de paiement fournisseurs",
    "tresorerie": "Niveau de trésorerie",
}

ANOMALY_THRESHOLD_PCT = 15.0
MEDIUM_THRESHOLD_PCT = 30.0
HIGH_THRESHOLD_PCT = 50.0

DEFAULT_DIFFICULTY = 5

DEFAULT_RECOMMENDATIONS = [
    MissionRecommendation(
        title="Optimisation du BFR",
        description=(
            "Mission d'optimisation des délais de paiement clients et "
            "fournisseurs pour améliorer la trésorerie"
        ),
        type=MissionType.GESTION,
        estimated_impact="15 000€",
        priority=8,
        difficulty=2,
        duration="2 mois",
    ),
    MissionRecommendation(
        title="Révision de la structure des charges",
        description=(
            "Analyse détaillée des postes de charges et identification des "
            "économies potentielles"
        ),
        type=MissionType.OPTIMISATION,
        estimated_impact="25 000€",
        priority=7,
        difficulty=3,
        duration="3 mois",
    ),
    MissionRecommendation(
        title="Mise en place d'indicateurs de pilotage",
        description=(
            "Création d'un tableau de bord avec KPIs pertinents pour suivre la "
            "performance"
        ),
        type=MissionType.GESTION,
        estimated_impact="10 000€",
        priority=6,
        difficulty=4,
        duration="1 mois",
    ),
]


# ---------------------------------------------------------------------------
# Pure computations
# ---------------------------------------------------------------------------


def account_balances(entries: Iterable[AccountingEntry]) -> dict[str, float]:
    """Debit-positive balance per account number."""
    balances: dict[str, float] = defaultdict(float)
    for entry in entries:
        balances[entry.account_number] += entry.amount if entry.debit else -entry.amount
    return dict(balances)


def compute_kpis(
    entries: Iterable[AccountingEntry],
    company: CompanyRecord,
) -> FinancialKPIs:
    """
    Headline KPIs for one company.

    Revenue, result and headcount come from the company record; operating
    charges (class 6) and cash (class 5) are computed from the entries.
    """
    balances = account_balances(entries)
    ca = company.ca or 0.0
    resultat = company.resultat or 0.0

    return FinancialKPIs(
        ca=ca,
        resultat=resultat,
        effectif=company.effectif or 0.0,
        charges=sum(abs(b) for acc, b in balances.items() if acc.startswith("6")),
        marge=(resultat / ca * 100) if ca else 0.0,
        dso=company.dso or 45.0,
        dpo=company.dpo or 30.0,
        tresorerie=sum(b for acc, b in balances.items() if acc.startswith("5")),
        account_balances=balances,
    )


def sector_records(
    records: list[CompanyRecord],
    sector: str | None,
) -> tuple[list[CompanyRecord], bool]:
    """
    Records whose sector contains `sector` (case-insensitive).

    Returns (records, fell_back). When a sector is given but no record
    matches, every record is returned and fell_back is True so callers
    can label the figures as all-sector ones.
    """
    if not sector:
        return list(records), False
    needle = sector.lower()
    matching = [r for r in records if r.secteur and needle in r.secteur.lower()]
    if not matching:
        return list(records), True
    return matching, False


def filter_by_sector(
    records: list[CompanyRecord],
    sector: str | None,
) -> list[CompanyRecord]:
    """Records whose sector contains `sector`; all records when none match."""
    return sector_records(records, sector)[0]


def average_sector_metrics(
    peers: list[CompanyRecord],
    sector: str | None = None,
) -> dict[str, float]:
    """
    Mean of each review metric over the sector's peers.

    Missing values count as zero, so a metric few peers report averages low.
    """
    records = filter_by_sector(peers, sector)
    if not records:
        return {metric: 0.0 for metric in REVIEW_METRICS}

    averages = {}
    for metric in REVIEW_METRICS:
        total = sum(getattr(r, metric) or 0.0 for r in records)
        averages[metric] = total / len(records)
    return averages


def compare_with_sector(
    kpis: FinancialKPIs,
    averages: dict[str, float],
) -> dict[str, SectorComparison]:
    """Gap to the sector average per metric; metrics averaging 0 are skipped."""
    comparisons = {}
    for metric in REVIEW_METRICS:
        average = averages.get(metric)
        if not average:
            continue
        value = getattr(kpis, metric)
        comparisons[metric] = SectorComparison(
            value=value,
            average=average,
            gap=value - average,
            gap_pct=(value - average) / average * 100,
        )
    return comparisons


def severity_for(gap_pct: float) -> Severity | None:
    """Severity of a gap, None when it is not significant."""
    magnitude = abs(gap_pct)
    if magnitude > HIGH_THRESHOLD_PCT:
        return Severity.HIGH
    if magnitude > MEDIUM_THRESHOLD_PCT:
        return Severity.MEDIUM
    if magnitude > ANOMALY_THRESHOLD_PCT:
        return Severity.LOW
    return None


def describe_anomaly(metric: str, gap_pct: float) -> str:
    direction = "supérieur" if gap_pct > 0 else "inférieur"
    magnitude = f"{abs(gap_pct):.1f}"
    subject = _METRIC_SUBJECTS.get(metric)
    if subject is None:
        return (
            f"Écart de {magnitude}% {direction} à la moyenne sectorielle "
            f"pour {metric}"
        )
    return f"{subject} {magnitude}% {direction} à la moyenne sectorielle"


def detect_anomalies(comparisons: dict[str, SectorComparison]) -> list[Anomaly]:
    anomalies = []
    for metric, comparison in comparisons.items():
        severity = severity_for(comparison.gap_pct)
        if severity is None:
            continue
        anomalies.append(Anomaly(
            metric=metric,
            label=METRIC_LABELS.get(metric, metric),
            gap_pct=comparison.gap_pct,
            gap_value=comparison.gap,
            severity=severity,
            description=describe_anomaly(metric, comparison.gap_pct),
        ))
    return anomalies


def _field_value(line: str) -> str:
    return line[line.index(":") + 1:].strip()


def parse_mission_recommendations(text: str) -> list[MissionRecommendation]:
    """
    Parse blank-line separated mission blocks:

        Titre: ...
        Description: ...
        Type: RH | GESTION | JURIDIQUE | FISCAL | OPTIMISATION
        Impact: ...
        Difficulté: 1-10
        Durée: ...

    Blocks without both a title and a description are dropped.
    Priority is 10 - difficulty.
    """
    missions = []
    for block in text.split("\n\n"):
        lines = [line.strip() for line in block.split("\n")]
        if not any(line.startswith(("Titre:", "Title:")) for line in lines):
            continue

        title = description = impact = duration = ""
        mission_type = MissionType.OPTIMISATION
        difficulty = DEFAULT_DIFFICULTY
        for line in lines:
            if line.startswith(("Titre:", "Title:")):
                title = _field_value(line)
            elif line.startswith("Description:"):
                description = _field_value(line)
            elif line.startswith("Type:"):
                value = _field_value(line).upper()
                if value in MissionType.__members__:
                    mission_type = MissionType(value)
            elif line.startswith("Impact:"):
                impact = _field_value(line)
            elif line.startswith(("Difficulté:", "Difficulte:")):
                digits = _field_value(line).split("/")[0].strip()
                if digits.lstrip("-").isdigit():
                    difficulty = int(digits)
            elif line.startswith(("Durée:", "Duree:")):
                duration = _field_value(line)

        if title and description:
            missions.append(MissionRecommendation(
                title=title,
                description=description,
                type=mission_type,
                estimated_impact=impact,
                priority=10 - difficulty,
                difficulty=difficulty,
                duration=duration,
            ))
    return missions


def _as_list(data: Any, *keys: str) -> list[Any]:
    if isinstance(data, dict):
        for key in keys:
            if isinstance(data.get(key), list):
                return data[key]
        return [data]
    if not isinstance(data, list):
        raise StructuredOutputError("expected a JSON list")
    return data


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------


class ReviewAgent(Agent):
    """Accounting review: anomalies, sector gaps, correcting entries."""

    default_name = "Agent de Révision"
    default_description = "Spécialiste en révision comptable et détection d'anomalies"
    default_system_prompt = (
        "Tu es un expert en révision comptable pour cabinet d'expertise "
        "comptable.\n"
        "Ta mission est d'analyser les écritures comptables pour détecter les "
        "anomalies, incohérences et risques.\n"
        "Tu dois comparer les montants aux données sectorielles pour "
        "identifier les écarts significatifs.\n"
        "Tu proposes des écritures d'ordre (OD) pour corriger les problèmes "
        "identifiés.\n"
        "Tu évalues la criticité des anomalies et justifies tes propositions "
        "avec des références comptables et fiscales."
    )
    default_capabilities = ("revision", "anomalies", "od", "ecarts_sectoriels")

    conversation_temperature = 0.3

    async def process(self, input_text: str) -> str:
        return await self._converse(input_text)

    # -----------------------------------------------------------------------
    # LLM review
    # -----------------------------------------------------------------------

    async def analyze_entries(
        self,
        accounting_data: Any,
        sectoral_data: Any,
    ) -> dict[str, Any] | StructuredError:
        prompt = (
            f"Sur base des données comptables suivantes:\n{to_prompt_json(accounting_data)}\n\n"
            f"Et des données sectorielles suivantes:\n{to_prompt_json(sectoral_data)}\n\n"
            "Identifie toutes les anomalies dans les écritures comptables:\n"
            "1. Erreurs d'équilibre débit/crédit\n"
            "2. Utilisation de comptes incorrects\n"
            "3. Montants anormaux par rapport au secteur\n"
            "4. Écritures potentiellement en doublon\n"
            "5. Problèmes de TVA (taux, déductibilité)\n\n"
            "Renvoie un objet JSON avec une clé anomalies. Pour chaque anomalie, "
            "indique:\n"
            "- type d'anomalie\n"
            "- comptes concernés\n"
            "- montants impliqués\n"
            "- criticité (haute, moyenne, basse)\n"
            "- écart par rapport aux références sectorielles si applicable\n"
            "- proposition d'OD corrective\n"
            "- justification comptable et réglementaire"
        )
        return await self._extract("analyze_entries", prompt, 0.3, _as_object("anomalies"))

    async def generate_od_proposals(
        self,
        anomalies: Any,
    ) -> list[ODProposal] | StructuredError:
        prompt = (
            f"Sur base des anomalies détectées suivantes:\n{to_prompt_json(anomalies)}\n\n"
            "Génère des propositions d'écritures d'ordre (OD) correctives pour "
            "chaque anomalie.\n\n"
            "Renvoie une liste JSON. Pour chaque OD, précise:\n"
            "- description: description de l'OD\n"
            "- date: date proposée\n"
            "- mouvements: [{compte, libelle, debit, credit}]\n"
            "- justification: justification comptable et réglementaire complète\n"
            "- impact: impact sur le bilan et le résultat"
        )
        return await self._extract(
            "generate_od_proposals", prompt, 0.4,
            lambda data: [
                ODProposal.model_validate(item)
                for item in _as_list(data, "od", "ods", "propositions")
            ],
        )

    async def analyze_sectoral_gaps(
        self,
        accounting_data: Any,
        sectoral_data: Any,
    ) -> dict[str, Any] | StructuredError:
        prompt = (
            f"Sur base des données comptables suivantes:\n{to_prompt_json(accounting_data)}\n\n"
            f"Et des données sectorielles suivantes:\n{to_prompt_json(sectoral_data)}\n\n"
            "Analyse les écarts entre les postes comptables de l'entreprise et "
            "les moyennes sectorielles.\n\n"
            "Renvoie un objet JSON avec une clé ecarts. Pour chaque poste "
            "significatif, indique:\n"
            "- intitulé du poste\n"
            "- montant actuel\n"
            "- moyenne sectorielle\n"
            "- écart en valeur et en pourcentage\n"
            "- évaluation de l'écart (normal, attention, critique)\n"
            "- causes possibles de l'écart\n"
            "- recommandations pour l'optimisation"
        )
        return await self._extract(
            "analyze_sectoral_gaps", prompt, 0.4, _as_object("ecarts"),
        )

    # -----------------------------------------------------------------------
    # Local financial review
    # -----------------------------------------------------------------------

    async def review_financials(
        self,
        entries: list[AccountingEntry],
        company: CompanyRecord,
        peers: list[CompanyRecord],
        sector: str | None = None,
    ) -> FinancialReview:
        """
        KPIs, sector comparison and anomalies for one company, plus
        mission recommendations for its MEDIUM/HIGH anomalies.
        """
        sector = sector or company.secteur
        kpis = compute_kpis(entries, company)
        records, fell_back = sector_records(peers, sector)
        if fell_back:
            logger.info(
                "%s: no peer in sector %s, comparing with all peers", self.name, sector,
            )
        comparisons = compare_with_sector(kpis, average_sector_metrics(records))
        anomalies = detect_anomalies(comparisons)
        logger.info(
            "%s: %d anomalies for %s",
            self.name, len(anomalies), company.raison_sociale or company.siren,
        )

        recommendations, fallback = await self._recommend_missions(
            anomalies, company, sector,
        )
        return FinancialReview(
            kpis=kpis,
            comparisons=comparisons,
            anomalies=anomalies,
            recommendations=recommendations,
            recommendations_fallback=fallback,
            sector_fallback=fell_back,
        )

    async def _recommend_missions(
        self,
        anomalies: list[Anomaly],
        company: CompanyRecord,
        sector: str | None,
    ) -> tuple[list[MissionRecommendation], bool]:
        significant = [a for a in anomalies if a.severity != Severity.LOW]
        if not significant:
            return [], False

        context = "\n".join(
            f"{a.label}: écart de {a.gap_pct:.1f}% ({a.gap_value:.0f}), "
            f"sévérité {a.severity.value}"
            for a in significant
        )
        revenue = f"{company.ca:,.0f}€".replace(",", " ") if company.ca else "Non spécifié"
        prompt = (
            f"Entreprise: {company.raison_sociale or 'Non spécifiée'}\n"
            f"Secteur: {sector or 'Non spécifié'}\n"
            f"CA: {revenue}\n"
            f"Effectif: {company.effectif or 'Non spécifié'}\n\n"
            f"Anomalies détectées:\n{context}\n\n"
            "En tant qu'expert-comptable, propose 3 missions à forte valeur "
            "ajoutée pour cette entreprise, en te basant sur les anomalies "
            "détectées.\n\n"
            "Format de réponse pour chaque mission, missions séparées par une "
            "ligne vide:\n"
            "Titre: [titre]\n"
            "Description: [description]\n"
            "Type: [RH, GESTION, JURIDIQUE, FISCAL ou OPTIMISATION]\n"
            "Impact: [impact financier estimé en euros]\n"
            "Difficulté: [1-10]\n"
            "Durée: [durée]"
        )
        text = await self._ask("recommend_missions", prompt, 0.7, fallback="")
        missions = parse_mission_recommendations(text)
        if not missions:
            logger.info("%s: using default mission recommendations", self.name)
            return [r.model_copy() for r in DEFAULT_RECOMMENDATIONS], True
        return missions, False


def _as_object(key: str):
    """Parser accepting an object, or a bare list wrapped under `key`."""

    def parse(data: Any) -> dict[str, Any]:
        if isinstance(data, list):
            return {key: data}
        if not isinstance(data, dict):
            raise StructuredOutputError("expected a JSON object")
        return data

    return parse
