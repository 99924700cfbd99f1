# =============================================================================
# Counsel Agent — Mission Proposals, Justifications, Engagement Letters
# =============================================================================
#
# Turns client data and detected signals into billable engagements:
#   generate_mission_proposals()     → 3-5 MissionProposal records (JSON)
#   generate_mission_justification() → argued rationale (prose)
#   generate_mission_letter()        → engagement letter draft (prose)
#
# Temperatures go down as the output gets more formal: proposals are
# exploratory (0.6), letters are contractual (0.3).
# =============================================================================

from __future__ import annotations

import logging
from typing import Any

from cabinet.agents.base import Agent
from cabinet.models.domain import MissionProposal, StructuredError
from cabinet.services.structured import StructuredOutputError, to_prompt_json

logger = logging.getLogger(__name__)


def _parse_proposals(data: Any) -> list[MissionProposal]:
    if isinstance(data, dict):
        data = data.get("missions") or data.get("propositions") or [data]
    if not isinstance(data, list):
        raise StructuredOutputError("mission proposals block is not a list")
    return [MissionProposal.model_validate(item) for item in data]


class CounselAgent(Agent):
    """Strategic counsel: detects engagement opportunities for the firm."""

    default_name = "Conseiller Stratégique IA"
    default_description = (
        "Spécialiste en conseil et génération de missions pour cabinet comptable"
    )
    default_system_prompt = (
        "Tu es un conseiller stratégique IA pour cabinet d'expertise comptable.\n"
        "Ta mission est d'analyser les données client pour générer des "
        "propositions de missions à forte valeur ajoutée.\n"
        "Tu dois détecter les signaux faibles qui justifient une intervention "
        "du cabinet.\n"
        "Tu génères des propositions de missions précises, contextualisées et "
        "adaptées aux besoins spécifiques.\n"
        "Tu justifies chaque recommandation avec des arguments métier "
        "(comptables, fiscaux, juridiques, financiers).\n"
        "Tu utilises un langage professionnel d'expert-comptable pour "
        "formuler tes propositions."
    )
    default_capabilities = ("missions", "justification", "lettre_de_mission")

    conversation_temperature = 0.5

    async def process(self, input_text: str) -> str:
        return await self._converse(input_text)

    async def generate_mission_proposals(
        self,
        client_data: Any,
        signals: Any,
    ) -> list[MissionProposal] | StructuredError:
        """
        Propose 3 to 5 high-value engagements for a client.

        Each proposal carries at least a name; any extra field the model
        returns (fees, planning, expertise...) is kept on the record.
        """
        prompt = (
            f"Sur base des données client suivantes:\n{to_prompt_json(client_data)}\n\n"
            f"Et des signaux détectés suivants:\n{to_prompt_json(signals)}\n\n"
            "Génère 3 à 5 propositions de missions à haute valeur ajoutée pour "
            "ce client.\n\n"
            "Renvoie une liste JSON d'objets. Pour chaque mission, précise:\n"
            "- name: titre explicite de la mission\n"
            "- description: problématique, approche, livrables\n"
            "- impact: bénéfices quantifiables pour le client\n"
            "- signaux: signal(s) déclencheur(s) justifiant la mission\n"
            "- confiance: niveau de pertinence (pourcentage)\n"
            "- honoraires: fourchette estimée\n"
            "- planning: durée et étapes clés\n"
            "- expertises: expertise(s) requise(s)\n\n"
            "Utilise un langage professionnel adapté au secteur de l'expertise "
            "comptable."
        )
        result = await self._extract(
            "generate_mission_proposals", prompt, 0.6, _parse_proposals,
        )
        if not isinstance(result, StructuredError):
            logger.info("%s: %d mission proposals", self.name, len(result))
        return result

    async def generate_mission_justification(
        self,
        mission: Any,
        client_context: Any,
    ) -> str:
        prompt = (
            f"Sur base de la mission proposée suivante:\n{to_prompt_json(mission)}\n\n"
            f"Et du contexte client:\n{to_prompt_json(client_context)}\n\n"
            "Génère une justification détaillée et argumentée pour cette mission.\n\n"
            "Cette justification doit:\n"
            "- Expliquer pourquoi cette mission est pertinente maintenant\n"
            "- Citer les signaux faibles ou forts qui la justifient\n"
            "- Référencer des éléments chiffrés précis\n"
            "- Mentionner les risques de ne pas agir\n"
            "- Inclure des références réglementaires ou sectorielles si pertinent\n"
            "- Quantifier les bénéfices potentiels\n"
            "- Justifier le niveau d'honoraires\n\n"
            "La justification doit être rédigée dans un style professionnel, "
            "précis et convaincant."
        )
        return await self._ask(
            "generate_mission_justification", prompt, 0.4,
            fallback="Erreur lors de la génération de la justification.",
        )

    async def generate_mission_letter(
        self,
        mission: Any,
        client_info: Any,
        cabinet_info: Any,
    ) -> str:
        prompt = (
            "Génère une lettre de mission professionnelle pour la mission "
            f"suivante:\n{to_prompt_json(mission)}\n\n"
            f"Informations client:\n{to_prompt_json(client_info)}\n\n"
            f"Informations cabinet:\n{to_prompt_json(cabinet_info)}\n\n"
            "La lettre de mission doit inclure:\n"
            "1. En-tête professionnel\n"
            "2. Référence et date\n"
            "3. Contexte et objectifs de la mission\n"
            "4. Périmètre et limites de l'intervention\n"
            "5. Méthodologie et approche\n"
            "6. Livrables attendus\n"
            "7. Planning prévisionnel\n"
            "8. Équipe d'intervention et rôles\n"
            "9. Honoraires et modalités de facturation\n"
            "10. Conditions spécifiques\n"
            "11. Clause de confidentialité\n"
            "12. Signature\n\n"
            "Utilise un format professionnel et un style adapté au secteur de "
            "l'expertise comptable."
        )
        return await self._ask(
            "generate_mission_letter", prompt, 0.3,
            fallback="Erreur lors de la génération de la lettre de mission.",
        )
