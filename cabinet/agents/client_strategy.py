# =============================================================================
# Client Strategy Agent — 360° Client Profile and Recommendations
# =============================================================================
#
#   generate_client_profile()            → identity, finance, market, SWOT
#   analyze_client_news()                → news lookup + strategic reading
#   generate_strategic_recommendations() → actionable roadmap
#
# Like the sectoral agent, it reads news through an optional NewsProvider.
# =============================================================================

from __future__ import annotations

from typing import Any

from cabinet.agents.sectoral import NewsReaderAgent, _json_document
from cabinet.models.domain import StructuredError
from cabinet.services.structured import to_prompt_json


class ClientStrategyAgent(NewsReaderAgent):
    default_name = "Stratège Client"
    default_description = "Spécialiste en stratégie et vision client à 360°"
    default_system_prompt = (
        "Tu es un expert en stratégie d'entreprise pour cabinet d'expertise "
        "comptable.\n"
        "Ta mission est d'analyser l'entreprise cliente dans sa globalité pour "
        "en dresser un portrait stratégique complet.\n"
        "Tu intègres des données financières, juridiques, commerciales et "
        "organisationnelles.\n"
        "Tu identifies les forces, faiblesses, opportunités, menaces et "
        "facteurs clés de succès.\n"
        "Tu formules des recommandations stratégiques adaptées au contexte "
        "spécifique du client.\n"
        "Tu utilises un langage professionnel tout en rendant accessible des "
        "concepts complexes."
    )
    default_capabilities = ("profil_360", "veille_client", "recommandations")

    conversation_temperature = 0.4

    async def process(self, input_text: str) -> str:
        return await self._converse(input_text)

    async def generate_client_profile(
        self,
        client_data: Any,
        market_data: Any,
        legal_data: Any,
    ) -> dict[str, Any] | list[Any] | StructuredError:
        prompt = (
            f"Sur base des données client suivantes:\n{to_prompt_json(client_data)}\n\n"
            f"Des données de marché:\n{to_prompt_json(market_data)}\n\n"
            f"Et des données juridiques:\n{to_prompt_json(legal_data)}\n\n"
            "Génère un profil stratégique complet du client à 360°:\n"
            "1. Identité et gouvernance (informations légales et structurelles, "
            "historique, dirigeants, culture d'entreprise)\n"
            "2. Analyse financière (performance récente, indicateurs clés et "
            "ratios, structure financière, évolution des principaux postes)\n"
            "3. Marché et positionnement (tendances du secteur, position "
            "concurrentielle, avantages compétitifs, parts de marché estimées)\n"
            "4. Analyse SWOT approfondie (forces, faiblesses, opportunités, "
            "menaces)\n"
            "5. Facteurs clés de succès (actuels et futurs, criticité et maîtrise)"
        )
        return await self._extract(
            "generate_client_profile", prompt, 0.4, _json_document,
        )

    async def analyze_client_news(
        self,
        client_name: str,
        sector: str,
    ) -> dict[str, Any] | list[Any] | StructuredError:
        operation = "analyze_client_news"
        news = await self._lookup_news(
            operation, f"actualités récentes entreprise {client_name} secteur {sector}",
        )
        if isinstance(news, StructuredError):
            return news

        prompt = (
            "Sur base des actualités suivantes concernant l'entreprise "
            f"{client_name} ou son secteur:\n{news}\n\n"
            "Analyse ces informations et extrais:\n"
            "1. Développements récents significatifs (faits marquants de "
            "l'entreprise, événements sectoriels, changements réglementaires)\n"
            "2. Impact stratégique potentiel (opportunités à court terme, "
            "menaces immédiates, tendances à surveiller)\n"
            "3. Recommandations pour l'expert-comptable (points d'attention, "
            "sujets du prochain entretien, informations à rechercher)\n\n"
            "Pour chaque élément, évalue sa fiabilité, sa pertinence et son "
            "impact potentiel."
        )
        return await self._extract(operation, prompt, 0.5, _json_document)

    async def generate_strategic_recommendations(
        self,
        client_profile: Any,
        sectoral_data: Any,
    ) -> dict[str, Any] | list[Any] | StructuredError:
        prompt = (
            f"Sur base du profil client:\n{to_prompt_json(client_profile)}\n\n"
            f"Et des données sectorielles:\n{to_prompt_json(sectoral_data)}\n\n"
            "Génère des recommandations stratégiques précises et actionnables "
            "pour ce client:\n"
            "1. Axes stratégiques prioritaires\n"
            "2. Opportunités de développement\n"
            "3. Optimisations structurelles\n"
            "4. Gestion des risques identifiés\n"
            "5. Feuille de route d'implémentation\n\n"
            "Pour chaque recommandation, indique:\n"
            "- Description détaillée\n"
            "- Bénéfices attendus\n"
            "- Difficulté de mise en œuvre (1-5)\n"
            "- Impact potentiel (1-5)\n"
            "- Délai de réalisation estimé"
        )
        return await self._extract(
            "generate_strategic_recommendations", prompt, 0.5, _json_document,
        )
