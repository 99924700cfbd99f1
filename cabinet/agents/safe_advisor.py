# =============================================================================
# Safe Advisor Agent — Sensitivity-Gated General Advice
# =============================================================================
#
# Answers general business questions without giving personalised tax or
# legal advice. Each query is classified on its own:
#
#   no sensitive term            → SAFE:         forwarded as is
#   sensitive + high-risk term   → BLOCKED:      fixed refusal, no model call
#   sensitive, no high-risk term → REFORMULATED: generalisation prefix,
#                                                warning banner on the answer
#
# Matching is a case-insensitive substring test against the lists below.
#
# DESIGN DECISION: Failure is reported as BLOCKED.
# When the model cannot be reached the caller gets the apology with
# safety="blocked": no advice was given, whatever the classification.
# =============================================================================

from __future__ import annotations

import logging

from cabinet.agents.base import Agent
from cabinet.models.domain import AdvisorResponse, SafetyLevel

logger = logging.getLogger(__name__)

SENSITIVE_TOPICS = (
    "fiscal", "impôt", "taxe", "juridique", "légal", "droit", "loi",
    "fraude", "optimisation fiscale", "évitement fiscal", "évasion",
    "blanchiment", "contourner", "illégal", "illicite", "sanction",
)

HIGH_RISK_TERMS = ("fraude", "illégal", "blanchiment")

REFORMULATION_PREFIX = "[Reformulation pour réponse générale et non-spécifique] "

WARNING_BANNER = (
    "⚠️ Avertissement: Je fournis ici des informations générales qui ne "
    "constituent pas un conseil fiscal ou juridique personnalisé.\n\n"
)

REFUSAL = (
    "Je ne peux pas fournir de conseils sur des sujets qui pourraient "
    "impliquer des activités illégales ou contraires à l'éthique. Je vous "
    "recommande de consulter un expert-comptable ou un avocat pour obtenir "
    "des conseils professionnels adaptés à votre situation spécifique."
)


def classify(query: str) -> SafetyLevel:
    """Safety level of a query, from its sensitive and high-risk terms."""
    lowered = query.lower()
    if not any(topic in lowered for topic in SENSITIVE_TOPICS):
        return SafetyLevel.SAFE
    if any(term in lowered for term in HIGH_RISK_TERMS):
        return SafetyLevel.BLOCKED
    return SafetyLevel.REFORMULATED


class SafeAdvisorAgent(Agent):
    """General accounting advice with tax/legal safety gating."""

    default_name = "SafeAdvisor"
    default_description = (
        "Conseiller généraliste qui évite les conseils fiscaux ou juridiques "
        "personnalisés"
    )
    default_system_prompt = (
        "Tu es un assistant qui aide les experts-comptables dans leurs "
        "missions de conseil.\n"
        "Tu fournis des informations générales, factuelles et pédagogiques "
        "fondées sur les normes comptables françaises.\n"
        "Tu ne donnes jamais de conseil fiscal ou juridique personnalisé et tu "
        "renvoies vers un professionnel qualifié lorsque la situation l'exige."
    )
    default_capabilities = ("conseil_general",)

    conversation_temperature = 0.5

    apology = (
        "Désolé, je n'ai pas pu traiter votre demande. Veuillez réessayer "
        "ultérieurement."
    )

    def classify(self, query: str) -> SafetyLevel:
        return classify(query)

    async def advise(self, query: str) -> AdvisorResponse:
        safety = classify(query)
        self._log_conscience(f"{self.name} classified query as {safety.value}")

        if safety == SafetyLevel.BLOCKED:
            logger.info("%s: blocked query '%s'", self.name, query[:80])
            self.send_message(REFUSAL, {"safety": safety.value})
            return AdvisorResponse(
                response=REFUSAL, safety=safety, original_query=query,
            )

        prompt = query
        if safety == SafetyLevel.REFORMULATED:
            prompt = REFORMULATION_PREFIX + query

        try:
            response = await self._complete(
                [{"role": "user", "content": prompt}],
                temperature=self.conversation_temperature,
            )
        except Exception as e:
            logger.warning("%s: completion failed: %s", self.name, e)
            self._log_conscience(f"{self.name} could not answer: {e}")
            return AdvisorResponse(
                response=self.apology,
                safety=SafetyLevel.BLOCKED,
                original_query=query,
            )

        answer = response.content
        if safety == SafetyLevel.REFORMULATED:
            answer = WARNING_BANNER + answer

        self.send_message(answer, {"safety": safety.value})
        return AdvisorResponse(response=answer, safety=safety, original_query=query)

    async def process(self, input_text: str) -> str:
        return (await self.advise(input_text)).response
