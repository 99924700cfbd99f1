# =============================================================================
# Agents Package — Specialised Agents, Orchestrator, Insights Engine
# =============================================================================
# Implements the firm's multi-agent core:
#   - base.py: Agent abstract class (memory, conscience journal, observers)
#   - orchestrator.py: registry, message routing, session journal
#   - insights.py: confidence-weighted store of cross-source findings
#   - counsel.py, forecaster.py, review.py, sectoral.py,
#     client_strategy.py: domain agents built on the fenced-JSON contract
#   - safe_advisor.py: sensitivity-gated general advice
#   - warehouse.py: statistics over mutualised company records
#
# build_cabinet() assembles the default set for a host: one provider, one
# orchestrator with every agent registered, one insights engine.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from cabinet.agents.base import Agent, AgentObserver
from cabinet.agents.client_strategy import ClientStrategyAgent
from cabinet.agents.counsel import CounselAgent
from cabinet.agents.forecaster import ForecasterAgent
from cabinet.agents.insights import InsightsConfig, InsightsEngine
from cabinet.agents.orchestrator import Orchestrator
from cabinet.agents.review import ReviewAgent
from cabinet.agents.safe_advisor import SafeAdvisorAgent
from cabinet.agents.sectoral import NewsReaderAgent, SectoralAgent
from cabinet.agents.warehouse import WarehouseQueryAgent
from cabinet.models.domain import CompanyRecord
from cabinet.services.llm import LLMProvider
from cabinet.services.news import NewsProvider

logger = logging.getLogger(__name__)

AGENT_KINDS: dict[str, type[Agent]] = {
    "counsel": CounselAgent,
    "forecaster": ForecasterAgent,
    "review": ReviewAgent,
    "sectoral": SectoralAgent,
    "client_strategy": ClientStrategyAgent,
    "safe_advisor": SafeAdvisorAgent,
    "warehouse": WarehouseQueryAgent,
}

__all__ = [
    "AGENT_KINDS",
    "Agent",
    "AgentObserver",
    "Cabinet",
    "ClientStrategyAgent",
    "CounselAgent",
    "ForecasterAgent",
    "InsightsConfig",
    "InsightsEngine",
    "NewsReaderAgent",
    "Orchestrator",
    "ReviewAgent",
    "SafeAdvisorAgent",
    "SectoralAgent",
    "WarehouseQueryAgent",
    "build_cabinet",
]


@dataclass
class Cabinet:
    """Everything a host needs for one session."""

    orchestrator: Orchestrator
    insights: InsightsEngine
    advisor: SafeAdvisorAgent
    warehouse: WarehouseQueryAgent
    forecaster: ForecasterAgent
    review: ReviewAgent
    llm: LLMProvider
    news: NewsProvider | None = None

    def new_agent(
        self,
        kind: str,
        llm: LLMProvider | None = None,
        **overrides: Any,
    ) -> Agent:
        """
        Construct (not register) an agent of a known kind.

        The agent uses the cabinet's provider unless `llm` is given. News
        readers share the cabinet's news provider and warehouse agents its
        records.
        """
        agent_class = AGENT_KINDS[kind]
        provider = llm if llm is not None else self.llm
        if issubclass(agent_class, NewsReaderAgent):
            return agent_class(provider, news=self.news, **overrides)
        if agent_class is WarehouseQueryAgent:
            return agent_class(provider, records=self.warehouse.records, **overrides)
        return agent_class(provider, **overrides)


def build_cabinet(
    llm: LLMProvider,
    news: NewsProvider | None = None,
    records: list[CompanyRecord] | None = None,
    insights_config: InsightsConfig | None = None,
) -> Cabinet:
    """Construct and register the default agents around one provider."""
    orchestrator = Orchestrator()

    advisor = SafeAdvisorAgent(llm)
    warehouse = WarehouseQueryAgent(llm, records=records)
    forecaster = ForecasterAgent(llm)
    review = ReviewAgent(llm)

    for agent in (
        CounselAgent(llm),
        forecaster,
        review,
        SectoralAgent(llm, news=news),
        ClientStrategyAgent(llm, news=news),
        advisor,
        warehouse,
    ):
        orchestrator.register_agent(agent)

    logger.info(
        "Cabinet ready: %d agents, %d warehouse records, news=%s",
        len(orchestrator.get_agents()), len(warehouse.records), news is not None,
    )
    return Cabinet(
        orchestrator=orchestrator,
        insights=InsightsEngine(llm, config=insights_config),
        advisor=advisor,
        warehouse=warehouse,
        forecaster=forecaster,
        review=review,
        llm=llm,
        news=news,
    )
