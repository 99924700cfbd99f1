# =============================================================================
# Services Package — Provider Access and Output Contracts
# =============================================================================
# Contains what the agents use to reach the outside world:
#   - llm.py: Multi-provider completion abstraction (Anthropic,
#     OpenAI-compatible), configured from settings or a provider id
#   - news.py: News lookup provider (Perplexity, OpenAI-compatible API)
#   - structured.py: Fenced ```json block contract for structured answers
# =============================================================================
