# =============================================================================
# Models Package — Pydantic V2 Schemas
# =============================================================================
# Domain records live in domain.py; requests.py and responses.py define
# the host API's public contract.
#
# DESIGN DECISION: API schemas are separate from domain records.
# 1. Domain records are what agents exchange and return
# 2. API schemas add the envelopes and input limits the HTTP surface needs
# 3. Endpoints return a domain record as is when it is already the right shape
# =============================================================================
