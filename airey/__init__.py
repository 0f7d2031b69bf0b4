"""
AIREY recommendation bridge — gated automatic strategy execution for DeFi vaults.

Submodules:
    store         — latest recommendation per vault, request table, execution history
    oracle_bridge — request issuance, fulfillment correlation, expiry sweep
    gate          — freshness / confidence / cooldown decision
    coordinator   — end-to-end request → gate → execute → record
    executor      — VaultExecutor implementations (simulated, HTTP keeper)
    computer      — RecommendationComputer interface and relay job
    events        — RequestIssued / RecommendationUpdated and the broadcaster
    persistence   — Redis-backed stores with in-memory fallback
"""
