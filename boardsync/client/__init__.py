from boardsync.client.api import BoardApiClient
from boardsync.client.engine import MUTATION_POLICIES, MutationPolicy, ReconciliationEngine
from boardsync.client.state import LocalBoard

__all__ = [
    "BoardApiClient",
    "LocalBoard",
    "MUTATION_POLICIES",
    "MutationPolicy",
    "ReconciliationEngine"
]
