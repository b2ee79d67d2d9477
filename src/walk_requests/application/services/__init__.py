"""Application services."""

from walk_requests.application.services.conditional_mutation_engine import (
    ConditionalMutationEngine,
)
from walk_requests.application.services.walk_request_service import (
    Transition,
    WalkRequestService,
)

__all__ = ["ConditionalMutationEngine", "Transition", "WalkRequestService"]
