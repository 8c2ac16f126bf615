# Scheduling algorithms
from .sm2 import (
    InitialState,
    PrioritySM2Scheduler,
    ReviewResult,
    Scheduler,
    compute_initial_state,
    compute_next_state,
)

__all__ = [
    "InitialState",
    "PrioritySM2Scheduler",
    "ReviewResult",
    "Scheduler",
    "compute_initial_state",
    "compute_next_state",
]
