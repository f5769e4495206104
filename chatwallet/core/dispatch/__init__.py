from .dispatcher import (
    BUSY_TEXT,
    ActionDispatcher,
    DispatchOutcome,
    OutcomeKind,
    normalize_action,
    param_prompt,
)

__all__ = [
    "BUSY_TEXT",
    "ActionDispatcher",
    "DispatchOutcome",
    "OutcomeKind",
    "normalize_action",
    "param_prompt",
]
