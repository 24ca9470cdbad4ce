"""Wizard state definitions and transition map.

Step navigation happens inside IN_PROGRESS (and FAILED, which keeps the
customer on the last question). Only submission moves between states.
"""

from __future__ import annotations

from src.models.enums import WizardState

# Transition map: {current_state: {trigger_name: next_state}}
TRANSITIONS: dict[WizardState, dict[str, WizardState]] = {
    WizardState.IN_PROGRESS: {
        "start_submit": WizardState.SUBMITTING,
    },
    WizardState.SUBMITTING: {
        "submit_ok": WizardState.COMPLETED,
        "submit_failed": WizardState.FAILED,
        "abort": WizardState.IN_PROGRESS,  # another request holds the submission
    },
    WizardState.FAILED: {
        "retry": WizardState.IN_PROGRESS,
        "start_submit": WizardState.SUBMITTING,
    },
    WizardState.COMPLETED: {},
}

# States in which the customer may still navigate and change answers
EDITABLE_STATES: set[WizardState] = {WizardState.IN_PROGRESS, WizardState.FAILED}
