# src/domain/flow.py

from enum import Enum
from typing import Dict, Set

from src.domain.exceptions import InvalidFlowTransitionError


class FlowStep(str, Enum):
    # Reservation side
    REVIEW = "REVIEW"
    ESCROW_NOTICE = "ESCROW_NOTICE"
    PROCESSING = "PROCESSING"
    REDIRECTED = "REDIRECTED"
    # Return side
    RETURNED = "RETURNED"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"
    STILL_PENDING = "STILL_PENDING"
    CANCELLED = "CANCELLED"


class FlowStateMachine:
    """
    Legal step changes for one flow instance.
    Processing falls back to the pre-submission step on failure;
    once redirected, the instance is done.
    """

    _ALLOWED_TRANSITIONS: Dict[FlowStep, Set[FlowStep]] = {
        FlowStep.REVIEW: {
            FlowStep.ESCROW_NOTICE,
        },
        FlowStep.ESCROW_NOTICE: {
            FlowStep.REVIEW,
            FlowStep.PROCESSING,
        },
        FlowStep.PROCESSING: {
            FlowStep.REDIRECTED,
            FlowStep.ESCROW_NOTICE,
            FlowStep.REVIEW,
        },
        FlowStep.REDIRECTED: set(),
        FlowStep.RETURNED: {
            FlowStep.CONFIRMED,
            FlowStep.FAILED,
            FlowStep.STILL_PENDING,
            FlowStep.CANCELLED,
        },
        FlowStep.STILL_PENDING: {
            FlowStep.CONFIRMED,
            FlowStep.FAILED,
            FlowStep.STILL_PENDING,
        },
        FlowStep.CONFIRMED: set(),
        FlowStep.FAILED: set(),
        FlowStep.CANCELLED: set(),
    }

    @classmethod
    def can_transition(cls, from_step: FlowStep, to_step: FlowStep) -> bool:
        cls._ensure_valid_step(from_step)
        cls._ensure_valid_step(to_step)

        return to_step in cls._ALLOWED_TRANSITIONS.get(from_step, set())

    @classmethod
    def validate_transition(cls, from_step: FlowStep, to_step: FlowStep) -> None:
        """
        Raises InvalidFlowTransitionError if the step change is illegal.
        """
        if not cls.can_transition(from_step, to_step):
            raise InvalidFlowTransitionError(
                from_step=from_step.value,
                to_step=to_step.value,
            )

    @classmethod
    def is_terminal(cls, step: FlowStep) -> bool:
        cls._ensure_valid_step(step)
        return len(cls._ALLOWED_TRANSITIONS.get(step, set())) == 0

    @staticmethod
    def _ensure_valid_step(step: FlowStep) -> None:
        if not isinstance(step, FlowStep):
            raise TypeError(f"Expected FlowStep, got {type(step)}")
