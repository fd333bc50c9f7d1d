"""
Transition table - explicit step graph for each registration flow.

Step 0 is the email verification entry; wizard steps start at 1.
``TERMINAL`` marks a step whose completion submits the registration and
``START_OVER`` a back-navigation that discards all progress.

Student flow:
    0 -> 1 personal details -> 2 documents -> 3 parent & medical
      -> 4 sports selection -> 5 review & payment -> TERMINAL
    back: 5->4, 4->3, 3->2, 2->1, 1->START_OVER

Institution flow (the former "sports & categories" step is omitted):
    0 -> 1 institution details -> 2 sport teams -> 3 payment -> TERMINAL
    back: 3->2, 2->1, 1->0
"""

from dataclasses import dataclass

from .exceptions import UnknownStep
from .ports import Flow, SavePolicy

EMAIL_STEP = 0
TERMINAL = -1
START_OVER = -2


@dataclass(frozen=True)
class StepRule:
    """One row of the transition table."""

    number: int
    key: str
    on_complete: int
    on_back: int
    save_policy: SavePolicy


@dataclass(frozen=True)
class FlowDefinition:
    flow: Flow
    steps: tuple[StepRule, ...]
    # Remote checkpoints written by an older step layout
    legacy_step_map: dict[int, int]

    @property
    def last_step(self) -> int:
        return self.steps[-1].number

    def rule(self, step: int) -> StepRule:
        for rule in self.steps:
            if rule.number == step:
                return rule
        raise UnknownStep(f"{self.flow.value} flow has no step {step}")

    def next_step(self, step: int) -> int:
        if step == EMAIL_STEP:
            return self.steps[0].number
        return self.rule(step).on_complete

    def previous_step(self, step: int) -> int:
        return self.rule(step).on_back

    def is_wizard_step(self, step: int) -> bool:
        return any(rule.number == step for rule in self.steps)

    def map_remote_step(self, step: int) -> int:
        return self.legacy_step_map.get(step, step)

    def incomplete_steps(self, completed: list[int]) -> list[int]:
        """Non-terminal steps not yet in completed; all must be done before submitting."""
        return [
            rule.number
            for rule in self.steps
            if rule.on_complete != TERMINAL and rule.number not in completed
        ]


STUDENT_FLOW = FlowDefinition(
    flow=Flow.STUDENT,
    steps=(
        StepRule(1, "personal_details", 2, START_OVER, SavePolicy.BLOCK),
        StepRule(2, "documents", 3, 1, SavePolicy.BLOCK),
        StepRule(3, "parent_medical", 4, 2, SavePolicy.BLOCK),
        StepRule(4, "sports_selection", 5, 3, SavePolicy.BLOCK),
        StepRule(5, "review_payment", TERMINAL, 4, SavePolicy.BLOCK),
    ),
    legacy_step_map={},
)

INSTITUTION_FLOW = FlowDefinition(
    flow=Flow.INSTITUTION,
    steps=(
        StepRule(1, "institution_details", 2, EMAIL_STEP, SavePolicy.BLOCK),
        StepRule(2, "sport_teams", 3, 1, SavePolicy.IGNORE),
        StepRule(3, "institution_payment", TERMINAL, 2, SavePolicy.BLOCK),
    ),
    legacy_step_map={4: 3, 3: 2},
)

FLOWS = {
    Flow.STUDENT: STUDENT_FLOW,
    Flow.INSTITUTION: INSTITUTION_FLOW,
}


def get_flow(flow: Flow) -> FlowDefinition:
    return FLOWS[flow]
