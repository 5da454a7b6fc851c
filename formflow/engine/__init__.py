from formflow.engine.conditions import evaluate, evaluate_all
from formflow.engine.coordinator import CommitResult, SubmissionCoordinator
from formflow.engine.machine import StepMachine, StepOutcome
from formflow.engine.rules import validate, validate_fields
from formflow.engine.visibility import resolve, visible_fields, visible_steps

__all__ = [
    "CommitResult",
    "StepMachine",
    "StepOutcome",
    "SubmissionCoordinator",
    "evaluate",
    "evaluate_all",
    "resolve",
    "validate",
    "validate_fields",
    "visible_fields",
    "visible_steps",
]
