"""Step validator: checks only the fields gated by the active step.

Failures are flattened into {dotted.field.path: message}; a step is valid
iff that mapping is empty.  Form data is never mutated, so this is safe
to run on every change.
"""

from typing import Any, Mapping

from pydantic import ValidationError

from readiness.schemas.form import (
    AIGoalsRequirements,
    CompanyBasicsRequirements,
    ContactRequirements,
    OperationsRequirements,
    StepRequirements,
    TechReadinessRequirements,
)
from readiness.schemas.wizard import StepValidation

STEP_SCHEMAS: dict[int, type[StepRequirements]] = {
    0: CompanyBasicsRequirements,
    1: OperationsRequirements,
    2: TechReadinessRequirements,
    3: AIGoalsRequirements,
    4: ContactRequirements,
}


def _wire_path(schema: type[StepRequirements], loc: tuple) -> list[str]:
    # Defaults validated for absent fields report the attribute name, not the alias
    parts = [str(part) for part in loc]
    if parts and parts[0] in schema.model_fields:
        parts[0] = schema.model_fields[parts[0]].alias or parts[0]
    return parts


def validate_step(form_data: Mapping[str, Any], step: int) -> StepValidation:
    """Validate `form_data` against the schema of wizard step `step`."""
    schema = STEP_SCHEMAS.get(step)
    if schema is None:
        return StepValidation(valid=False, errors={"step": f"Unknown step: {step}"})

    try:
        schema.model_validate(dict(form_data))
    except ValidationError as exc:
        errors: dict[str, str] = {}
        for error in exc.errors():
            path = ".".join(_wire_path(schema, error["loc"]))
            errors.setdefault(path, error["msg"] or "Validation error")
        return StepValidation(valid=False, errors=errors)

    return StepValidation(valid=True, errors={})
