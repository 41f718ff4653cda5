"""YAML template parsing and validation for the text editor."""

import logging
from typing import Optional

import yaml
from pydantic import BaseModel, ValidationError

from ..core.errors import TemplateValidationError
from ..core.slides.templates import PresentationTemplate, to_canonical_template

logger = logging.getLogger("TemplateStudio.intake.yaml_parser")


class ValidationResult(BaseModel):
    """Outcome of validating a text buffer: a template or an error message."""
    valid: bool
    template: Optional[PresentationTemplate] = None
    error: Optional[str] = None


def parse_template_yaml(text: str) -> PresentationTemplate:
    """Parse YAML text into a template.

    Accepts everything the serializer emits plus legacy single-slide
    documents. Raises TemplateValidationError with one issue per problem.
    """
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        problem = getattr(e, "problem", None) or str(e)
        mark = getattr(e, "problem_mark", None)
        if mark is not None:
            issue = f"Invalid YAML at line {mark.line + 1}, column {mark.column + 1}: {problem}"
        else:
            issue = f"Invalid YAML: {problem}"
        raise TemplateValidationError([issue]) from e

    if raw is None:
        raise TemplateValidationError(["Template is empty"])
    if not isinstance(raw, dict):
        raise TemplateValidationError(
            [f"Template root must be a mapping, got {type(raw).__name__}"]
        )

    try:
        return to_canonical_template(raw)
    except ValidationError as e:
        raise TemplateValidationError.from_validation_error(e) from e


def validate_template_yaml(text: str) -> ValidationResult:
    try:
        template = parse_template_yaml(text)
    except TemplateValidationError as e:
        logger.debug(f"Template text rejected: {e.issues[0]}")
        return ValidationResult(valid=False, error=str(e))
    return ValidationResult(valid=True, template=template)


class YamlTemplateParser:
    """Parser/validator collaborator used by the editor session."""

    async def validate(self, text: str) -> ValidationResult:
        return validate_template_yaml(text)
