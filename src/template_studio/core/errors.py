"""Custom exceptions for template validation and editor misuse."""

from __future__ import annotations

from pydantic import ValidationError


class TemplateValidationError(ValueError):
    """Raised when a template document cannot be turned into a template."""

    def __init__(self, issues: list[str]):
        self.issues = [str(i).strip() for i in issues if str(i).strip()]
        if not self.issues:
            self.issues = ["Invalid template"]
        super().__init__(self._format())

    def _format(self) -> str:
        if len(self.issues) == 1:
            return f"Template validation failed: {self.issues[0]}"
        lines = ["Template validation failed:"]
        for issue in self.issues:
            lines.append(f"- {issue}")
        return "\n".join(lines)

    @classmethod
    def from_validation_error(cls, exc: ValidationError) -> "TemplateValidationError":
        """One issue per pydantic error, located like ``slides[0].images[1].opacity``."""
        issues = []
        for error in exc.errors():
            message = error.get("msg", "invalid value")
            if message.startswith("Value error, "):
                message = message[len("Value error, "):]
            location = _format_location(error.get("loc", ()))
            issues.append(f"{location}: {message}" if location else message)
        return cls(issues)


def _format_location(loc) -> str:
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path


class EditorModeError(RuntimeError):
    """Raised when a visual-editor mutation is attempted while editing text."""
