from jsonschema.exceptions import ValidationError, best_match
from jsonschema.validators import validator_for

from codeh.tools.base import Tool, normalize_schema


class ToolValidator:
    """Checks tool-call arguments against the tool's JSON schema."""

    @staticmethod
    def validate(tool: Tool, arguments: dict) -> tuple[bool, str | None]:
        schema = normalize_schema(tool.parameters)
        validator = validator_for(schema)(schema)
        error = best_match(validator.iter_errors(arguments))
        if error is None:
            return True, None
        return False, _describe(error)


def _describe(error: ValidationError) -> str:
    """``path.to.field: message``, or just the message for top-level errors."""
    path = ".".join(str(p) for p in error.absolute_path)
    return f"{path}: {error.message}" if path else error.message
