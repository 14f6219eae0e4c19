"""Input validation for tool arguments."""

import json
from typing import Any, Dict, Iterable, Optional

from countly_mcp.infra.error_handler import ToolValidationError


def validate_required_params(args: Dict[str, Any], required: Iterable[str]) -> None:
    """
    Validate that required parameters are present.

    Args:
        args: Tool arguments
        required: Parameter names that must be present and not None

    Raises:
        ToolValidationError: Listing every missing parameter
    """
    missing = [name for name in required if args.get(name) is None]
    if missing:
        raise ToolValidationError(f"Missing required parameter(s): {', '.join(missing)}")


def parse_json_param(value: Any, param_name: str) -> Any:
    """
    Accept a JSON string or an already-decoded object.

    Raises:
        ToolValidationError: If the string is not valid JSON or the type is unsupported
    """
    if isinstance(value, (dict, list)):
        return value

    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise ToolValidationError(f"Invalid JSON in {param_name}: {e}") from e

    raise ToolValidationError(f"Parameter {param_name} must be a JSON string or object")


def dump_json_param(value: Any, param_name: str) -> str:
    """Normalize a JSON-ish parameter to its string form for query params."""
    if isinstance(value, str):
        # Validate before forwarding
        parse_json_param(value, param_name)
        return value
    return json.dumps(parse_json_param(value, param_name))


def parse_numeric_param(
    value: Any,
    param_name: str,
    minimum: Optional[float] = None,
    maximum: Optional[float] = None,
) -> float:
    """
    Validate and parse a numeric parameter.

    Raises:
        ToolValidationError: If the value is not numeric or out of range
    """
    if isinstance(value, bool):
        raise ToolValidationError(f"Parameter {param_name} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ToolValidationError(f"Parameter {param_name} must be a number") from e

    if minimum is not None and number < minimum:
        raise ToolValidationError(f"Parameter {param_name} must be >= {minimum}")
    if maximum is not None and number > maximum:
        raise ToolValidationError(f"Parameter {param_name} must be <= {maximum}")

    return number


def dump_json_array_param(value: Any, param_name: str) -> str:
    """Like ``dump_json_param`` but the decoded value must be a list."""
    if not isinstance(parse_json_param(value, param_name), list):
        raise ToolValidationError(f"Parameter {param_name} must be a JSON array")
    return dump_json_param(value, param_name)
