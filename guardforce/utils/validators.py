"""
Validation utilities for the Guardforce staffing backend
Provides reusable request validation helpers for API endpoints

All helpers raise ValidationException so @handle_errors turns them into
HTTP 400 responses.
"""
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from flask import request

from guardforce.error_handlers.exceptions import ValidationException


def get_json_body() -> Dict[str, Any]:
    """
    Return the JSON object sent with the current request.

    Raises:
        ValidationException: If the body is missing or not a JSON object
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationException('Request body must be a JSON object')
    return data


def validate_required_fields(data: Dict[str, Any], required_fields: List[str]) -> None:
    """
    Validate that all required fields are present and non-empty.

    Args:
        data: Request data dictionary
        required_fields: List of required field names

    Raises:
        ValidationException: If any required field is missing
    """
    missing = [field for field in required_fields if data.get(field) in (None, '')]
    if missing:
        raise ValidationException(
            f"Missing required fields: {', '.join(missing)}",
            details={'missing_fields': missing}
        )


def validate_choice(value: Optional[str], choices: Iterable[str], param_name: str,
                    allow_none: bool = True) -> Optional[str]:
    """
    Validate that value is one of choices.

    Examples:
        >>> validate_choice('backup', ['primary', 'backup'], 'role')
        'backup'
        >>> validate_choice('boss', ['primary', 'backup'], 'role')
        ValidationException: Invalid role 'boss'. Expected one of: primary, backup
    """
    if value is None and allow_none:
        return None
    choices = list(choices)
    if value not in choices:
        raise ValidationException(
            f"Invalid {param_name} '{value}'. Expected one of: {', '.join(choices)}"
        )
    return value


def validate_bool(value: Any, param_name: str, default: bool) -> bool:
    """Accept JSON booleans and the usual query-string spellings"""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ('true', '1', 'yes'):
        return True
    if isinstance(value, str) and value.lower() in ('false', '0', 'no'):
        return False
    raise ValidationException(f"Invalid {param_name}: expected a boolean")


def validate_optional_text(value: Any, param_name: str) -> Optional[str]:
    """Accept a string or null; anything else is a client error"""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationException(
            f"Invalid {param_name}: expected a string",
            details={'field': param_name}
        )
    return value


def validate_page_params(page: Any, limit: Any, max_limit: int = 100) -> Tuple[int, int]:
    """
    Validate page/limit query parameters.

    Both must be positive integers; limit is capped at max_limit.

    Raises:
        ValidationException: If either value is not a positive integer
    """
    values = []
    for name, value in (('page', page), ('limit', limit)):
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise ValidationException(f"Invalid {name}: expected a positive integer")
        if number < 1:
            raise ValidationException(f"Invalid {name}: expected a positive integer")
        values.append(number)
    return values[0], min(values[1], max_limit)


def validate_id_list(value: Any, param_name: str) -> List[str]:
    """Validate a non-empty list of ids, dropping duplicates"""
    if not isinstance(value, list) or not value:
        raise ValidationException(f"{param_name} must be a non-empty list")
    ids = []
    for item in value:
        if item in (None, ''):
            continue
        item = str(item)
        if item not in ids:
            ids.append(item)
    if not ids:
        raise ValidationException(f"{param_name} must be a non-empty list")
    return ids


def validate_datetime_param(value: Optional[str], param_name: str = 'now') -> Optional[datetime]:
    """
    Parse an ISO 8601 datetime (naive wall-clock) from a query parameter.

    Raises:
        ValidationException: If the value is not ISO 8601
    """
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise ValidationException(
            f"Invalid {param_name} format. Use ISO 8601 (e.g., 2024-06-01T08:00:00)"
        )


def sanitize_request_data(data: str) -> str:
    """
    Remove sensitive data from request strings for safe logging.

    Examples:
        >>> sanitize_request_data('{"password": "secret123"}')
        '{"password": "[REDACTED]"}'
    """
    for field in ('password', 'token', 'api_key', 'secret', 'credential'):
        data = re.sub(rf'("{field}"\s*:\s*")[^"]*(")', r'\1[REDACTED]\2', data, flags=re.IGNORECASE)
    return data
