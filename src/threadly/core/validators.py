"""Validation helpers shared by configuration and request parsing."""

from datetime import UTC, datetime

from threadly.exceptions import ValidationError


__all__ = [
    "parse_comma_separated",
    "parse_iso_datetime",
]


def parse_comma_separated(
    value: str | list[str],
    strip: bool = True,
    filter_empty: bool = True,
    max_items: int | None = None,
) -> list[str]:
    """Parse comma-separated string into list of values.

    Args:
        value: Comma-separated string or list
        strip: Whether to strip whitespace from each item
        filter_empty: Whether to filter out empty strings
        max_items: Maximum number of items allowed (default: None, no limit)

    Returns:
        List of parsed values

    Raises:
        ValueError: If max_items is exceeded
    """
    items = value if isinstance(value, list) else value.split(",")

    if max_items is not None and len(items) > max_items:
        raise ValueError(f"Too many items: got {len(items)}, maximum is {max_items}")

    if strip:
        items = [item.strip() for item in items]

    if filter_empty:
        items = [item for item in items if item]

    return items


def parse_iso_datetime(value: str | datetime, field: str = "scheduledTime") -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Naive values are taken to be UTC. A trailing ``Z`` is accepted.

    Raises:
        ValidationError: If the value is empty or not ISO-8601
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        if not value or not value.strip():
            raise ValidationError(f"{field} is required", details={"field": field})
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise ValidationError(
                f"{field} must be an ISO-8601 timestamp, got {value!r}",
                details={"field": field},
            ) from e

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)
