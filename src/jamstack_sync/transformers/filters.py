"""Jinja2 filters for front matter rendering.

These filters are used in post.md.j2; the front matter block itself is
emitted by PyYAML so that it parses back to the values it was built from.
"""

from datetime import datetime

import yaml


def to_yaml(value: dict) -> str:
    """Dump a mapping as block-style YAML, keeping key order.

    Examples:
        >>> to_yaml({"title": "Hello: world", "draft": False})
        "title: 'Hello: world'\\ndraft: false\\n"
    """
    return yaml.safe_dump(
        value,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
        width=float("inf"),
    )


def iso_datetime(value: datetime | None) -> str:
    """Format a datetime as ISO 8601.

    Examples:
        >>> iso_datetime(datetime(2024, 3, 15, 10, 0))
        '2024-03-15T10:00:00'
    """
    if value is None:
        return ""
    return value.isoformat()


# Registry of all filters for easy registration with Jinja2
FILTERS = {
    "to_yaml": to_yaml,
    "iso_datetime": iso_datetime,
}
