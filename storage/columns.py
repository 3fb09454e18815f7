"""Recognized column roles of the events sheet template."""
from enum import Enum
from typing import Any


class ColumnRole(Enum):
    """Role a template header plays when projecting an event onto a row."""
    ID = "id"
    TITLE = "title"
    DESCRIPTION = "description"
    DATE = "date"
    TIME = "time"
    LOCATION = "location"
    LATITUDE = "latitude"
    LONGITUDE = "longitude"
    ASSOCIATION = "association"
    SOURCE = "source"
    UNRECOGNIZED = "unrecognized"


EXACT_HEADERS = {
    'id': ColumnRole.ID,
    'title': ColumnRole.TITLE,
    'description': ColumnRole.DESCRIPTION,
    'desc': ColumnRole.DESCRIPTION,
    'date': ColumnRole.DATE,
    'time': ColumnRole.TIME,
    'location': ColumnRole.LOCATION,
    'place': ColumnRole.LOCATION,
    'latitude': ColumnRole.LATITUDE,
    'lat': ColumnRole.LATITUDE,
    'longitude': ColumnRole.LONGITUDE,
    'lon': ColumnRole.LONGITUDE,
    'lng': ColumnRole.LONGITUDE,
}

# Checked in order after an exact match fails
PREFIX_HEADERS = [
    ('association', ColumnRole.ASSOCIATION),
    ('source', ColumnRole.SOURCE),
]


def normalize_header(header: Any) -> str:
    return str(header if header is not None else '').strip().lower()


def role_for_header(header: Any) -> ColumnRole:
    """
    Resolve a template header to its column role.

    Args:
        header: Raw header cell value

    Returns:
        Matching ColumnRole, UNRECOGNIZED when nothing matches
    """
    normalized = normalize_header(header)

    role = EXACT_HEADERS.get(normalized)
    if role is not None:
        return role

    for prefix, prefix_role in PREFIX_HEADERS:
        if normalized.startswith(prefix):
            return prefix_role

    return ColumnRole.UNRECOGNIZED
