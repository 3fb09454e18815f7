"""Workbook writer that projects canonical events onto a template sheet."""
import logging
import os
import re
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

from openpyxl import Workbook, load_workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE

from processor.errors import StoreStructureMissing
from processor.identity import assign_id
from processor.models import DEFAULT_TIME, CanonicalEvent
from storage.columns import ColumnRole, role_for_header

logger = logging.getLogger(__name__)

DEFAULT_SHEET_NAME = "EXPORT_EVENTS"
ASSOCIATIONS_SHEET_NAME = "EXPORT_ASSOCIATIONS"

# Documented placeholder for events without coordinates, not a measured location
REGION_CENTROID_LATITUDE = "31.3547"
REGION_CENTROID_LONGITUDE = "34.3088"

# (substring of lower-cased source name, association category)
DEFAULT_ASSOCIATIONS: List[Tuple[str, str]] = [
    ('techforpalestine', 'casualties'),
    ('reliefweb', 'humanitarian'),
    ('acled', 'conflict'),
]

ASSOCIATION_HEADERS = [
    'id', 'title', 'desc', 'mode', 'filter_path0', 'filter_path1', 'filter_path2'
]

ASSOCIATION_ROWS = {
    'casualties': ['Casualties', 'Reports of killed/injured'],
    'humanitarian': ['Humanitarian', 'Aid and Situation Reports'],
    'conflict': ['Conflict', 'Armed clashes and political violence'],
}

US_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


def format_sheet_date(date: Optional[str]) -> str:
    """
    Reformat a YYYY-MM-DD date as MM/DD/YYYY.

    Args:
        date: ISO date string or None

    Returns:
        MM/DD/YYYY string, or empty string when missing or malformed
    """
    if not date:
        return ''
    match = US_DATE_RE.match(str(date).strip())
    if not match:
        return ''
    yyyy, mm, dd = match.groups()
    return f"{mm}/{dd}/{yyyy}"


def clean_cell_text(value: str) -> str:
    """Remove control characters the xlsx format cannot store."""
    return ILLEGAL_CHARACTERS_RE.sub("", value)


def format_coordinate(value: Optional[float], fallback: str) -> str:
    if value is None:
        return fallback
    return str(value)


class XlsxSheetWriter:
    """Overwrites one template sheet of an .xlsx store with event rows."""

    def __init__(self, associations: Optional[Sequence[Tuple[str, str]]] = None):
        """
        Initialize the writer.

        Args:
            associations: Ordered (source substring, category) pairs used for
                association columns (default: DEFAULT_ASSOCIATIONS)
        """
        self.associations = list(associations if associations is not None else DEFAULT_ASSOCIATIONS)

    def association_for(self, source: Optional[str]) -> str:
        """Map a source name to its association category, or empty string."""
        name = (source or '').lower()
        for needle, category in self.associations:
            if needle in name:
                return category
        return ''

    def value_for_header(self, header: Any, event: CanonicalEvent) -> str:
        """
        Resolve one cell of an event row.

        Args:
            header: Raw template header
            event: Event being projected

        Returns:
            Cell text; unrecognized headers yield an empty string
        """
        role = role_for_header(header)

        if role is ColumnRole.ID:
            return assign_id(event)
        if role is ColumnRole.TITLE:
            return event.title or f"{event.source or 'External'} - {event.location or 'Unknown'}"
        if role is ColumnRole.DESCRIPTION:
            return self._description(event)
        if role is ColumnRole.DATE:
            return format_sheet_date(event.date)
        if role is ColumnRole.TIME:
            # Downstream validation rejects blank times
            return DEFAULT_TIME
        if role is ColumnRole.LOCATION:
            return event.location or ''
        if role is ColumnRole.LATITUDE:
            return format_coordinate(event.latitude, REGION_CENTROID_LATITUDE)
        if role is ColumnRole.LONGITUDE:
            return format_coordinate(event.longitude, REGION_CENTROID_LONGITUDE)
        if role is ColumnRole.ASSOCIATION:
            return self.association_for(event.source)
        if role is ColumnRole.SOURCE:
            return event.source or ''

        return ''

    def _description(self, event: CanonicalEvent) -> str:
        if event.description:
            text = event.description
        elif event.date:
            text = f"Imported event dated {event.date}. Source: {event.source or 'unknown'}"
        else:
            text = f"Imported undated event. Source: {event.source or 'unknown'}"

        if event.url:
            text = f"{text}\nURL: {event.url}"
        return text

    def build_rows(self, headers: Sequence[Any], events: Sequence[CanonicalEvent]) -> List[List[str]]:
        """Project every event onto the header sequence."""
        return [
            [clean_cell_text(self.value_for_header(header, event)) for header in headers]
            for event in events
        ]

    def read_headers(self, workbook: Workbook, sheet_name: str) -> List[Any]:
        """
        Read the header row of a template sheet.

        Raises:
            StoreStructureMissing: If the sheet or its header row is absent
        """
        if sheet_name not in workbook.sheetnames:
            raise StoreStructureMissing(f'Sheet "{sheet_name}" not found in workbook')

        worksheet = workbook[sheet_name]
        first_row = next(worksheet.iter_rows(min_row=1, max_row=1, values_only=True), ())
        headers = list(first_row)

        # Drop trailing blank cells
        while headers and (headers[-1] is None or str(headers[-1]).strip() == ''):
            headers.pop()

        if not headers:
            raise StoreStructureMissing(f'Sheet "{sheet_name}" has no header row')

        return headers

    def sync(
        self,
        store_path: Path,
        sheet_name: str,
        events: Sequence[CanonicalEvent]
    ) -> int:
        """
        Replace the target sheet with the header row plus one row per event.

        Args:
            store_path: Path to an existing .xlsx workbook
            sheet_name: Name of the template sheet to overwrite
            events: Ordered events to write

        Returns:
            Count of event rows written

        Raises:
            StoreStructureMissing: If the workbook, sheet or header is missing
        """
        store_path = Path(store_path)
        if not store_path.is_file():
            raise StoreStructureMissing(f"Store not found: {store_path}")

        workbook = load_workbook(store_path)
        headers = self.read_headers(workbook, sheet_name)
        rows = self.build_rows(headers, events)

        self._replace_sheet(workbook, sheet_name, [headers] + rows)
        self._save(workbook, store_path)

        logger.info(f"Wrote {len(rows)} events to {store_path} [{sheet_name}]")
        return len(rows)

    def _replace_sheet(self, workbook: Workbook, sheet_name: str, rows: List[List[Any]]) -> None:
        """Swap in a fresh sheet at the same position, leaving other sheets untouched."""
        if sheet_name in workbook.sheetnames:
            index = workbook.sheetnames.index(sheet_name)
            workbook.remove(workbook[sheet_name])
        else:
            index = len(workbook.sheetnames)

        worksheet = workbook.create_sheet(title=sheet_name, index=index)
        for row in rows:
            worksheet.append(row)
            # Provider text starting with "=" stays literal text, never a formula
            for cell in worksheet[worksheet.max_row]:
                if isinstance(cell.value, str) and cell.value.startswith("="):
                    cell.data_type = "s"

    def _save(self, workbook: Workbook, store_path: Path) -> None:
        """Save next to the target, then move over it so readers never see a partial file."""
        tmp_path = store_path.with_name(f".{store_path.name}.tmp")
        try:
            workbook.save(tmp_path)
            os.replace(tmp_path, store_path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

    def seed_associations(
        self,
        store_path: Path,
        sheet_name: str = ASSOCIATIONS_SHEET_NAME
    ) -> int:
        """
        Overwrite the associations sheet with the categories this writer emits.

        Unlike ``sync`` this creates the sheet when it is missing, since it
        establishes template structure rather than filling it.

        Args:
            store_path: Path to an existing .xlsx workbook
            sheet_name: Associations sheet name (default: EXPORT_ASSOCIATIONS)

        Returns:
            Count of category rows written
        """
        store_path = Path(store_path)
        if not store_path.is_file():
            raise StoreStructureMissing(f"Store not found: {store_path}")

        rows = []
        seen = set()
        for _, category in self.associations:
            if category in seen:
                continue
            seen.add(category)
            title, desc = ASSOCIATION_ROWS.get(category, [category.title(), ''])
            rows.append([category, title, desc, 'FILTER', 'Type', title, ''])

        workbook = load_workbook(store_path)
        self._replace_sheet(workbook, sheet_name, [ASSOCIATION_HEADERS] + rows)
        if 'Associations' in workbook.sheetnames and sheet_name != 'Associations':
            self._replace_sheet(workbook, 'Associations', [ASSOCIATION_HEADERS] + rows)
        self._save(workbook, store_path)

        logger.info(f"Seeded {len(rows)} association categories into {store_path} [{sheet_name}]")
        return len(rows)
