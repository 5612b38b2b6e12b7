"""Search filtering and delimited-text export of device records."""

import logging
import re
from pathlib import Path
from typing import Any, Iterable, List, Sequence, Tuple, Union

from sqlalchemy import or_, true
from sqlalchemy.sql.elements import ColumnElement

from .database import Device
from .schemas import DeviceRecord

logger = logging.getLogger(__name__)

DEVICE_EXPORT_HEADERS = ("ID", "User_ID", "Name", "Type", "IP", "Calibration")
DEFAULT_EXPORT_FILENAME = "devices.csv"
LINE_BREAKS = re.compile(r"\r\n|[\r\n\x0b\x0c\x1c-\x1e\x85\u2028\u2029]")


def build_search_filter(term: str) -> ColumnElement:
    """Build the predicate used by the device search box.

    An empty term matches everything. Otherwise a row matches when its name or
    IP address contains ``term``. This is a SQL ``LIKE`` with ``%`` and ``_``
    escaped, so SQLite compares ASCII letters case-insensitively and every
    other character case-sensitively.
    """
    if not term:
        return true()
    return or_(
        Device.name.contains(term, autoescape=True),
        Device.ip_address.contains(term, autoescape=True),
    )


def device_rows(records: Iterable[DeviceRecord]) -> List[Tuple[Any, ...]]:
    return [
        (r.id, r.user_id, r.name, r.type, r.ip_address, r.calibration)
        for r in records
    ]


def _field(value: Any, delimiter: str, replacement: str) -> str:
    text = "" if value is None else str(value)
    text = LINE_BREAKS.sub(" ", text)
    return text.replace(delimiter, replacement)


def export_to_delimited_text(
    rows: Iterable[Sequence[Any]],
    headers: Sequence[str] = DEVICE_EXPORT_HEADERS,
    delimiter: str = ";",
    replacement: str = ",",
) -> str:
    """Serialize ``rows`` as one header line plus one line per row.

    Delimiters inside a value (headers included) are replaced with
    ``replacement`` rather than quoted, and line breaks with a space, so the
    output is lossy for such values.
    """
    lines = [delimiter.join(_field(h, delimiter, replacement) for h in headers)]
    for row in rows:
        lines.append(delimiter.join(_field(v, delimiter, replacement) for v in row))
    return "\n".join(lines) + "\n"


def write_export(path: Union[str, Path], content: str) -> Path:
    path = Path(path).expanduser()
    path.write_text(content, encoding="utf-8")
    logger.info("exported %s bytes to %s", len(content), path)
    return path
