from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Iterable, Optional

from .models import NormalizedGatePass, NormalizedLineItem

TEMPLATE_PATH = Path(__file__).resolve().parent / "templates" / "gatepass.html"

TOKEN_PATTERN = re.compile(r"\{\{\s*(\w+)\s*\}\}")

EMPTY_ITEMS_ROW = '<tr><td colspan="6" class="empty">No items provided.</td></tr>'

_HTML_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#039;",
}
_HTML_ESCAPE_PATTERN = re.compile("[&<>\"']")


def escape_html(value: Any) -> str:
    text = "" if value is None else str(value)
    return _HTML_ESCAPE_PATTERN.sub(lambda match: _HTML_ESCAPES[match.group(0)], text)


def inject_template(template: str, data: Dict[str, Any]) -> str:
    """Replace ``{{ name }}`` tokens; names missing from ``data`` become empty strings."""

    def _replace(match: re.Match) -> str:
        value = data.get(match.group(1))
        return "" if value is None else str(value)

    return TOKEN_PATTERN.sub(_replace, template)


def format_display_date(iso_value: Optional[str]) -> str:
    if not iso_value:
        return ""
    try:
        moment = datetime.fromisoformat(iso_value.replace("Z", "+00:00"))
    except ValueError:
        return iso_value
    return moment.strftime("%d %b %Y")


def _format_number(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def build_item_rows(items: Iterable[NormalizedLineItem]) -> str:
    rows = [
        "<tr>"
        f"<td>{escape_html(_format_number(item.sl_no))}</td>"
        f"<td>{escape_html(item.description)}</td>"
        f"<td>{escape_html(item.make_item or '-')}</td>"
        f"<td>{escape_html(item.model)}</td>"
        f"<td>{escape_html(item.serial_no)}</td>"
        f"<td>{escape_html(_format_number(item.qty))}</td>"
        "</tr>"
        for item in items
    ]
    if not rows:
        return EMPTY_ITEMS_ROW
    return "\n".join(rows)


class HtmlRenderer:
    """
    Fills the gate pass HTML template.

    The template file is read on first use and kept for the lifetime of the
    renderer; edits to the file on disk are not picked up until a new renderer
    is created (in practice, until the process restarts).
    """

    def __init__(self, template_path: Path = TEMPLATE_PATH) -> None:
        self.template_path = template_path
        self._template: Optional[str] = None
        self._lock = Lock()

    @property
    def template(self) -> str:
        if self._template is None:
            with self._lock:
                if self._template is None:
                    self._template = self.template_path.read_text(encoding="utf-8")
        return self._template

    def render(self, normalized: NormalizedGatePass, logo_data_uri: str) -> str:
        template_data = {
            "gatepassNo": escape_html(normalized.gatepass_no),
            "returnableLabel": "(Returnable Items)" if normalized.returnable else "",
            "date": escape_html(format_display_date(normalized.modified_at or normalized.date)),
            "destination": escape_html(normalized.destination),
            "carriedBy": escape_html(normalized.carried_by),
            "through": escape_html(normalized.through),
            "mobileNo": escape_html(normalized.mobile_no or "-"),
            "createdBy": escape_html(normalized.created_by),
            "modifiedBy": escape_html(normalized.modified_by),
            "itemsRows": build_item_rows(normalized.items),
            "logoDataUri": escape_html(logo_data_uri),
        }
        return inject_template(self.template, template_data)
