"""Turn raw resource bytes into a single linear text.

Branches are tried in precedence order (markup, structured records, tabular,
raw), and only when the format hint or URL suffix selects them.
A parser failure is recorded as a :class:`ParseFallbackNotice` and the next
applicable branch is tried; the raw branch never fails.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import xml.etree.ElementTree as ET
from typing import Any, Callable

from catalog_ingest.errors import ParseFallbackNotice
from catalog_ingest.models import NormalizedText

logger = logging.getLogger(__name__)

RECORD_SEPARATOR = "\n\n---\n\n"


def decode_bytes(raw: bytes) -> str:
    """UTF-8 decode with BOM stripped and undecodable bytes replaced."""
    return raw.decode("utf-8-sig", errors="replace")


# ── markup ────────────────────────────────────────────────────────────


def _element_to_obj(elem: ET.Element) -> Any:
    obj: dict[str, Any] = {f"@_{k}": v for k, v in elem.attrib.items()}
    for child in elem:
        value = _element_to_obj(child)
        if child.tag in obj:
            existing = obj[child.tag]
            if not isinstance(existing, list):
                obj[child.tag] = existing = [existing]
            existing.append(value)
        else:
            obj[child.tag] = value
    text = (elem.text or "").strip()
    if not obj:
        return text
    if text:
        obj["#text"] = text
    return obj


def _markup_to_text(text: str) -> str:
    root = ET.fromstring(text)
    return json.dumps({root.tag: _element_to_obj(root)}, indent=2, ensure_ascii=False)


# ── structured records ────────────────────────────────────────────────


def _record_line(record: Any) -> str:
    if isinstance(record, dict):
        return " | ".join(f"{k}: {v}" for k, v in record.items())
    return json.dumps(record, ensure_ascii=False)


def _structured_to_text(text: str) -> str:
    data = json.loads(text)
    if isinstance(data, list):
        return "\n".join(_record_line(r) for r in data)
    return json.dumps(data, indent=2, ensure_ascii=False)


# ── tabular ───────────────────────────────────────────────────────────


def _tabular_to_text(text: str, delimiter: str = ",") -> str:
    reader = csv.reader(io.StringIO(text), delimiter=delimiter, strict=True)
    header: list[str] | None = None
    blocks: list[str] = []
    for row in reader:
        if not any(cell.strip() for cell in row):
            continue
        if header is None:
            header = [h.strip() for h in row]
            continue
        if len(row) != len(header):
            raise csv.Error(
                f"line {reader.line_num}: expected {len(header)} fields, got {len(row)}"
            )
        blocks.append("\n".join(f"{k}: {v}" for k, v in zip(header, row)))
    return RECORD_SEPARATOR.join(blocks)


# ── dispatch ──────────────────────────────────────────────────────────


def _matches(fmt: str, url: str, names: tuple[str, ...]) -> bool:
    return any(n in fmt or url.endswith(f".{n}") for n in names)


def normalize(raw: bytes, format_hint: str = "", source_url: str = "") -> NormalizedText:
    """Convert *raw* into :class:`NormalizedText`.

    Parameters
    ----------
    raw:
        Payload exactly as downloaded.
    format_hint:
        Catalog format / mimetype, matched case-insensitively as a substring.
    source_url:
        Download URL; its suffix is used when the hint is missing or vague.
    """
    fmt = (format_hint or "").lower()
    url = (source_url or "").lower().split("?", 1)[0]
    text = decode_bytes(raw)

    is_tsv = _matches(fmt, url, ("tsv",))
    branches: list[tuple[str, tuple[str, ...], Callable[[str], str]]] = [
        ("markup", ("xml",), _markup_to_text),
        ("structured", ("json",), _structured_to_text),
        (
            "tabular",
            ("csv", "tsv"),
            lambda t: _tabular_to_text(t, delimiter="\t" if is_tsv else ","),
        ),
    ]

    notices: list[str] = []
    for kind, names, parse in branches:
        if not _matches(fmt, url, names):
            continue
        try:
            return NormalizedText(
                text=parse(text), kind=kind, degraded=bool(notices), notices=notices
            )
        except (ET.ParseError, ValueError, csv.Error, RecursionError) as exc:
            notice = ParseFallbackNotice(branch=kind, reason=str(exc))
            logger.info("%s (%s)", notice, source_url)
            notices.append(str(notice))

    return NormalizedText(text=text, kind="raw", degraded=bool(notices), notices=notices)
