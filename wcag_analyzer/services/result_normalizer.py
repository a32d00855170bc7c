"""Turns a reasoning-service answer into an :class:`AnalysisResult`.

The answer is expected to be JSON (``{"items": [...], "explanation": "..."}``)
but providers drift: answers arrive wrapped in code fences, as Markdown
tables, as bullet lists with inline labels, or as plain prose.  Parsing is
best effort and never raises:

1. JSON, possibly fenced or embedded in prose.
2. Line records: pipe-separated rows, bullet/numbered lines, and
   ``Label: value`` blocks.  An ``Explanation:``/``Summary:`` heading starts
   the explanation.
3. Anything else becomes the explanation with no items.

A record whose severity cannot be recognised is kept as ``Improvement``.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from wcag_analyzer.models.analysis_result import AnalysisItem, AnalysisResult, Severity

logger = logging.getLogger(__name__)

_SEVERITY_ALIASES = {
    "critical": Severity.CRITICAL,
    "blocker": Severity.CRITICAL,
    "high": Severity.HIGH,
    "serious": Severity.HIGH,
    "severe": Severity.HIGH,
    "major": Severity.HIGH,
    "medium": Severity.MEDIUM,
    "moderate": Severity.MEDIUM,
    "low": Severity.LOW,
    "minor": Severity.LOW,
    "improvement": Severity.IMPROVEMENT,
    "info": Severity.IMPROVEMENT,
    "informational": Severity.IMPROVEMENT,
    "suggestion": Severity.IMPROVEMENT,
    "enhancement": Severity.IMPROVEMENT,
    "best practice": Severity.IMPROVEMENT,
}

# JSON keys accepted for each field, compared case-insensitively
_ITEMS_KEYS = ("items", "issues", "findings", "results")
_EXPLANATION_KEYS = ("explanation", "summary", "overview")
_SEVERITY_KEYS = ("severity", "level", "impact", "priority")
_DESCRIPTION_KEYS = ("description", "issue", "title", "message", "problem")
_RECOMMENDATION_KEYS = ("recommendation", "fix", "remediation", "solution", "suggestion")
_LOCATION_KEYS = ("location", "selector", "element", "region", "page")

# Line labels, mapped onto record fields
_LABELS = {
    "severity": "severity",
    "level": "severity",
    "description": "description",
    "issue": "description",
    "problem": "description",
    "recommendation": "recommendation",
    "fix": "recommendation",
    "remediation": "recommendation",
    "solution": "recommendation",
    "location": "location",
    "selector": "location",
    "element": "location",
}

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)```", re.DOTALL)
_BULLET_RE = re.compile(r"^\s*(?:[-*•+]|\d+[.)])\s+(?P<body>.+)$")
_LABEL_LINE_RE = re.compile(
    r"^\s*(?:[-*•+]\s+|\d+[.)]\s+)?\**(?P<label>" + "|".join(_LABELS) + r")\**\s*:\**\s*(?P<value>.*)$",
    re.IGNORECASE,
)
_EXPLANATION_RE = re.compile(
    r"^\s*(?:#+\s*)?\**(?:overall\s+)?(?:explanation|summary|conclusion)\**\s*"
    r"(?::\**\s*(?P<rest>.*)|\**\s*$)",
    re.IGNORECASE,
)
_LEADING_SEVERITY_RE = re.compile(
    r"^(?:\[(?P<bracket>[^\]]+)\]"
    r"|\*\*(?P<bold>[^*]+)\*\*"
    r"|\((?P<paren>[^)]+)\)"
    r"|(?P<plain>(?:severity\s*:\s*)?[A-Za-z ]+?)\s*[:\-–—|])"
    r"\s*[:\-–—|]?\s*(?P<rest>.*)$",
    re.IGNORECASE,
)
_INLINE_LABEL_RE = re.compile(
    r"\b(?P<label>recommendation|fix|remediation|solution|location|selector|element)\s*:",
    re.IGNORECASE,
)
_TABLE_SEPARATOR_RE = re.compile(r"^\s*\|?\s*:?-{2,}:?\s*(\|\s*:?-{2,}:?\s*)*\|?\s*$")
_TRIM_CHARS = " \t-–—|;,"


def _normalize_token(value: Any) -> str:
    token = str(value).strip().strip("*:[]()").strip().lower()
    token = re.sub(r"^severity\s*:\s*", "", token)
    return token.replace("_", " ").replace("-", " ").strip()


def exact_severity(value: Any) -> Optional[Severity]:
    """Return the :class:`Severity` whose name or alias is exactly *value*."""
    if value is None:
        return None
    return _SEVERITY_ALIASES.get(_normalize_token(value))


def parse_severity(value: Any) -> Optional[Severity]:
    """Return the :class:`Severity` named by *value*, or None if unrecognised."""
    if value is None:
        return None
    token = _normalize_token(value)
    if token in _SEVERITY_ALIASES:
        return _SEVERITY_ALIASES[token]
    # "High severity", "Severity 2 (High)", ...
    for alias, severity in _SEVERITY_ALIASES.items():
        if re.search(rf"\b{alias}\b", token):
            return severity
    return None


def _build_item(record: Dict[str, Optional[str]]) -> Optional[AnalysisItem]:
    description = (record.get("description") or "").strip()
    recommendation = (record.get("recommendation") or "").strip()
    location = (record.get("location") or "").strip() or None
    if not description and not recommendation:
        return None
    severity = parse_severity(record.get("severity")) or Severity.IMPROVEMENT
    return AnalysisItem(
        severity=severity,
        description=description,
        recommendation=recommendation,
        location=location,
    )


# ---------------------------------------------------------------------------
# JSON answers
# ---------------------------------------------------------------------------

def _first(mapping: Dict[str, Any], keys: Tuple[str, ...]) -> Any:
    for key in keys:
        if key in mapping and mapping[key] is not None:
            return mapping[key]
    return None


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return "; ".join(str(v) for v in value)
    return str(value)


def _record_from_json(entry: Any) -> Optional[AnalysisItem]:
    if isinstance(entry, str):
        return _build_item(_bullet_record(entry.strip()))
    if not isinstance(entry, dict):
        return None
    lowered = {str(k).lower(): v for k, v in entry.items()}
    return _build_item(
        {
            "severity": _text(_first(lowered, _SEVERITY_KEYS)),
            "description": _text(_first(lowered, _DESCRIPTION_KEYS)),
            "recommendation": _text(_first(lowered, _RECOMMENDATION_KEYS)),
            "location": _text(_first(lowered, _LOCATION_KEYS)),
        }
    )


def _result_from_json(data: Any) -> Optional[AnalysisResult]:
    if isinstance(data, list):
        entries, explanation = data, ""
    elif isinstance(data, dict):
        lowered = {str(k).lower(): v for k, v in data.items()}
        entries = _first(lowered, _ITEMS_KEYS)
        explanation = _text(_first(lowered, _EXPLANATION_KEYS))
        if entries is None and explanation is None:
            single = _record_from_json(data)
            return AnalysisResult(items=[single]) if single else None
        if entries is None:
            entries = []
        if not isinstance(entries, list):
            entries = [entries]
        explanation = explanation or ""
    else:
        return None

    items = [item for item in (_record_from_json(e) for e in entries) if item is not None]
    return AnalysisResult(items=items, explanation=explanation.strip())


def _is_analysis_payload(data: Any) -> bool:
    """Return True if *data* has the shape of findings rather than a stray fragment like ``[1]``."""
    if isinstance(data, dict):
        keys = {str(k).lower() for k in data}
        return bool(keys & set(_ITEMS_KEYS + _EXPLANATION_KEYS + _SEVERITY_KEYS + _DESCRIPTION_KEYS))
    if isinstance(data, list):
        return any(isinstance(entry, (dict, str)) for entry in data)
    return False


def _load_json(text: str) -> Tuple[Any, str]:
    """Return ``(parsed_json, surrounding_prose)`` or ``(None, text)``.

    Only candidates shaped like an analysis payload are accepted.
    """
    candidates: List[Tuple[str, str]] = []

    fence = _FENCE_RE.search(text)
    if fence:
        prose = (text[: fence.start()] + text[fence.end():]).strip()
        candidates.append((fence.group(1).strip(), prose))

    stripped = text.strip()
    candidates.append((stripped, ""))

    for opener, closer in (("{", "}"), ("[", "]")):
        start, end = stripped.find(opener), stripped.rfind(closer)
        if 0 <= start < end:
            prose = (stripped[:start] + stripped[end + 1:]).strip()
            candidates.append((stripped[start : end + 1], prose))

    for candidate, prose in candidates:
        if not candidate or candidate[0] not in "{[":
            continue
        try:
            data = json.loads(candidate)
        except (ValueError, RecursionError):
            continue
        if _is_analysis_payload(data):
            return data, prose
    return None, text


# ---------------------------------------------------------------------------
# Line answers
# ---------------------------------------------------------------------------

def _split_inline_labels(body: str) -> Dict[str, Optional[str]]:
    """Split ``"desc. Recommendation: x Location: y"`` into record fields."""
    record: Dict[str, Optional[str]] = {}
    matches = list(_INLINE_LABEL_RE.finditer(body))
    head_end = matches[0].start() if matches else len(body)
    record["description"] = body[:head_end].strip(_TRIM_CHARS)
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(body)
        field = _LABELS[match.group("label").lower()]
        record[field] = body[match.end() : end].strip(_TRIM_CHARS)
    return record


def _bullet_record(body: str) -> Dict[str, Optional[str]]:
    severity = None
    match = _LEADING_SEVERITY_RE.match(body)
    if match:
        token = next(
            group
            for group in (
                match.group("bracket"),
                match.group("bold"),
                match.group("paren"),
                match.group("plain"),
            )
            if group is not None
        )
        severity = exact_severity(token)
        if severity is not None:
            body = match.group("rest")
    record = _split_inline_labels(body)
    record["severity"] = severity.value if severity else None
    return record


def _split_row(line: str) -> List[str]:
    return [part.strip() for part in line.strip().strip("|").split("|")]


def _header_columns(cells: List[str]) -> Optional[List[Optional[str]]]:
    """Return the record field of each column if *cells* is a table header row."""
    columns = [_LABELS.get(cell.lower().strip("* ")) for cell in cells]
    return columns if any(columns) else None


def _is_index_cell(cell: str) -> bool:
    return cell in ("", "#") or cell.rstrip(".").isdigit()


def _pipe_record(
    cells: List[str], columns: Optional[List[Optional[str]]]
) -> Optional[Dict[str, Optional[str]]]:
    if len(cells) < 2:
        return None

    if columns is not None:
        record: Dict[str, Optional[str]] = {}
        for field, cell in zip(columns, cells):
            if field and cell and not record.get(field):
                record[field] = cell
        return record

    # No header: drop a leading row number, then take the first severity cell
    while cells and _is_index_cell(cells[0]):
        cells = cells[1:]
    severity = None
    for index, cell in enumerate(cells):
        severity = exact_severity(cell)
        if severity is not None:
            cells = cells[:index] + cells[index + 1:]
            break
    fields = cells + [""] * (3 - len(cells))
    return {
        "severity": severity.value if severity else None,
        "description": fields[0],
        "recommendation": fields[1],
        "location": " | ".join(f for f in fields[2:] if f) or None,
    }


def _parse_lines(text: str) -> Tuple[List[AnalysisItem], str]:
    records: List[Dict[str, Optional[str]]] = []
    current: Optional[Dict[str, Optional[str]]] = None
    prose: List[str] = []
    explanation_lines: Optional[List[str]] = None
    columns: Optional[List[Optional[str]]] = None

    for line in text.splitlines():
        if explanation_lines is not None:
            explanation_lines.append(line)
            continue
        if not line.strip():
            columns = None
            continue
        if _TABLE_SEPARATOR_RE.match(line):
            continue

        heading = _EXPLANATION_RE.match(line)
        if heading:
            explanation_lines = [heading.group("rest") or ""]
            continue

        labelled = _LABEL_LINE_RE.match(line)
        if labelled:
            field = _LABELS[labelled.group("label").lower()]
            value = labelled.group("value").strip()
            if current is None or current.get(field):
                current = {}
                records.append(current)
            current[field] = value
            continue

        if "|" in line:
            cells = _split_row(line)
            header = _header_columns(cells)
            if header is not None:
                columns = header
                continue
            record = _pipe_record(cells, columns)
            if record is not None:
                current = record
                records.append(current)
                continue

        columns = None
        bullet = _BULLET_RE.match(line)
        if bullet:
            current = _bullet_record(bullet.group("body").strip())
            records.append(current)
            continue

        prose.append(line.strip())
        current = None

    items = [item for item in (_build_item(r) for r in records) if item is not None]
    if explanation_lines is not None:
        explanation = "\n".join(explanation_lines).strip()
    else:
        explanation = "\n".join(prose).strip()
    return items, explanation


def normalize(answer: Optional[str]) -> AnalysisResult:
    """Parse *answer* into an :class:`AnalysisResult`; never raises."""
    if answer is None or not answer.strip():
        return AnalysisResult(items=[], explanation="")

    items, explanation = _parse_lines(answer)

    data, prose = _load_json(answer)
    if data is not None:
        result = _result_from_json(data)
        # A JSON fragment with no findings must not hide records in the surrounding text
        if result is not None and (result.items or not items):
            if not result.explanation and prose:
                result = result.model_copy(update={"explanation": prose})
            return result

    if not items:
        logger.info("Provider answer has no structured findings; returning it as explanation")
        return AnalysisResult(items=[], explanation=answer.strip())
    return AnalysisResult(items=items, explanation=explanation)
