"""Submission payload, text block, filename, and receipt builders."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Sequence
from urllib.parse import quote

from src.app_config import APP_VERSION, METRICS, SUBMISSION_TITLE, TECH_MARKER
from src.errors import SubmissionParseError
from src.month_window import MonthRef, format_local_datetime


FILE_PART_MAX_LENGTH = 40
FILE_PART_FALLBACK = "NA"
NO_CHAPTER_FILE_TOKEN = "NoChapter"
NO_CHAPTER_RECEIPT = "(No chapter)"
OUTLOOK_COMPOSE_URL = "https://outlook.office.com/mail/deeplink/compose"

_WHITESPACE_RUN = re.compile(r"\s+")
_UNSAFE_FILE_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


@dataclass(frozen=True)
class SubmissionBlock:
    full: str
    human_only: str
    receipt_line: str


def _iso_utc(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _clean_number(value: Any) -> int | float:
    if value is None or isinstance(value, bool):
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    return int(number) if number.is_integer() else number


def build_submission_payload(
    submission_id: str,
    created_at: datetime,
    region: str,
    chapter: str,
    staff: str,
    months: Sequence[MonthRef],
    goals: dict,
) -> dict[str, Any]:
    metrics_by_month: dict[str, list[dict[str, Any]]] = {}
    for ref in months:
        month_goals = goals.get(ref.key) or {}
        entries = []
        for metric in METRICS:
            draft = month_goals.get(metric.key) or {}
            entries.append(
                {
                    "key": metric.key,
                    "label": metric.label,
                    "goal_value": _clean_number(draft.get("goal_value")),
                    "reasons": list(draft.get("reasons") or []),
                    "note": str(draft.get("note") or ""),
                }
            )
        metrics_by_month[ref.key] = entries

    return {
        "submission_id": submission_id,
        "created_at_iso": _iso_utc(created_at),
        "region": region,
        "chapter": chapter,
        "staff": staff,
        "months": [ref.key for ref in months],
        "metrics_by_month": metrics_by_month,
        "app_version": APP_VERSION,
    }


def build_submission_block(payload: dict[str, Any], created_at: datetime) -> SubmissionBlock:
    """Render the human summary, the full block with its JSON footer, and the receipt line."""
    lines = [
        SUBMISSION_TITLE,
        f"Region: {payload['region']}",
        f"Chapter: {payload['chapter']}",
        f"Staff: {payload['staff']}",
        f"Window: {', '.join(payload['months'])}",
        f"Submitted: {format_local_datetime(created_at)}",
        "",
    ]
    for month_key in payload["months"]:
        lines.append(month_key)
        for metric in payload["metrics_by_month"][month_key]:
            reason_text = f" (Reasons: {', '.join(metric['reasons'])})" if metric["reasons"] else ""
            note_text = f" (Note: {metric['note']})" if metric["note"] else ""
            lines.append(f"- {metric['label']}: {metric['goal_value']}{reason_text}{note_text}")
        lines.append("")

    human_only = "\n".join(lines).rstrip()
    full = f"{human_only}\n\n{TECH_MARKER}\n{json.dumps(payload, indent=2, ensure_ascii=False)}"

    chapter_for_receipt = payload["chapter"] or NO_CHAPTER_RECEIPT
    receipt_line = (
        f"Goals submitted: {', '.join(payload['months'])} | {payload['region']} | "
        f"{chapter_for_receipt} | {payload['staff']} | {len(METRICS)} metrics"
    )
    return SubmissionBlock(full=full, human_only=human_only, receipt_line=receipt_line)


def sanitize_file_part(value: str) -> str:
    text = _WHITESPACE_RUN.sub("_", str(value).strip())
    text = _UNSAFE_FILE_CHARS.sub("", text)
    return text[:FILE_PART_MAX_LENGTH] or FILE_PART_FALLBACK


def build_submission_filename(payload: dict[str, Any]) -> str:
    window = sanitize_file_part("-".join(payload["months"]))
    region = sanitize_file_part(payload["region"])
    chapter = sanitize_file_part(payload["chapter"] or NO_CHAPTER_FILE_TOKEN)
    staff = sanitize_file_part(payload["staff"])
    return f"MonthlyGoals_{window}_{region}_{chapter}_{staff}.txt"


def extract_payload(text: str) -> dict[str, Any]:
    """Recover the machine-readable payload from a pasted submission block."""
    _, marker, tail = str(text).partition(TECH_MARKER)
    if not marker:
        raise SubmissionParseError("Submission text does not contain the technical section marker.")
    try:
        payload = json.loads(tail.strip())
    except json.JSONDecodeError as exc:
        raise SubmissionParseError(f"Technical section is not valid JSON: {exc.msg}") from exc
    if not isinstance(payload, dict) or "metrics_by_month" not in payload:
        raise SubmissionParseError("Technical section is missing metrics_by_month.")
    return payload


def email_subject(payload: dict[str, Any]) -> str:
    return f"Monthly Goals {', '.join(payload['months'])} – {payload['staff']} ({payload['region']})"


def build_email_links(payload: dict[str, Any], body: str) -> dict[str, str]:
    subject = quote(email_subject(payload), safe="")
    encoded_body = quote(body, safe="")
    return {
        "mailto": f"mailto:?subject={subject}&body={encoded_body}",
        "outlook": f"{OUTLOOK_COMPOSE_URL}?subject={subject}&body={encoded_body}",
    }
