"""Fold streamed Realtime deltas into an ordered transcript."""

from __future__ import annotations

import json
from collections.abc import Iterable

from relay.session import Role, TranscriptEntry, utc_timestamp

ROLE_LABELS: dict[str, str] = {
    "user": "User",
    "assistant": "Assistant",
    "system": "System",
}


def find_entry(transcript: Iterable[TranscriptEntry], item_id: str | None) -> TranscriptEntry | None:
    if not item_id:
        return None
    for entry in transcript:
        if entry.item_id == item_id:
            return entry
    return None


def open_entry(
    transcript: list[TranscriptEntry],
    *,
    item_id: str | None,
    role: Role,
    timestamp: str | None = None,
) -> TranscriptEntry:
    """Return the entry for ``item_id``, creating an empty one if needed."""

    entry = find_entry(transcript, item_id)
    if entry is None:
        entry = TranscriptEntry(role=role, item_id=item_id or None, timestamp=timestamp or utc_timestamp())
        transcript.append(entry)
    return entry


def fold_delta(
    transcript: list[TranscriptEntry],
    *,
    item_id: str | None,
    role: Role,
    delta: str,
    timestamp: str | None = None,
) -> TranscriptEntry:
    """Append ``delta`` to the entry for ``item_id``.

    An entry keeps the role it was created with. Deltas without an item id
    cannot be matched and always start a new entry.
    """

    entry = open_entry(transcript, item_id=item_id, role=role, timestamp=timestamp)
    entry.content += delta
    return entry


def fill_if_empty(
    transcript: list[TranscriptEntry],
    *,
    item_id: str | None,
    role: Role,
    content: str,
) -> TranscriptEntry:
    entry = open_entry(transcript, item_id=item_id, role=role)
    if not entry.content:
        entry.content = content
    return entry


def add_note(transcript: list[TranscriptEntry], content: str) -> TranscriptEntry:
    entry = TranscriptEntry(role="system", content=content)
    transcript.append(entry)
    return entry


def record_tool_call(
    transcript: list[TranscriptEntry],
    *,
    name: str,
    arguments: str,
    item_id: str | None = None,
) -> TranscriptEntry:
    """Record a completed tool call as an assistant entry for auditing."""

    try:
        rendered = json.dumps(json.loads(arguments), ensure_ascii=False, sort_keys=True)
    except (json.JSONDecodeError, TypeError):
        rendered = arguments or ""
    content = f"[tool call] {name}({rendered})"
    existing = find_entry(transcript, item_id)
    if existing is not None:
        existing.content = content
        return existing
    entry = TranscriptEntry(role="assistant", content=content, item_id=item_id or None)
    transcript.append(entry)
    return entry


def message_text(item: dict) -> str:
    """Extract the spoken or written text of a Realtime message item."""

    parts: list[str] = []
    for part in item.get("content") or []:
        if not isinstance(part, dict):
            continue
        text = part.get("transcript") or part.get("text")
        if text:
            parts.append(str(text))
    return " ".join(parts)


def render_transcript(transcript: Iterable[TranscriptEntry]) -> str:
    lines: list[str] = []
    for entry in transcript:
        content = entry.content.strip()
        if not content:
            continue
        lines.append(f"{ROLE_LABELS.get(entry.role, entry.role)}: {content}")
    return "\n".join(lines)
