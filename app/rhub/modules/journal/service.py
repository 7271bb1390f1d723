from __future__ import annotations

import math
from collections import Counter
from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterable

from app.rhub.audit import record_event
from app.rhub.modules.journal.analysis import JournalAnalysis, analyze_entry
from app.rhub.utils import clean_str, string_list

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.rhub.models import User
    from app.rhub.modules.journal.models import JournalComment, JournalEntry


MIN_FONT_SIZE = 12
FONT_SIZE_RANGE = 20
DEFAULT_CLOUD_SIZE = 30


def validate_entry_payload(payload: dict, *, partial: bool = False) -> list[str]:
    errors = []

    def present(key: str) -> bool:
        return not partial or key in payload

    if present("title") and not clean_str(payload.get("title")):
        errors.append("Title is required.")
    if present("content") and not clean_str(payload.get("content")):
        errors.append("Content is required.")
    mood = payload.get("mood")
    if mood is not None and (not isinstance(mood, int) or isinstance(mood, bool) or not 1 <= mood <= 10):
        errors.append("Mood must be a whole number from 1 to 10.")
    if "isPrivate" in payload and not isinstance(payload["isPrivate"], bool):
        errors.append("isPrivate must be a boolean.")
    if "userSelectedTags" in payload and string_list(payload["userSelectedTags"]) is None:
        errors.append("userSelectedTags must be a list of strings.")
    return errors


def _apply_analysis(entry: "JournalEntry", result: JournalAnalysis) -> None:
    entry.ai_suggested_tags = result.suggested_tags
    entry.ai_analysis = result.analysis
    entry.emotions = result.emotions
    entry.topics = result.topics
    entry.sentiment_positive = result.sentiment.positive
    entry.sentiment_negative = result.sentiment.negative
    entry.sentiment_neutral = result.sentiment.neutral


def create_entry(
    s: "Session",
    owner: "User",
    payload: dict,
    user: "User",
    *,
    api_key: str = "",
    model: str = "gpt-4o",
) -> "JournalEntry":
    """Create and analyse an entry. Assumes validate_entry_payload passed."""
    from app.rhub.modules.journal.models import JournalEntry

    title = clean_str(payload.get("title"))
    content = clean_str(payload.get("content"))
    entry = JournalEntry(
        user_id=owner.id,
        title=title,
        content=content,
        mood=payload.get("mood"),
        is_private=payload.get("isPrivate", False),
        user_selected_tags=string_list(payload.get("userSelectedTags")) or None,
    )
    result = analyze_entry(title, content, api_key=api_key, model=model)
    _apply_analysis(entry, result)
    entry.initial_ai_tags = list(result.suggested_tags)
    s.add(entry)
    s.flush()

    record_event(
        s,
        actor=user,
        action="journal.create",
        entity_type="JournalEntry",
        entity_id=str(entry.id),
        metadata={"owner_id": owner.id, "tags": entry.ai_suggested_tags},
    )
    return entry


def update_entry(
    s: "Session",
    entry: "JournalEntry",
    payload: dict,
    user: "User",
    *,
    api_key: str = "",
    model: str = "gpt-4o",
) -> "JournalEntry":
    changed: list[str] = []

    if "title" in payload:
        title = clean_str(payload["title"])
        if title != entry.title:
            entry.title = title
            changed.append("title")
    if "content" in payload:
        content = clean_str(payload["content"])
        if content != entry.content:
            entry.content = content
            changed.append("content")
    if "mood" in payload and payload["mood"] != entry.mood:
        entry.mood = payload["mood"]
        changed.append("mood")
    if "isPrivate" in payload and payload["isPrivate"] != entry.is_private:
        entry.is_private = payload["isPrivate"]
        changed.append("is_private")
    if "userSelectedTags" in payload:
        tags = string_list(payload["userSelectedTags"]) or None
        if tags != entry.user_selected_tags:
            entry.user_selected_tags = tags
            changed.append("user_selected_tags")

    if "title" in changed or "content" in changed:
        # initial_ai_tags stays as first suggested
        _apply_analysis(entry, analyze_entry(entry.title, entry.content, api_key=api_key, model=model))

    entry.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="journal.edit",
        entity_type="JournalEntry",
        entity_id=str(entry.id),
        metadata={"changed": changed},
    )
    return entry


def delete_entry(s: "Session", entry: "JournalEntry", user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="journal.delete",
        entity_type="JournalEntry",
        entity_id=str(entry.id),
        metadata={"owner_id": entry.user_id, "title": entry.title},
    )
    s.delete(entry)


def add_comment(s: "Session", entry: "JournalEntry", text: str, user: "User") -> "JournalComment":
    from app.rhub.modules.journal.models import JournalComment

    comment = JournalComment(
        journal_entry_id=entry.id,
        user_id=user.id,
        therapist_id=user.id if user.has_role("therapist") else None,
        comment=text,
    )
    s.add(comment)
    s.flush()
    s.refresh(entry)
    record_event(
        s,
        actor=user,
        action="journal.comment",
        entity_type="JournalEntry",
        entity_id=str(entry.id),
        metadata={"comment_id": comment.id},
    )
    return comment


def tag_frequencies(entries: Iterable["JournalEntry"]) -> Counter:
    counts: Counter = Counter()
    for entry in entries:
        for tag in entry.selected_tags:
            counts[tag] += 1
    return counts


def word_cloud(frequencies: dict[str, int], limit: int = DEFAULT_CLOUD_SIZE) -> list[dict[str, Any]]:
    """
    Size tags for the client's word cloud.

    Tags are ordered by count (desc) then name, truncated to `limit`, and sized
    linearly between 12 and 32 px over the [min, max] of all counts, including
    tags the limit drops. The colour band splits the same normalized value in
    thirds; when every tag has the same count the whole cloud is "low".
    """
    if not frequencies:
        return []
    lo, hi = min(frequencies.values()), max(frequencies.values())
    ranked = sorted(frequencies.items(), key=lambda kv: (-kv[1], kv[0]))[: max(limit, 0)]
    spread = (hi - lo) or 1

    cloud = []
    for tag, count in ranked:
        normalized = (count - lo) / spread
        if hi == lo or normalized < 0.33:
            band = "low"
        elif normalized < 0.66:
            band = "medium"
        else:
            band = "high"
        cloud.append(
            {
                "tag": tag,
                "count": count,
                "fontSize": MIN_FONT_SIZE + math.floor(normalized * FONT_SIZE_RANGE),
                "band": band,
            }
        )
    return cloud


def journal_stats(entries: list["JournalEntry"], top: int = 5) -> dict[str, Any]:
    emotions: Counter = Counter()
    pos = neg = neu = 0.0
    moods = []
    for entry in entries:
        emotions.update(entry.emotions or [])
        pos += entry.sentiment_positive or 0
        neg += entry.sentiment_negative or 0
        neu += entry.sentiment_neutral or 0
        if entry.mood is not None:
            moods.append(entry.mood)

    n = len(entries)
    return {
        "entryCount": n,
        "averageSentiment": {
            "positive": round(pos / n, 1) if n else 0,
            "negative": round(neg / n, 1) if n else 0,
            "neutral": round(neu / n, 1) if n else 0,
        },
        "averageMood": round(sum(moods) / len(moods), 1) if moods else None,
        "topEmotions": [{"emotion": e, "count": c} for e, c in emotions.most_common(top)],
    }
