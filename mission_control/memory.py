"""
Bot memory: read-only daily conversation logs.

Layout:
    memory/{yyyy}/{mm}/{dd}.md     one file per day
    memory/favorites.json          {"dates": ["2024-07-12", ...]}

A day file is markdown (optional frontmatter) where each message starts with
a `## HH:MM - Role` header and runs until the next header.
"""
import re
import logging
from pathlib import Path
from typing import List, Optional, Dict, Any

from .errors import ValidationError
from .schema import ConversationMessage, DayConversation, MessageRole
from .storage import read_json, write_json, read_markdown, list_dirs, list_files

logger = logging.getLogger(__name__)

HEADER_RE = re.compile(r"^##\s+(\d{1,2}:\d{2})\s*-\s*(.+)$")
DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")

EXCERPT_RADIUS = 50


def detect_role(label: str) -> MessageRole:
    """Map a header label ("Clowdbot", "System", "Ana") to a message role."""
    lowered = label.strip().lower()
    if "assistant" in lowered or "clowdbot" in lowered or "bot" in lowered:
        return MessageRole.ASSISTANT
    if "system" in lowered:
        return MessageRole.SYSTEM
    return MessageRole.USER


def parse_conversation(body: str) -> List[ConversationMessage]:
    """Split a day file body into messages. Text before the first header is ignored."""
    messages = []
    current = None
    lines: List[str] = []

    for line in body.split("\n"):
        match = HEADER_RE.match(line)
        if match:
            if current is not None:
                current.content = "\n".join(lines).strip()
                messages.append(current)
            time, label = match.groups()
            current = ConversationMessage(role=detect_role(label), content="", timestamp=time)
            lines = []
        elif current is not None:
            lines.append(line)

    if current is not None:
        current.content = "\n".join(lines).strip()
        messages.append(current)
    return messages


class MemoryStore:
    def __init__(self, data_dir: str):
        self.root = Path(data_dir) / "memory"
        self.favorites_file = self.root / "favorites.json"

    def _day_path(self, date: str) -> Path:
        match = DATE_RE.match(date or "")
        if not match:
            raise ValidationError(f"date must be YYYY-MM-DD, got: {date!r}")
        year, month, day = match.groups()
        return self.root / year / month / f"{day}.md"

    def get_conversation(self, date: str) -> Optional[DayConversation]:
        result = read_markdown(self._day_path(date))
        if result is None:
            return None
        data, body = result
        return DayConversation(date=str(data.get("date") or date), messages=parse_conversation(body))

    def available_dates(self) -> List[str]:
        """Every date with a log file, newest first."""
        dates = []
        for year in list_dirs(self.root):
            if not re.match(r"^\d{4}$", year):
                continue
            for month in list_dirs(self.root / year):
                if not re.match(r"^\d{2}$", month):
                    continue
                for name in list_files(self.root / year / month, ".md"):
                    day = name[:-len(".md")]
                    if re.match(r"^\d{2}$", day):
                        dates.append(f"{year}-{month}-{day}")
        dates.sort(reverse=True)
        return dates

    def search_conversations(self, keyword: str) -> List[Dict[str, Any]]:
        """
        Case-insensitive substring search across every message of every day.

        Returns one hit per matching message:
            {"date": ..., "excerpt": ..., "messageIndex": ...}
        The excerpt is the first match with 50 characters of context either
        side, "..." marking truncated ends.
        """
        needle = (keyword or "").lower()
        if not needle:
            return []

        hits = []
        for date in self.available_dates():
            conversation = self.get_conversation(date)
            if conversation is None:
                continue
            for index, message in enumerate(conversation.messages):
                found = message.content.lower().find(needle)
                if found < 0:
                    continue
                start = max(0, found - EXCERPT_RADIUS)
                end = min(len(message.content), found + len(needle) + EXCERPT_RADIUS)
                excerpt = message.content[start:end]
                if start > 0:
                    excerpt = "..." + excerpt
                if end < len(message.content):
                    excerpt = excerpt + "..."
                hits.append({"date": date, "excerpt": excerpt, "messageIndex": index})
        return hits

    # ── Favorites ────────────────────────────────────────────────────────────

    def favorites(self) -> List[str]:
        data = read_json(self.favorites_file) or {}
        return list(data.get("dates") or [])

    def toggle_favorite(self, date: str) -> List[str]:
        """Add date to favorites, or remove it if already there. Returns the new list."""
        if not date:
            raise ValidationError("date is required")
        dates = self.favorites()
        if date in dates:
            dates.remove(date)
        else:
            dates.append(date)
        write_json(self.favorites_file, {"dates": dates})
        logger.debug(f"Favorites now: {dates}")
        return dates
