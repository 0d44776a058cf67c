"""
Global search across projects, tasks, documents, crew and bot memory.

Scoring (per record):
  - all searchable fields are joined into one lowercase haystack
  - each query token contributes by the position of its first occurrence:
      index 0 -> +6, index < 10 -> +4, anywhere else -> +2
  - score = 10 * distinct tokens matched + positional sum
  - records matching no token are dropped

Results are grouped by type, sorted by score (desc) then title, capped per
type and concatenated in TYPE_ORDER.
"""
import re
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any, Callable, Union, Tuple

from .schema import Project, Task, Document, Member
from .utils import plural

logger = logging.getLogger(__name__)

TYPE_ORDER = ["project", "task", "document", "person", "memory"]

TYPE_LIMITS = {
    "project": 6,
    "task": 8,
    "document": 6,
    "person": 6,
    "memory": 6,
}

EXCERPT_BEFORE = 40
EXCERPT_AFTER = 60
EXCERPT_FALLBACK = 120


@dataclass
class SearchResult:
    id: str
    type: str
    title: str
    href: str
    score: int
    subtitle: Optional[str] = None
    meta: Optional[str] = None
    priority: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "subtitle": self.subtitle,
            "href": self.href,
            "meta": self.meta,
            "priority": self.priority,
            "score": self.score,
        }
        return {k: v for k, v in data.items() if v is not None}


@dataclass
class SearchCorpus:
    """Everything the engine scans. memory_search(token) -> [{date, excerpt, messageIndex}]."""
    projects: List[Project] = field(default_factory=list)
    tasks_by_project: Dict[str, List[Task]] = field(default_factory=dict)
    documents: List[Document] = field(default_factory=list)
    members: List[Member] = field(default_factory=list)
    memory_search: Optional[Callable[[str], List[Dict[str, Any]]]] = None


def load_corpus(projects, tasks, documents, members, memory) -> SearchCorpus:
    """Build a corpus from the stores. tasks_by_project is keyed by project id."""
    project_list = projects.list_projects()
    return SearchCorpus(
        projects=project_list,
        tasks_by_project={p.id: tasks.list_tasks(p.slug) for p in project_list},
        documents=documents.list_documents(),
        members=members.list_members(),
        memory_search=memory.search_conversations,
    )


# ── Scoring primitives ───────────────────────────────────────────────────────

def tokenize(query: Optional[str]) -> List[str]:
    return (query or "").lower().split()


def compute_match_score(fields: List[Optional[str]], tokens: List[str]) -> Tuple[int, int]:
    """(distinct tokens matched, score). Score is 0 when nothing matched."""
    haystack = " ".join(f for f in fields if f).lower()
    if not haystack:
        return 0, 0

    matched = 0
    positional = 0
    for token in set(tokens):
        index = haystack.find(token)
        if index < 0:
            continue
        matched += 1
        if index == 0:
            positional += 6
        elif index < 10:
            positional += 4
        else:
            positional += 2

    if matched == 0:
        return 0, 0
    return matched, matched * 10 + positional


def build_excerpt(text: Optional[str], tokens: List[str], max_length: int = EXCERPT_FALLBACK) -> str:
    """Window of whitespace-collapsed text around the earliest token match."""
    cleaned = re.sub(r"\s+", " ", text or "").strip()
    if not cleaned:
        return ""

    lowered = cleaned.lower()
    match_index = -1
    match_length = 0
    for token in tokens:
        idx = lowered.find(token)
        if idx != -1 and (match_index == -1 or idx < match_index):
            match_index = idx
            match_length = len(token)

    if match_index == -1:
        return cleaned[:max_length] + "…" if len(cleaned) > max_length else cleaned

    start = max(0, match_index - EXCERPT_BEFORE)
    end = min(len(cleaned), match_index + match_length + EXCERPT_AFTER)
    excerpt = cleaned[start:end]
    if start > 0:
        excerpt = "…" + excerpt
    if end < len(cleaned):
        excerpt = excerpt + "…"
    return excerpt


# ── Per-type collectors ──────────────────────────────────────────────────────

def _project_results(corpus: SearchCorpus, tokens: List[str]) -> List[SearchResult]:
    results = []
    for project in corpus.projects:
        matches, score = compute_match_score([project.name, project.description], tokens)
        if not matches:
            continue
        results.append(SearchResult(
            id=project.id,
            type="project",
            title=project.name,
            subtitle=project.description or None,
            href=f"/projects/{project.slug}",
            meta=plural(len(project.member_ids), "member"),
            score=score,
        ))
    return results


def _task_results(corpus: SearchCorpus, tokens: List[str]) -> List[SearchResult]:
    results = []
    for project in corpus.projects:
        for task in corpus.tasks_by_project.get(project.id, []):
            matches, score = compute_match_score([task.title, task.description], tokens)
            if not matches:
                continue
            results.append(SearchResult(
                id=task.id,
                type="task",
                title=task.title,
                subtitle=build_excerpt(task.description, tokens) or None,
                href=f"/projects/{project.slug}?task={task.id}",
                meta=f"{project.name} · {task.status.label}",
                priority=task.priority.value,
                score=score,
            ))
    return results


def _document_results(corpus: SearchCorpus, tokens: List[str]) -> List[SearchResult]:
    results = []
    for doc in corpus.documents:
        matches, score = compute_match_score([doc.title, doc.content], tokens)
        if not matches:
            continue
        results.append(SearchResult(
            id=doc.id,
            type="document",
            title=doc.title,
            subtitle=build_excerpt(doc.content, tokens) or None,
            href=f"/docs?doc={doc.id}",
            score=score,
        ))
    return results


def _person_results(corpus: SearchCorpus, tokens: List[str]) -> List[SearchResult]:
    results = []
    for member in corpus.members:
        matches, score = compute_match_score([member.name, member.role, member.description], tokens)
        if not matches:
            continue
        results.append(SearchResult(
            id=member.id,
            type="person",
            title=member.name,
            subtitle=member.role or member.description or None,
            href=f"/people?member={member.id}",
            meta=plural(len(member.project_ids), "project") if member.project_ids else None,
            score=score,
        ))
    return results


def _memory_results(corpus: SearchCorpus, tokens: List[str]) -> List[SearchResult]:
    """
    Memory is searched one token at a time; hits are keyed by date and
    message index so a message surfaced by several tokens appears once. The
    excerpt recovered by the first hit is what gets scored.
    """
    if corpus.memory_search is None:
        return []

    seen: Dict[str, SearchResult] = {}
    for token in tokens:
        for hit in corpus.memory_search(token):
            key = f"{hit['date']}-{hit['messageIndex']}"
            if key in seen:
                continue
            _, score = compute_match_score([hit["excerpt"]], tokens)
            seen[key] = SearchResult(
                id=key,
                type="memory",
                title=hit["date"],
                subtitle=hit["excerpt"],
                href=f"/memory?date={hit['date']}",
                score=score or 1,
            )
    return list(seen.values())


COLLECTORS = {
    "project": _project_results,
    "task": _task_results,
    "document": _document_results,
    "person": _person_results,
    "memory": _memory_results,
}


def search(query: Optional[str], corpus: Union[SearchCorpus, Callable[[], SearchCorpus]]) -> List[SearchResult]:
    """
    Ranked, grouped, capped results for query.

    corpus may be a SearchCorpus or a zero-argument loader; a loader is only
    called when the query has at least one token.
    """
    tokens = tokenize(query)
    if not tokens:
        return []
    if callable(corpus):
        corpus = corpus()

    ordered = []
    for kind in TYPE_ORDER:
        group = COLLECTORS[kind](corpus, tokens)
        group.sort(key=lambda r: (-r.score, r.title.casefold()))
        ordered.extend(group[:TYPE_LIMITS[kind]])

    logger.debug(f"Search {query!r}: {len(ordered)} results")
    return ordered


def filter_tasks(tasks: List[Task], query: Optional[str]) -> List[Task]:
    """Tasks whose title or description contains the whole query (case-insensitive)."""
    needle = (query or "").strip().lower()
    if not needle:
        return list(tasks)
    return [t for t in tasks if needle in f"{t.title} {t.description}".lower()]
