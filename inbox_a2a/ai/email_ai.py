"""Intent extraction and content generation for the mailbox tools.

Each method asks the LLM for a schema-constrained object. When no LLM is
configured a deterministic fallback is used so tools stay usable in local
development.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from inbox_a2a.ai.client import LLMClient
    from inbox_a2a.mailbox.base import Message

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")

INTENT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "intent": {"type": "string", "enum": ["send", "reply", "forward", "find", "organize"]},
        "recipients": {"type": "array", "items": {"type": "string"}},
        "subject": {"type": "string"},
        "key_points": {"type": "array", "items": {"type": "string"}},
        "urgency": {"type": "string", "enum": ["low", "normal", "high", "urgent"]},
        "tone": {
            "type": "string",
            "enum": ["professional", "casual", "friendly", "formal", "grateful"],
        },
    },
    "required": ["intent", "recipients", "subject", "key_points", "urgency", "tone"],
    "additionalProperties": False,
}

EMAIL_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "to": {"type": "array", "items": {"type": "string"}},
        "cc": {"type": ["array", "null"], "items": {"type": "string"}},
        "bcc": {"type": ["array", "null"], "items": {"type": "string"}},
        "subject": {"type": "string"},
        "body": {"type": "string"},
    },
    "required": ["to", "cc", "bcc", "subject", "body"],
    "additionalProperties": False,
}

ORGANIZE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "rules": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "condition": {"type": "string"},
                    "action": {"type": "string"},
                    "target": {"type": ["string", "null"]},
                },
                "required": ["condition", "action", "target"],
                "additionalProperties": False,
            },
        }
    },
    "required": ["rules"],
    "additionalProperties": False,
}

FOLDER_RULES_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "rules": {"type": "array", "items": {"type": "string"}},
        "description": {"type": "string"},
    },
    "required": ["name", "rules", "description"],
    "additionalProperties": False,
}

CATEGORIES = ("urgent_alert", "client_email", "newsletter", "notification", "personal", "other")
INSIGHT_TYPES = (
    "daily_summary",
    "weekly_summary",
    "important_items",
    "response_needed",
    "analytics",
    "relationships",
)
TIME_PERIODS = ("day", "week", "month")

SEARCH_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "senders": {"type": "array", "items": {"type": "string"}},
        "keywords": {"type": "array", "items": {"type": "string"}},
        "unread": {"type": ["boolean", "null"]},
        "starred": {"type": ["boolean", "null"]},
        "days_back": {"type": ["integer", "null"], "minimum": 1},
    },
    "required": ["senders", "keywords", "unread", "starred", "days_back"],
    "additionalProperties": False,
}

ANALYSIS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "analyses": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "email_id": {"type": "string"},
                    "importance_score": {"type": "number", "minimum": 0, "maximum": 1},
                    "category": {"type": "string", "enum": list(CATEGORIES)},
                    "reason": {"type": "string"},
                    "action_required": {"type": "boolean"},
                },
                "required": ["email_id", "importance_score", "category", "reason", "action_required"],
                "additionalProperties": False,
            },
        }
    },
    "required": ["analyses"],
    "additionalProperties": False,
}

SUMMARY_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {"summary": {"type": "string"}},
    "required": ["summary"],
    "additionalProperties": False,
}

ACTION_ITEMS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "action_items": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "task": {"type": "string"},
                    "deadline": {"type": ["string", "null"]},
                    "priority": {"type": "string", "enum": ["low", "medium", "high"]},
                },
                "required": ["task", "deadline", "priority"],
                "additionalProperties": False,
            },
        }
    },
    "required": ["action_items"],
    "additionalProperties": False,
}

INSIGHTS_QUERY_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "insight_type": {"type": "string", "enum": list(INSIGHT_TYPES)},
        "time_period": {"type": ["string", "null"], "enum": [*TIME_PERIODS, None]},
    },
    "required": ["insight_type", "time_period"],
    "additionalProperties": False,
}

NARRATIVE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "executive_summary": {"type": "string"},
        "highlights": {"type": "array", "items": {"type": "string"}},
        "recommendations": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["executive_summary", "highlights", "recommendations"],
    "additionalProperties": False,
}

AUTOMATED_SENDER_HINTS = ("noreply", "no-reply", "notification", "newsletter", "news@", "digest")
URGENT_WORDS = ("urgent", "asap", "immediately", "deadline", "action required")
REQUEST_CUES = ("please", "can you", "could you", "let me know", "?")

# "if <condition> then <action>" or "<condition> -> <action>"
_RULE_LINE = re.compile(
    r"^\s*(?:if\s+)?(?P<condition>.+?)\s*(?:->|\bthen\b)\s*(?P<action>.+?)\s*$",
    re.IGNORECASE,
)
_MOVE_TARGET = re.compile(r"^move(?: to)?(?: folder)?\s+(?P<target>.+)$", re.IGNORECASE)
_LAST_N_DAYS = re.compile(r"\b(?:last|past) (\d+) days?\b")
_FROM_NAME = re.compile(r"\bfrom ([a-z][\w.-]*)")
_QUOTED = re.compile(r"\"([^\"]+)\"|'([^']+)'")
_ABOUT = re.compile(r"\babout (.+)$", re.IGNORECASE)
_SENTENCE = re.compile(r"[^.!?\n]+[.!?]?")
_PERIOD_WORDS = {"today": 1, "yesterday": 2, "this week": 7, "last week": 7, "past week": 7,
                 "this month": 30, "last month": 30, "past month": 30}


@dataclass
class EmailIntent:
    intent: str
    recipients: list[str] = field(default_factory=list)
    subject: str = ""
    key_points: list[str] = field(default_factory=list)
    urgency: str = "normal"
    tone: str = "professional"


@dataclass
class GeneratedEmail:
    to: list[str]
    subject: str
    body: str
    cc: list[str] = field(default_factory=list)
    bcc: list[str] = field(default_factory=list)


@dataclass
class OrganizationRule:
    """One AI-interpreted rule: messages matching ``condition`` get ``action``."""

    condition: str
    action: str
    target: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"condition": self.condition, "action": self.action, "target": self.target}


@dataclass
class SearchIntent:
    """Filters derived from a natural-language search."""

    senders: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    unread: bool | None = None
    starred: bool | None = None
    days_back: int | None = None

    def native_query(self) -> str:
        """Provider search string: ``from:`` terms followed by keywords."""
        return " ".join([*(f"from:{s}" for s in self.senders), *self.keywords])


@dataclass
class EmailAnalysis:
    email_id: str
    importance_score: float
    category: str
    reason: str
    action_required: bool

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass
class ActionItem:
    task: str
    priority: str = "medium"
    deadline: str | None = None
    email_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass
class InsightsQuery:
    insight_type: str
    time_period: str | None = None


def is_automated_sender(message: Message) -> bool:
    if message.sender is None:
        return False
    address = message.sender.email.lower()
    return any(hint in address for hint in AUTOMATED_SENDER_HINTS)


def extract_addresses(text: str) -> list[str]:
    """Return literal email addresses in order of appearance, without duplicates."""
    seen: dict[str, None] = {}
    for match in EMAIL_PATTERN.findall(text):
        seen.setdefault(match.lower(), None)
    return list(seen)


class EmailAI:
    """Planners backed by an optional LLM client."""

    def __init__(self, llm: LLMClient | None = None) -> None:
        self._llm = llm

    @property
    def enabled(self) -> bool:
        return self._llm is not None

    async def aclose(self) -> None:
        if self._llm is not None:
            await self._llm.aclose()

    async def understand_query(
        self, query: str, sender_email: str | None = None
    ) -> EmailIntent:
        """Extract intent, recipients and key points from a request."""
        if self._llm is None:
            intent = EmailIntent(
                intent="send",
                recipients=extract_addresses(query),
                subject=_fallback_subject(query),
                key_points=[query.strip()],
            )
        else:
            system = (
                "You are an email assistant. Extract the email intent from the request. "
                "Recipients may be full addresses or contact names; keep names as written."
            )
            if sender_email:
                system += f" The user is replying to an email from {sender_email}."
            data = await self._llm.complete_json(
                system, query, INTENT_SCHEMA, "extract_email_intent"
            )
            intent = EmailIntent(**data)

        if sender_email and intent.intent == "reply" and sender_email not in intent.recipients:
            intent.recipients.append(sender_email)
        return intent

    async def generate_email_content(
        self,
        intent: EmailIntent,
        context_message: Message | None = None,
        sender_name: str | None = None,
    ) -> GeneratedEmail:
        """Write the subject and body for a resolved intent."""
        if self._llm is None:
            points = "\n".join(intent.key_points) or intent.subject
            signature = sender_name or ""
            return GeneratedEmail(
                to=list(intent.recipients),
                subject=intent.subject,
                body=f"Hi,\n\n{points}\n\nBest regards,\n{signature}".rstrip() + "\n",
            )

        lines = [
            f"Recipients: {', '.join(intent.recipients)}",
            f"Subject idea: {intent.subject}",
            f"Key points: {'; '.join(intent.key_points)}",
            f"Tone: {intent.tone}. Urgency: {intent.urgency}.",
        ]
        if context_message is not None:
            lines.append(
                f"Original email from {context_message.sender.email if context_message.sender else 'unknown'}: "
                f"{context_message.subject}\n{context_message.snippet}"
            )
        system = (
            "Write a complete, ready-to-send email. End with a sign-off followed by "
            f"the sender's name: {sender_name or '[Your Name]'}."
        )
        data = await self._llm.complete_json(
            system, "\n".join(lines), EMAIL_SCHEMA, "generate_email"
        )
        return GeneratedEmail(
            to=data["to"],
            cc=data.get("cc") or [],
            bcc=data.get("bcc") or [],
            subject=data["subject"],
            body=data["body"],
        )

    async def understand_organization_intent(self, instruction: str) -> list[OrganizationRule]:
        """Turn an organization instruction into ordered rules."""
        if self._llm is None:
            return _fallback_rules(instruction)

        data = await self._llm.complete_json(
            "Convert the user's email organization request into rules. Conditions look "
            "like 'subject contains invoice', 'from newsletter@', 'unread', 'starred' or "
            "'older than 30 days'. Actions are 'move to folder', 'archive', 'star', "
            "'mark read' or 'delete'; target is the folder name or null.",
            instruction,
            ORGANIZE_SCHEMA,
            "understand_organization",
        )
        return [
            OrganizationRule(r["condition"], r["action"], r.get("target") or None)
            for r in data["rules"]
        ]

    async def generate_smart_folder_rules(self, description: str) -> dict[str, Any]:
        """Derive a folder name and matching rules from a description."""
        if self._llm is None:
            words = [w for w in re.findall(r"[A-Za-z0-9]+", description) if len(w) > 2]
            return {
                "name": " ".join(w.capitalize() for w in words[:3]) or "Smart Folder",
                "rules": [description.strip()],
                "description": description.strip(),
            }
        return await self._llm.complete_json(
            "Generate smart folder rules from the user's description. Each rule uses "
            "the same condition language as inbox organization rules.",
            description,
            FOLDER_RULES_SCHEMA,
            "generate_folder_rules",
        )

    async def understand_search_query(self, query: str) -> SearchIntent:
        """Turn a search request into provider filters."""
        if self._llm is None:
            return _fallback_search(query)
        data = await self._llm.complete_json(
            "Extract email search filters. senders are addresses or names, keywords are "
            "terms to search for, unread/starred are null unless the user asks for them, "
            "days_back is the size of the time window in days or null.",
            query,
            SEARCH_SCHEMA,
            "extract_search_params",
        )
        return SearchIntent(**data)

    async def analyze_importance(self, messages: list[Message]) -> list[EmailAnalysis]:
        """Score and categorize messages, one analysis per message."""
        if not messages:
            return []
        if self._llm is None:
            return [_score_message(m) for m in messages]

        data = await self._llm.complete_json(
            "Rate each email's importance from 0 to 1, pick a category, give a one-line "
            "reason and say whether the user has to act on it.",
            "\n\n".join(_describe_message(m) for m in messages),
            ANALYSIS_SCHEMA,
            "analyze_emails",
        )
        known = {m.id for m in messages}
        return [EmailAnalysis(**a) for a in data["analyses"] if a["email_id"] in known]

    async def summarize_messages(self, messages: list[Message], query: str) -> str:
        """Natural-language overview of a search result."""
        if self._llm is None:
            return _fallback_summary(messages, query)
        data = await self._llm.complete_json(
            "Summarize these emails for the user in a short paragraph. Mention senders, "
            "key topics and anything that needs attention.",
            f"Search: {query}\n\n" + "\n\n".join(_describe_message(m) for m in messages),
            SUMMARY_SCHEMA,
            "summarize_emails",
        )
        return data["summary"]

    async def extract_action_items(self, message: Message) -> list[ActionItem]:
        """Tasks the recipient is asked to do in one message."""
        if self._llm is None:
            return _fallback_action_items(message)
        data = await self._llm.complete_json(
            "List the concrete tasks this email asks the recipient to do, with a deadline "
            "if one is stated. Return an empty list when nothing is asked.",
            _describe_message(message, full=True),
            ACTION_ITEMS_SCHEMA,
            "extract_action_items",
        )
        return [ActionItem(email_id=message.id, **item) for item in data["action_items"]]

    async def understand_insights_query(self, query: str) -> InsightsQuery:
        """Pick the kind of mailbox insight a request is after."""
        if self._llm is None:
            return _fallback_insights_query(query)
        data = await self._llm.complete_json(
            "Classify the request as one insight type: daily_summary, weekly_summary, "
            "important_items, response_needed, analytics or relationships. time_period is "
            "day, week, month or null.",
            query,
            INSIGHTS_QUERY_SCHEMA,
            "understand_insights",
        )
        return InsightsQuery(**data)

    async def narrate_insights(
        self, insight_type: str, facts: dict[str, Any], fallback: str
    ) -> dict[str, Any]:
        """Executive summary, highlights and recommendations for computed facts.

        Without an LLM, ``fallback`` becomes the summary and the lists are empty.
        """
        if self._llm is None:
            return {"summary": fallback, "highlights": [], "recommendations": []}
        data = await self._llm.complete_json(
            f"You are an email productivity assistant. Write a {insight_type.replace('_', ' ')} "
            "for the user from these mailbox statistics: a short executive summary, the key "
            "highlights and practical recommendations.",
            json.dumps(facts, default=str),
            NARRATIVE_SCHEMA,
            "generate_insights",
        )
        return {
            "summary": data["executive_summary"],
            "highlights": data["highlights"],
            "recommendations": data["recommendations"],
        }


def _describe_message(message: Message, full: bool = False) -> str:
    sender = message.sender.email if message.sender else "unknown"
    text = message.body if full and message.body else message.snippet
    return (
        f"ID: {message.id}\nFrom: {sender}\nSubject: {message.subject}\n"
        f"Unread: {message.unread}\n{text}"
    )


def _fallback_search(query: str) -> SearchIntent:
    lowered = query.lower()
    intent = SearchIntent(senders=extract_addresses(query))
    if not intent.senders:
        intent.senders = [
            name for name in _FROM_NAME.findall(lowered)
            if name not in ("the", "my", "last", "this", "today", "yesterday")
        ]
    if "unread" in lowered:
        intent.unread = True
    if "starred" in lowered:
        intent.starred = True

    match = _LAST_N_DAYS.search(lowered)
    if match:
        intent.days_back = int(match.group(1))
    else:
        intent.days_back = next((d for w, d in _PERIOD_WORDS.items() if w in lowered), None)

    quoted = [a or b for a, b in _QUOTED.findall(query)]
    if quoted:
        intent.keywords = quoted
    else:
        about = _ABOUT.search(query)
        if about:
            intent.keywords = [about.group(1).strip(" .?!")]
    return intent


def _score_message(message: Message) -> EmailAnalysis:
    text = f"{message.subject} {message.snippet}".lower()
    automated = is_automated_sender(message)
    urgent = any(w in text for w in URGENT_WORDS)

    score = 0.3
    reasons = []
    if message.unread:
        score += 0.2
        reasons.append("unread")
    if message.starred:
        score += 0.2
        reasons.append("starred")
    if urgent:
        score += 0.3
        reasons.append("urgent wording")
    if automated:
        score -= 0.2
        reasons.append("automated sender")

    if automated:
        sender = message.sender.email.lower() if message.sender else ""
        newsletter = "news" in sender or "digest" in sender or "unsubscribe" in text
        category = "newsletter" if newsletter else "notification"
    elif urgent:
        category = "urgent_alert"
    else:
        category = "other"

    return EmailAnalysis(
        email_id=message.id,
        importance_score=round(min(max(score, 0.0), 1.0), 2),
        category=category,
        reason=", ".join(reasons) or "no signals",
        action_required=not automated and any(c in text for c in REQUEST_CUES),
    )


def _fallback_summary(messages: list[Message], query: str) -> str:
    count = len(messages)
    summary = f'Found {count} email{"s" if count != 1 else ""} matching "{query}"'
    details = []
    unread = sum(1 for m in messages if m.unread)
    starred = sum(1 for m in messages if m.starred)
    if unread:
        details.append(f"{unread} unread")
    if starred:
        details.append(f"{starred} starred")
    if details:
        summary += f" ({', '.join(details)})"
    summary += "."

    senders = [
        (m.sender.name or m.sender.email.split("@")[0]) if m.sender else "Unknown"
        for m in messages[:3]
    ]
    summary += f" From: {', '.join(senders)}"
    if count > 3:
        summary += f" and {count - 3} others"
    return summary + "."


def _fallback_action_items(message: Message) -> list[ActionItem]:
    items = []
    for sentence in _SENTENCE.findall(f"{message.subject}. {message.snippet}"):
        sentence = sentence.strip()
        lowered = sentence.lower()
        if not sentence or not any(c in lowered for c in REQUEST_CUES):
            continue
        priority = "high" if any(w in lowered for w in URGENT_WORDS) else "medium"
        items.append(ActionItem(task=sentence, priority=priority, email_id=message.id))
    return items


def _fallback_insights_query(query: str) -> InsightsQuery:
    q = query.lower()
    period = next((p for p in TIME_PERIODS if p in q), None)
    if any(w in q for w in ("respond", "reply", "replies", "response")):
        kind = "response_needed"
    elif any(w in q for w in ("important", "priority", "urgent")):
        kind = "important_items"
    elif any(w in q for w in ("contact", "relationship", "who do i")):
        kind = "relationships"
    elif any(w in q for w in ("analytics", "stats", "statistics", "volume", "trend")):
        kind = "analytics"
    elif "week" in q:
        kind = "weekly_summary"
    else:
        kind = "daily_summary"
    return InsightsQuery(insight_type=kind, time_period=period)


def _fallback_subject(query: str) -> str:
    text = EMAIL_PATTERN.sub("", query)
    text = re.sub(r"^\s*(send|email|write|reply|forward)( an?)?( email)?( to)?\s*", "", text, flags=re.IGNORECASE)
    words = text.split()
    return " ".join(words[:8]).strip(" ,.:;").capitalize() or "(no subject)"


def _fallback_rules(instruction: str) -> list[OrganizationRule]:
    rules = []
    for line in re.split(r"[;\n]", instruction):
        match = _RULE_LINE.match(line)
        if not match:
            continue
        action = match.group("action").strip()
        target = None
        move = _MOVE_TARGET.match(action)
        if move:
            target = move.group("target").strip().strip("'\"")
            action = "move to folder"
        rules.append(OrganizationRule(match.group("condition").strip(), action.lower(), target))
    logger.debug("Parsed %d rules without LLM", len(rules))
    return rules
