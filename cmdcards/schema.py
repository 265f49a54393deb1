"""
Glossary card schema and category taxonomy.

Card lifecycle:
  CardDraft (no id, no timestamps) → Card (store-assigned id) → edited → removed

Cards cross the row-store boundary as flat records (dicts); examples and tags
travel as nested lists, timestamps as ISO-8601 strings.
"""
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, NamedTuple
import json


class CardCategory(Enum):
    """Fixed, closed set of card categories."""
    TERMINAL = "terminal"
    GIT = "git"
    JAVASCRIPT = "javascript"
    PLAYWRIGHT = "playwright"
    TESTING = "testing"
    CONCEPTS = "concepts"
    OTHER = "other"          # Catch-all

    @classmethod
    def from_str(cls, value: Optional[str]) -> "CardCategory":
        """Exact key lookup; anything outside the taxonomy is OTHER."""
        try:
            return cls(value)
        except (ValueError, TypeError):
            return cls.OTHER


class CategoryStyle(NamedTuple):
    """Display label and visual style of a category."""
    label: str
    style: str


CATEGORY_STYLES: Dict[CardCategory, CategoryStyle] = {
    CardCategory.TERMINAL: CategoryStyle("Terminal & Navegación", "bg-red-50 border-red-200"),
    CardCategory.GIT: CategoryStyle("Control de versiones (Git)", "bg-orange-50 border-orange-200"),
    CardCategory.JAVASCRIPT: CategoryStyle("JavaScript", "bg-yellow-50 border-yellow-200"),
    CardCategory.PLAYWRIGHT: CategoryStyle("Playwright", "bg-violet-50 border-violet-200"),
    CardCategory.TESTING: CategoryStyle("Testing", "bg-teal-50 border-teal-200"),
    CardCategory.CONCEPTS: CategoryStyle("Conceptos clave", "bg-pink-50 border-pink-200"),
    CardCategory.OTHER: CategoryStyle("Otros", "bg-gray-100 border-gray-300"),
}


def resolve_category(key: Any) -> CategoryStyle:
    """Label and style for a category key. Unknown keys get the catch-all entry."""
    if isinstance(key, CardCategory):
        return CATEGORY_STYLES[key]
    try:
        return CATEGORY_STYLES[CardCategory(key)]
    except (ValueError, TypeError):
        return CATEGORY_STYLES[CardCategory.OTHER]


def parse_tags(text: str) -> List[str]:
    """Split comma-separated tag input, dropping blanks."""
    return [tag.strip() for tag in (text or "").split(",") if tag.strip()]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp (trailing Z allowed). Naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        ts = value
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        ts = datetime.fromisoformat(text)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


@dataclass
class Example:
    """One usage example: a command line and what it does."""
    cmd: str = ""
    desc: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"cmd": self.cmd, "desc": self.desc}


def _load_list(value: Any) -> list:
    # Some backends hand JSON columns back as text
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return []
    return value if isinstance(value, list) else []


def _examples_from(value: Any) -> List[Example]:
    examples = []
    for item in _load_list(value):
        if isinstance(item, dict):
            examples.append(Example(cmd=str(item.get("cmd") or ""), desc=str(item.get("desc") or "")))
        elif isinstance(item, Example):
            examples.append(Example(item.cmd, item.desc))
    return examples


class _EditableCard:
    """Form helpers shared by drafts and persisted cards."""

    def add_example(self, cmd: str = "", desc: str = "") -> Example:
        example = Example(cmd=cmd, desc=desc)
        self.examples.append(example)
        return example

    def remove_example(self, index: int) -> Example:
        return self.examples.pop(index)

    def set_example(self, index: int, field_name: str, value: str) -> None:
        if field_name not in ("cmd", "desc"):
            raise ValueError(f"Unknown example field: {field_name}")
        setattr(self.examples[index], field_name, value)

    def set_tags_from_text(self, text: str) -> None:
        self.tags = parse_tags(text)

    def validate(self) -> None:
        """Raise ValueError if a required field is blank."""
        missing = [name for name in ("command", "description") if not (getattr(self, name) or "").strip()]
        if missing:
            raise ValueError(f"Missing required fields: {', '.join(missing)}")

    def _content_record(self) -> Dict[str, Any]:
        return {
            "command": self.command,
            "description": self.description,
            "examples": [e.to_dict() for e in self.examples],
            "qa_context": self.qa_context or "",
            "reminder": self.reminder or "",
            "tags": list(self.tags),
            "favorite": bool(self.favorite),
            "generated_by_ai": bool(self.generated_by_ai),
            "category": self.category.value if isinstance(self.category, CardCategory) else self.category,
        }


@dataclass
class CardDraft(_EditableCard):
    """A card that has not been stored yet."""
    command: str = ""
    description: str = ""
    examples: List[Example] = field(default_factory=list)
    qa_context: str = ""
    reminder: str = ""
    tags: List[str] = field(default_factory=list)
    favorite: bool = False
    generated_by_ai: bool = False
    category: CardCategory = CardCategory.OTHER

    def to_record(self) -> Dict[str, Any]:
        return self._content_record()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CardDraft":
        """Build a draft from form/API input. Unknown keys are ignored."""
        tags = data.get("tags", [])
        if isinstance(tags, str):
            tags = parse_tags(tags)
        return cls(
            command=str(data.get("command") or ""),
            description=str(data.get("description") or ""),
            examples=_examples_from(data.get("examples")),
            qa_context=str(data.get("qa_context") or ""),
            reminder=str(data.get("reminder") or ""),
            tags=[str(t) for t in tags] if isinstance(tags, list) else [],
            favorite=bool(data.get("favorite", False)),
            generated_by_ai=bool(data.get("generated_by_ai", False)),
            category=CardCategory.from_str(data.get("category")),
        )


@dataclass
class Card(_EditableCard):
    """A stored glossary card."""

    # Identity (assigned by the store)
    id: str
    created_at: datetime
    updated_at: datetime

    # Content
    command: str
    description: str
    examples: List[Example] = field(default_factory=list)
    qa_context: Optional[str] = ""
    reminder: Optional[str] = ""

    # Classification
    tags: List[str] = field(default_factory=list)
    category: CardCategory = CardCategory.OTHER

    # Display flags
    favorite: bool = False
    generated_by_ai: bool = False

    def to_draft(self) -> CardDraft:
        return CardDraft(
            command=self.command,
            description=self.description,
            examples=[Example(e.cmd, e.desc) for e in self.examples],
            qa_context=self.qa_context or "",
            reminder=self.reminder or "",
            tags=list(self.tags),
            favorite=self.favorite,
            generated_by_ai=self.generated_by_ai,
            category=self.category,
        )

    def to_record(self) -> Dict[str, Any]:
        """Serialize to a flat store record."""
        record = {"id": self.id}
        record.update(self._content_record())
        record["created_at"] = self.created_at.isoformat() if isinstance(self.created_at, datetime) else self.created_at
        record["updated_at"] = self.updated_at.isoformat() if isinstance(self.updated_at, datetime) else self.updated_at
        return record

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Card":
        """Deserialize a store record. Missing optional fields get defaults."""
        if not record.get("id"):
            raise ValueError("Record has no id")
        now = utc_now()
        created_at = parse_timestamp(record.get("created_at")) or now
        return cls(
            id=str(record["id"]),
            created_at=created_at,
            updated_at=parse_timestamp(record.get("updated_at")) or created_at,
            command=record.get("command") or "",
            description=record.get("description") or "",
            examples=_examples_from(record.get("examples")),
            qa_context=record.get("qa_context") or "",
            reminder=record.get("reminder") or "",
            tags=[str(t) for t in _load_list(record.get("tags"))],
            category=CardCategory.from_str(record.get("category")),
            favorite=bool(record.get("favorite", False)),
            generated_by_ai=bool(record.get("generated_by_ai", False)),
        )
