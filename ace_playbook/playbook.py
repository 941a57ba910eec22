"""Playbook storage and mutation logic for ACE."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

from .delta import TAG_NAMES, DeltaBatch
from .errors import BulletNotFoundError, InvalidPlaybookDataError, InvalidTagError

logger = logging.getLogger(__name__)

EMPTY_PLAYBOOK_PROMPT = "Playbook(empty)"
DEFAULT_SECTION_PREFIX = "default"

BULLET_FIELDS = (
    "id", "section", "content", "helpful", "harmful", "neutral",
    "created_at", "updated_at",
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class TagCounts:
    """The three outcome counters as a fixed record."""

    helpful: int = 0
    harmful: int = 0
    neutral: int = 0

    def __add__(self, other: "TagCounts") -> "TagCounts":
        return TagCounts(
            helpful=self.helpful + other.helpful,
            harmful=self.harmful + other.harmful,
            neutral=self.neutral + other.neutral,
        )

    def to_dict(self) -> Dict[str, int]:
        return {"helpful": self.helpful, "harmful": self.harmful, "neutral": self.neutral}


@dataclass
class Bullet:
    """Single playbook entry."""

    id: str
    section: str
    content: str
    helpful: int = 0
    harmful: int = 0
    neutral: int = 0
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)

    def apply_metadata(self, metadata: Mapping[str, int]) -> None:
        """Set counters to absolute values; unknown keys are ignored."""
        for key, value in metadata.items():
            if key in TAG_NAMES:
                setattr(self, key, max(0, int(value)))
        self.updated_at = _now()

    def tag(self, tag: str, increment: int = 1) -> None:
        """Add a signed increment to a counter, flooring the result at zero."""
        if tag not in TAG_NAMES:
            raise InvalidTagError(tag)
        current = getattr(self, tag)
        setattr(self, tag, max(0, current + increment))
        self.updated_at = _now()

    def counts(self) -> TagCounts:
        return TagCounts(self.helpful, self.harmful, self.neutral)

    def render(self) -> str:
        counters = f"(helpful={self.helpful}, harmful={self.harmful}, neutral={self.neutral})"
        return f"- [{self.id}] {self.content} {counters}"

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Bullet":
        if not isinstance(payload, Mapping):
            raise InvalidPlaybookDataError(
                f"Bullet must be an object, got {type(payload).__name__}"
            )
        missing = [name for name in BULLET_FIELDS if name not in payload]
        if missing:
            raise InvalidPlaybookDataError(f"Bullet missing fields: {', '.join(missing)}")
        for name in ("id", "section", "content", "created_at", "updated_at"):
            if not isinstance(payload[name], str):
                raise InvalidPlaybookDataError(f"Bullet field '{name}' must be a string")
        for name in TAG_NAMES:
            value = payload[name]
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise InvalidPlaybookDataError(
                    f"Bullet field '{name}' must be a non-negative integer, got {value!r}"
                )
        try:
            created = datetime.fromisoformat(payload["created_at"])
            updated = datetime.fromisoformat(payload["updated_at"])
        except ValueError as exc:
            raise InvalidPlaybookDataError(
                f"Bullet {payload['id']!r} has a non ISO-8601 timestamp: {exc}"
            ) from exc
        try:
            out_of_order = updated < created
        except TypeError as exc:
            # naive and aware timestamps cannot be ordered
            raise InvalidPlaybookDataError(
                f"Bullet {payload['id']!r} mixes naive and timezone-aware timestamps"
            ) from exc
        if out_of_order:
            raise InvalidPlaybookDataError(
                f"Bullet {payload['id']!r} has updated_at before created_at"
            )
        return cls(**{name: payload[name] for name in BULLET_FIELDS})


class Playbook:
    """Structured context store as defined by ACE."""

    def __init__(self) -> None:
        self._bullets: Dict[str, Bullet] = {}
        self._sections: Dict[str, List[str]] = {}
        self._next_id = 0

    def __repr__(self) -> str:
        return f"Playbook(bullets={len(self._bullets)}, sections={list(self._sections.keys())})"

    def __str__(self) -> str:
        return self.as_prompt()

    def __len__(self) -> int:
        return len(self._bullets)

    def __contains__(self, bullet_id: object) -> bool:
        return bullet_id in self._bullets

    def __iter__(self) -> Iterator[Bullet]:
        return iter(list(self._bullets.values()))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Playbook):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    @property
    def next_id(self) -> int:
        return self._next_id

    @property
    def sections(self) -> Dict[str, List[str]]:
        """Copy of the section index (name -> ordered bullet ids)."""
        return {name: list(ids) for name, ids in self._sections.items()}

    # ------------------------------------------------------------------ #
    # CRUD utils
    # ------------------------------------------------------------------ #
    def add_bullet(
        self,
        section: str,
        content: str,
        bullet_id: Optional[str] = None,
        metadata: Optional[Mapping[str, int]] = None,
    ) -> Bullet:
        if bullet_id is None:
            bullet_id = self._generate_id(section)
        previous = self._bullets.get(bullet_id)
        if previous is not None:
            logger.warning(
                f"Overwriting bullet {bullet_id} (section {previous.section!r} -> {section!r})"
            )
            self._detach(bullet_id, previous.section)

        now = _now()
        bullet = Bullet(
            id=bullet_id, section=section, content=content, created_at=now, updated_at=now
        )
        if metadata:
            bullet.apply_metadata(metadata)
        self._bullets[bullet_id] = bullet
        self._sections.setdefault(section, []).append(bullet_id)
        return bullet

    def update_bullet(
        self,
        bullet_id: str,
        *,
        content: Optional[str] = None,
        metadata: Optional[Mapping[str, int]] = None,
    ) -> Bullet:
        bullet = self._bullets.get(bullet_id)
        if bullet is None:
            raise BulletNotFoundError(bullet_id)
        if content is not None:
            bullet.content = content
        if metadata:
            bullet.apply_metadata(metadata)
        bullet.updated_at = _now()
        return bullet

    def tag_bullet(self, bullet_id: str, tag: str, increment: int = 1) -> Bullet:
        bullet = self._bullets.get(bullet_id)
        if bullet is None:
            raise BulletNotFoundError(bullet_id)
        bullet.tag(tag, increment=increment)
        return bullet

    def remove_bullet(self, bullet_id: str) -> Optional[Bullet]:
        bullet = self._bullets.pop(bullet_id, None)
        if bullet is None:
            return None
        self._detach(bullet_id, bullet.section)
        return bullet

    def get_bullet(self, bullet_id: str) -> Optional[Bullet]:
        return self._bullets.get(bullet_id)

    def bullets(self) -> List[Bullet]:
        return list(self._bullets.values())

    def list_sections(self) -> List[str]:
        """Return list of all section names."""
        return list(self._sections.keys())

    def section_bullets(self, section: str) -> List[Bullet]:
        """Return the bullets of one section in insertion order."""
        return [self._bullets[bid] for bid in self._sections.get(section, [])]

    # ------------------------------------------------------------------ #
    # Serialization
    # ------------------------------------------------------------------ #
    def to_dict(self) -> Dict[str, object]:
        return {
            "bullets": {
                bullet_id: asdict(bullet) for bullet_id, bullet in self._bullets.items()
            },
            "sections": self.sections,
            "next_id": self._next_id,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Playbook":
        """Rebuild a playbook, rejecting data that breaks the store invariants.

        Raises:
            InvalidPlaybookDataError: If the payload is malformed or the
                section index disagrees with the bullet map
        """
        if not isinstance(payload, Mapping):
            raise InvalidPlaybookDataError("Playbook serialization must be a JSON object.")

        bullets_payload = payload.get("bullets", {})
        sections_payload = payload.get("sections", {})
        next_id = payload.get("next_id", 0)
        if not isinstance(bullets_payload, Mapping):
            raise InvalidPlaybookDataError("'bullets' must be an object")
        if not isinstance(sections_payload, Mapping):
            raise InvalidPlaybookDataError("'sections' must be an object")
        if isinstance(next_id, bool) or not isinstance(next_id, int) or next_id < 0:
            raise InvalidPlaybookDataError(f"'next_id' must be a non-negative integer, got {next_id!r}")

        instance = cls()
        for bullet_id, bullet_value in bullets_payload.items():
            bullet = Bullet.from_dict(bullet_value)
            if bullet.id != bullet_id:
                raise InvalidPlaybookDataError(
                    f"Bullet key {bullet_id!r} does not match its id {bullet.id!r}"
                )
            instance._bullets[bullet_id] = bullet

        indexed = set()
        for section, bullet_ids in sections_payload.items():
            if not isinstance(bullet_ids, list) or not bullet_ids:
                raise InvalidPlaybookDataError(
                    f"Section {section!r} must be a non-empty array of bullet ids"
                )
            for bullet_id in bullet_ids:
                if not isinstance(bullet_id, str):
                    raise InvalidPlaybookDataError(
                        f"Section {section!r} contains a non-string id {bullet_id!r}"
                    )
                bullet = instance._bullets.get(bullet_id)
                if bullet is None:
                    raise InvalidPlaybookDataError(
                        f"Section {section!r} references unknown bullet {bullet_id!r}"
                    )
                if bullet.section != section:
                    raise InvalidPlaybookDataError(
                        f"Bullet {bullet_id!r} belongs to {bullet.section!r}, not {section!r}"
                    )
                if bullet_id in indexed:
                    raise InvalidPlaybookDataError(f"Bullet {bullet_id!r} is indexed twice")
                indexed.add(bullet_id)
            instance._sections[section] = list(bullet_ids)

        orphans = set(instance._bullets) - indexed
        if orphans:
            raise InvalidPlaybookDataError(
                f"Bullets missing from section index: {', '.join(sorted(orphans))}"
            )

        instance._next_id = next_id
        return instance

    def dumps(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)

    @classmethod
    def loads(cls, data: str) -> "Playbook":
        try:
            payload = json.loads(data)
        except json.JSONDecodeError as exc:
            raise InvalidPlaybookDataError(f"Failed to parse JSON: {exc}") from exc
        return cls.from_dict(payload)

    def save_to_file(self, path: Union[str, Path]) -> None:
        """Save playbook to a JSON file, creating parent directories.

        Args:
            path: File path where to save the playbook

        Example:
            >>> playbook.save_to_file("trained_model.json")
        """
        file_path = Path(path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with file_path.open("w", encoding="utf-8") as f:
            f.write(self.dumps())
        logger.info(f"Saved playbook with {len(self._bullets)} bullets to {file_path}")

    @classmethod
    def load_from_file(cls, path: Union[str, Path]) -> "Playbook":
        """Load playbook from a JSON file.

        Args:
            path: File path to load the playbook from

        Returns:
            Playbook instance loaded from the file

        Raises:
            FileNotFoundError: If the file doesn't exist
            InvalidPlaybookDataError: If the file is not a valid playbook
        """
        file_path = Path(path)
        if not file_path.exists():
            raise FileNotFoundError(f"Playbook file not found: {path}")
        with file_path.open("r", encoding="utf-8") as f:
            playbook = cls.loads(f.read())
        logger.info(f"Loaded playbook with {len(playbook)} bullets from {file_path}")
        return playbook

    # ------------------------------------------------------------------ #
    # Delta application
    # ------------------------------------------------------------------ #
    def apply_delta(self, delta: DeltaBatch) -> int:
        """Apply a delta batch in order; see :func:`ace_playbook.applier.apply_delta`."""
        from .applier import apply_delta

        return apply_delta(self, delta)

    # ------------------------------------------------------------------ #
    # Presentation helpers
    # ------------------------------------------------------------------ #
    def as_prompt(self) -> str:
        """
        Render the playbook as markdown for LLM prompts.

        Sections are sorted by name so the output is stable; bullets keep
        their insertion order inside a section.
        """
        if not self._bullets:
            return EMPTY_PLAYBOOK_PROMPT
        parts: List[str] = []
        for section, bullet_ids in sorted(self._sections.items()):
            parts.append(f"## {section}")
            for bullet_id in bullet_ids:
                bullet = self._bullets.get(bullet_id)
                if bullet is not None:
                    parts.append(bullet.render())
        return "\n".join(parts)

    def tag_totals(self) -> TagCounts:
        totals = TagCounts()
        for bullet in self._bullets.values():
            totals = totals + bullet.counts()
        return totals

    def stats(self) -> Dict[str, object]:
        return {
            "sections": len(self._sections),
            "bullets": len(self._bullets),
            "tags": self.tag_totals().to_dict(),
        }

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    def _detach(self, bullet_id: str, section: str) -> None:
        section_list = self._sections.get(section)
        if not section_list:
            return
        self._sections[section] = [bid for bid in section_list if bid != bullet_id]
        if not self._sections[section]:
            del self._sections[section]

    def _generate_id(self, section: str) -> str:
        self._next_id += 1
        tokens = section.split()
        section_prefix = tokens[0].lower() if tokens else DEFAULT_SECTION_PREFIX
        bullet_id = f"{section_prefix}-{self._next_id:05d}"
        logger.debug(f"Generated bullet id {bullet_id}")
        return bullet_id
