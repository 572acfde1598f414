"""Data models for the learned pattern knowledge base (LLKB)."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .action_models import Action


class PatternLayer(Enum):
    """Origin layer of a learned pattern; more specific layers win ties."""
    APP_SPECIFIC = "app-specific"
    FRAMEWORK = "framework"
    UNIVERSAL = "universal"

    @property
    def priority(self) -> int:
        return {
            PatternLayer.APP_SPECIFIC: 3,
            PatternLayer.FRAMEWORK: 2,
            PatternLayer.UNIVERSAL: 1,
        }[self]


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    # Tolerate the trailing "Z" written by other tools.
    return datetime.fromisoformat(value.replace("Z", "+00:00")).replace(tzinfo=None)


@dataclass
class LearnedPattern:
    """A text -> action association learned from successful runs.

    ``confidence`` is always derived from ``success_count`` and ``fail_count``
    by the store; callers never set it directly.
    """
    id: str
    original_text: str
    normalized_text: str
    mapped_action: Action
    confidence: float = 0.5
    source_journeys: List[str] = field(default_factory=list)
    success_count: int = 0
    fail_count: int = 0
    last_used: datetime = field(default_factory=datetime.now)
    created_at: datetime = field(default_factory=datetime.now)
    promoted_to_core: bool = False
    promoted_at: Optional[datetime] = None
    layer: PatternLayer = PatternLayer.APP_SPECIFIC

    @property
    def success_rate(self) -> float:
        total = self.success_count + self.fail_count
        return self.success_count / total if total else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert pattern to its on-disk dictionary form."""
        data = {
            "id": self.id,
            "originalText": self.original_text,
            "normalizedText": self.normalized_text,
            "mappedAction": self.mapped_action.to_dict(),
            "confidence": self.confidence,
            "sourceJourneys": list(self.source_journeys),
            "successCount": self.success_count,
            "failCount": self.fail_count,
            "lastUsed": self.last_used.isoformat(),
            "createdAt": self.created_at.isoformat(),
            "promotedToCore": self.promoted_to_core,
            "layer": self.layer.value,
        }
        if self.promoted_at:
            data["promotedAt"] = self.promoted_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LearnedPattern":
        """Create pattern from its on-disk dictionary form."""
        return cls(
            id=data["id"],
            original_text=data["originalText"],
            normalized_text=data["normalizedText"],
            mapped_action=Action.from_dict(data["mappedAction"]),
            confidence=float(data.get("confidence", 0.5)),
            source_journeys=list(data.get("sourceJourneys", [])),
            success_count=int(data.get("successCount", 0)),
            fail_count=int(data.get("failCount", 0)),
            last_used=_parse_time(data.get("lastUsed")) or datetime.now(),
            created_at=_parse_time(data.get("createdAt")) or datetime.now(),
            promoted_to_core=bool(data.get("promotedToCore", False)),
            promoted_at=_parse_time(data.get("promotedAt")),
            layer=PatternLayer(data.get("layer", PatternLayer.APP_SPECIFIC.value)),
        )


@dataclass
class LearnedMatch:
    """Result of looking a step up in the learned store."""
    pattern_id: str
    action: Action
    confidence: float
    similarity: float
    layer: PatternLayer = PatternLayer.APP_SPECIFIC

    @property
    def score(self) -> float:
        return self.confidence * self.similarity


@dataclass
class PromotedPattern:
    """A learned pattern ready to become a core rule."""
    pattern: LearnedPattern
    generated_regex: str
    priority: float


@dataclass
class PruneResult:
    removed: int
    remaining: int


@dataclass
class PatternStats:
    """Aggregate statistics over the store."""
    total: int = 0
    promoted: int = 0
    high_confidence: int = 0
    low_confidence: int = 0
    avg_confidence: float = 0.0
    total_successes: int = 0
    total_failures: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "promoted": self.promoted,
            "highConfidence": self.high_confidence,
            "lowConfidence": self.low_confidence,
            "avgConfidence": self.avg_confidence,
            "totalSuccesses": self.total_successes,
            "totalFailures": self.total_failures,
        }
