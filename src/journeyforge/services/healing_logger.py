"""Persistent log of healing sessions, one JSON file per journey."""

import json
import os
import logging
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.config import settings
from ..core.models import (
    AttemptResult,
    HealingAttempt,
    HealingLog,
    HealingLogStatus,
    HealingSummary,
)

logger = logging.getLogger(__name__)

HEAL_LOG_SUFFIX = ".heal-log.json"


class HealingLogger:
    """
    Records the attempts of one healing session.

    The log file is rewritten atomically after every change, so a crashed
    session still leaves the attempts made so far on disk.
    """

    def __init__(self, journey_id: str, output_dir: Optional[str] = None, max_attempts: int = 3):
        self.output_dir = Path(output_dir or settings.HEALING_LOG_DIR)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.output_path = self.output_dir / f"{journey_id}{HEAL_LOG_SUFFIX}"
        self._log = HealingLog(journey_id=journey_id, max_attempts=max_attempts)
        self._save()

    @property
    def attempt_count(self) -> int:
        return len(self._log.attempts)

    def is_max_attempts_reached(self) -> bool:
        return self.attempt_count >= self._log.max_attempts

    def get_log(self) -> HealingLog:
        return self._log

    def get_output_path(self) -> str:
        return str(self.output_path)

    def log_attempt(self, attempt: HealingAttempt) -> None:
        self._log.attempts.append(attempt)
        logger.info(f"📝 Healing attempt {attempt.attempt} for {self._log.journey_id}: "
                    f"{attempt.fix_type} -> {attempt.result.value}")
        self._save()

    def mark_healed(self) -> None:
        self._finish(HealingLogStatus.HEALED, None)

    def mark_failed(self, recommendation: str) -> None:
        self._finish(HealingLogStatus.FAILED, recommendation)

    def mark_exhausted(self, recommendation: str) -> None:
        self._finish(HealingLogStatus.EXHAUSTED, recommendation)

    def _finish(self, status: HealingLogStatus, recommendation: Optional[str]) -> None:
        self._log.status = status
        self._log.session_end = datetime.now()
        self._log.summary = self._build_summary(recommendation)
        self._save()

    def _build_summary(self, recommendation: Optional[str]) -> HealingSummary:
        attempts = self._log.attempts
        successful = sum(1 for a in attempts if a.result is AttemptResult.PASS)
        return HealingSummary(
            total_attempts=len(attempts),
            successful_fixes=successful,
            failed_attempts=len(attempts) - successful,
            total_duration=sum(a.duration for a in attempts),
            fix_types_attempted=list(dict.fromkeys(a.fix_type for a in attempts)),
            recommendation=recommendation,
        )

    def _save(self) -> None:
        temp_path = self.output_path.with_name(self.output_path.name + ".tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(self._log.to_dict(), f, indent=2)
            os.replace(temp_path, self.output_path)
        except OSError as e:
            logger.error(f"❌ Failed to write healing log {self.output_path}: {e}")
            raise


def load_healing_log(file_path: str) -> Optional[HealingLog]:
    """Read a heal-log file; None when it is missing or unreadable."""
    path = Path(file_path)
    if not path.exists():
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            return HealingLog.from_dict(json.load(f))
    except (OSError, ValueError, KeyError) as e:
        logger.warning(f"⚠️ Could not load healing log {file_path}: {e}")
        return None


def format_healing_log(log: HealingLog) -> str:
    """Markdown rendering of one healing session."""
    lines = [
        f"# Healing Log: {log.journey_id}",
        "",
        f"**Status**: {log.status.value}",
        f"**Started**: {log.session_start.isoformat()}",
    ]
    if log.session_end:
        lines.append(f"**Ended**: {log.session_end.isoformat()}")
    lines.extend([f"**Attempts**: {len(log.attempts)}/{log.max_attempts}", ""])

    if log.attempts:
        lines.extend(["## Attempts", ""])
        for attempt in log.attempts:
            mark = "✅" if attempt.result is AttemptResult.PASS else "❌"
            lines.extend([
                f"### Attempt {attempt.attempt} {mark}",
                "",
                f"- **Failure Type**: {attempt.failure_type}",
                f"- **Fix Type**: {attempt.fix_type}",
                f"- **File**: {attempt.file}",
                f"- **Change**: {attempt.change}",
                f"- **Result**: {attempt.result.value}",
                f"- **Duration**: {attempt.duration}ms",
            ])
            if attempt.error_message:
                lines.append(f"- **Error**: {attempt.error_message}")
            if attempt.evidence:
                lines.append(f"- **Evidence**: {', '.join(attempt.evidence)}")
            lines.append("")

    if log.summary and log.summary.recommendation:
        lines.extend(["## Recommendation", "", log.summary.recommendation, ""])
    return "\n".join(lines)


def aggregate_healing_logs(log_dir: Optional[str] = None) -> List[HealingLog]:
    """Every readable heal-log in ``log_dir``, ordered by journey id."""
    directory = Path(log_dir or settings.HEALING_LOG_DIR)
    if not directory.is_dir():
        return []
    logs = []
    for path in sorted(directory.glob(f"*{HEAL_LOG_SUFFIX}")):
        log = load_healing_log(str(path))
        if log is not None:
            logs.append(log)
    return logs


def create_healing_report(logs: List[HealingLog]) -> Dict[str, Any]:
    """
    Cross-journey statistics.

    Returns:
        Dictionary with per-status counts, success rate, average attempts
        and the most frequently attempted fix types
    """
    by_status = Counter(log.status for log in logs)
    fix_counts = Counter(a.fix_type for log in logs for a in log.attempts)
    finished = [log for log in logs if log.status is not HealingLogStatus.IN_PROGRESS]
    healed = by_status[HealingLogStatus.HEALED]

    return {
        "totalJourneys": len(logs),
        "healed": healed,
        "failed": by_status[HealingLogStatus.FAILED],
        "exhausted": by_status[HealingLogStatus.EXHAUSTED],
        "inProgress": by_status[HealingLogStatus.IN_PROGRESS],
        "successRate": healed / len(finished) if finished else 0.0,
        "averageAttempts": (sum(len(log.attempts) for log in logs) / len(logs)) if logs else 0.0,
        "mostCommonFixes": [{"fixType": fix, "count": count}
                            for fix, count in fix_counts.most_common(5)],
        "journeys": [{"journeyId": log.journey_id, "status": log.status.value,
                      "attempts": len(log.attempts)} for log in logs],
    }
