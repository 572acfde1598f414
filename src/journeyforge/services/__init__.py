"""
Services module for step resolution and test self-healing.

Resolution: text normalization, similarity scoring, the core pattern library,
inline hints, the fuzzy corpus, the learned and discovered pattern stores and the unified
resolver. Healing: failure classification, healing rules, fix transforms,
circuit breaker, convergence detection, heal-logs and the orchestrator.
"""

from .step_resolver import StepResolver, ResolverConfig
from .learned_pattern_store import LearnedPatternStore
from .healing_orchestrator import HealingOrchestrator
from .code_renderer import CodeRenderer
from .pytest_runner import PytestRunner

__all__ = [
    "StepResolver",
    "ResolverConfig",
    "LearnedPatternStore",
    "HealingOrchestrator",
    "CodeRenderer",
    "PytestRunner",
]
