"""
Validator Agent

Non-user-facing checker that inspects a finished text against a set of
content principles. Used by the outer request layer between engine output
and external return; the engine itself never calls it.

DESIGN RULES:
- Does NOT use the generator - deterministic heuristics only
- Does NOT rewrite content
- Verdict severity is the highest severity among violations
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from orchestration.errors import ConfigurationError

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return SEVERITY_RANK[self]


SEVERITY_RANK = {Severity.LOW: 1, Severity.MEDIUM: 2, Severity.HIGH: 3, Severity.CRITICAL: 4}
SEVERITY_PENALTY = {Severity.LOW: 0.05, Severity.MEDIUM: 0.1, Severity.HIGH: 0.2, Severity.CRITICAL: 0.3}
BLOCKING_SEVERITIES = (Severity.HIGH, Severity.CRITICAL)


class Violation(BaseModel):
    principle: str
    description: str
    severity: Severity


class ValidationVerdict(BaseModel):
    """
    Validation output contract.

    `passed` is False as soon as any violation is found.
    """
    passed: bool = Field(..., description="Whether the text passes every checked principle")
    severity: Severity = Field(default=Severity.LOW, description="Highest violation severity")
    issues: List[Violation] = Field(default_factory=list)
    confidence: float = Field(default=0.95, ge=0.0, le=1.0)

    @property
    def blocking(self) -> bool:
        """Failed with a severity the request layer must not return."""
        return not self.passed and self.severity in BLOCKING_SEVERITIES


@dataclass(frozen=True)
class Principle:
    """
    One content principle.

    `phrases` are matched case-insensitively as substrings; `patterns` are
    regular expressions. `strict_only` rules run only in strict mode.
    """
    id: str
    name: str
    severity: Severity
    phrases: Tuple[str, ...] = ()
    patterns: Tuple[str, ...] = ()
    strict_only: bool = False
    description: str = ""


DEFAULT_PRINCIPLES: Tuple[Principle, ...] = (
    Principle(
        id="harmlessness",
        name="Be Harmless",
        severity=Severity.CRITICAL,
        phrases=("how to build a bomb", "make a weapon at home", "kill yourself", "poison someone"),
        description="Content that could cause physical harm",
    ),
    Principle(
        id="lawfulness",
        name="Comply with Legal and Ethical Standards",
        severity=Severity.HIGH,
        phrases=("launder money", "evade taxes", "pirated copy", "bypass the license check"),
        description="Assistance with illegal activity",
    ),
    Principle(
        id="privacy",
        name="Respect Privacy and Confidentiality",
        severity=Severity.HIGH,
        patterns=(r"\b\d{3}-\d{2}-\d{4}\b", r"\b(?:\d{4}[ -]){3}\d{4}\b"),
        description="Personal identifiers in output",
    ),
    Principle(
        id="respect",
        name="Show Respect for All People",
        severity=Severity.HIGH,
        phrases=("inferior race", "those people are all", "stupid people"),
        description="Demeaning language about a group",
    ),
    Principle(
        id="autonomy",
        name="Respect Human Autonomy",
        severity=Severity.MEDIUM,
        phrases=("you have no choice", "you must buy", "act now before it's too late"),
        description="Coercive or manipulative phrasing",
    ),
    Principle(
        id="honesty",
        name="Be Honest and Truthful",
        severity=Severity.MEDIUM,
        phrases=("error:", "exception:", "failed to"),
        description="Error text presented as an answer",
    ),
    Principle(
        id="transparency",
        name="Be Transparent About Limitations",
        severity=Severity.LOW,
        phrases=("i am 100% certain", "guaranteed to be correct", "i have personally verified"),
        description="Overstated certainty or capability",
    ),
    Principle(
        id="helpfulness",
        name="Be Helpful",
        severity=Severity.LOW,
        phrases=("i don't know", "i'm not sure", "i cannot help", "i can't help"),
        strict_only=True,
        description="Unhelpful or evasive reply",
    ),
)


class ValidatorAgent:
    """
    Deterministic content validator.

    Checks:
    - Completeness (did the text actually say something?)
    - Each selected principle's phrases and patterns
    """

    MIN_RESPONSE_LENGTH = 10

    def __init__(self, principles: Optional[Sequence[Principle]] = None):
        self._principles: Dict[str, Principle] = {p.id: p for p in (principles or DEFAULT_PRINCIPLES)}

    @property
    def principles(self) -> List[Principle]:
        return list(self._principles.values())

    def add_principle(self, principle: Principle) -> None:
        self._principles[principle.id] = principle

    def check(
        self,
        text: str,
        principles: Optional[Sequence[str]] = None,
        strict: bool = False,
    ) -> ValidationVerdict:
        """
        Validate a finished text.

        Args:
            text: Text to inspect
            principles: Principle ids to check; all principles when omitted
            strict: Also run strict-only rules

        Raises:
            ConfigurationError: none of the requested principle ids exist
        """
        selected = self._select(principles)
        issues: List[Violation] = []

        if len(text.strip()) < self.MIN_RESPONSE_LENGTH:
            issues.append(Violation(
                principle="Be Helpful",
                description="Response too short",
                severity=Severity.MEDIUM,
            ))

        lowered = text.lower()
        for principle in selected:
            if principle.strict_only and not strict:
                continue
            hit = self._first_hit(principle, text, lowered)
            if hit:
                issues.append(Violation(
                    principle=principle.name,
                    description=f"{principle.description}: '{hit}'",
                    severity=principle.severity,
                ))

        verdict = ValidationVerdict(
            passed=not issues,
            severity=max((v.severity for v in issues), key=lambda s: s.rank, default=Severity.LOW),
            issues=issues,
            confidence=self._confidence(issues),
        )
        logger.info(f"Validation: passed={verdict.passed} severity={verdict.severity.value} issues={len(issues)}")
        return verdict

    def _select(self, principle_ids: Optional[Sequence[str]]) -> List[Principle]:
        if principle_ids is None:
            return self.principles
        selected = [self._principles[pid] for pid in principle_ids if pid in self._principles]
        if not selected:
            raise ConfigurationError("No valid principles found for validation")
        return selected

    @staticmethod
    def _first_hit(principle: Principle, text: str, lowered: str) -> Optional[str]:
        for phrase in principle.phrases:
            if phrase in lowered:
                return phrase
        for pattern in principle.patterns:
            match = re.search(pattern, text)
            if match:
                return match.group(0)
        return None

    @staticmethod
    def _confidence(issues: Sequence[Violation]) -> float:
        if not issues:
            return 0.95
        penalty = sum(SEVERITY_PENALTY[v.severity] for v in issues)
        volume = min(len(issues) * 0.05, 0.3)
        return round(max(0.5, 0.9 - penalty - volume), 2)
