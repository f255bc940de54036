"""Quality Scoring - pluggable heuristics for code and reasoning quality.

Store logic depends only on the two protocols below. The heuristic
implementations are deterministic functions of simple static signals
and are meant to be replaced or calibrated, not trusted as ground truth.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Protocol

from ...domain.models import (
    CodeQualityMetrics,
    Complexity,
    ReasoningProfile,
    ReasoningQualityMetrics,
    ReasoningTrace,
    StepType,
)


class CodeQualityScorer(Protocol):
    """Scores a piece of source code."""

    def score(self, code: str, language: str) -> CodeQualityMetrics: ...


class ReasoningQualityScorer(Protocol):
    """Scores a trace at seal time."""

    def score(
        self, trace: ReasoningTrace, profile: ReasoningProfile
    ) -> ReasoningQualityMetrics: ...


@dataclass
class ReasoningQualityWeights:
    """Weights for combining reasoning sub-scores into one quality score."""

    coherence: float = 0.2
    completeness: float = 0.2
    accuracy: float = 0.2
    efficiency: float = 0.2
    creativity: float = 0.2

    def __post_init__(self) -> None:
        """Validate weights sum to 1.0."""
        total = (
            self.coherence
            + self.completeness
            + self.accuracy
            + self.efficiency
            + self.creativity
        )
        if not (0.99 <= total <= 1.01):
            raise ValueError(f"Weights must sum to 1.0, got {total}")

    def combine(self, metrics: ReasoningQualityMetrics) -> float:
        value = (
            self.coherence * metrics.coherence
            + self.completeness * metrics.completeness
            + self.accuracy * metrics.accuracy
            + self.efficiency * metrics.efficiency
            + self.creativity * metrics.creativity
        )
        return min(max(value, 0.0), 1.0)


_BRANCH_PATTERNS = [
    re.compile(r"\bif\b"),
    re.compile(r"\belif\b|\belse\s+if\b"),
    re.compile(r"\bwhile\b"),
    re.compile(r"\bfor\b"),
    re.compile(r"\bswitch\b"),
    re.compile(r"\bcase\b"),
    re.compile(r"\bcatch\b|\bexcept\b"),
    re.compile(r"&&|\|\||\band\b|\bor\b"),
    re.compile(r"\?[^:\n]*:"),
]

_COMMENT_RE = re.compile(r"^\s*(#|//|/\*|\*)")

_SECURITY_RISKS = [
    re.compile(r"\beval\s*\("),
    re.compile(r"\bexec\s*\("),
    re.compile(r"innerHTML\s*="),
    re.compile(r"document\.write"),
    re.compile(r"(select|insert|update|delete)\b[^\n]*[\"']\s*\+", re.IGNORECASE),
    re.compile(r"subprocess\.[a-z_]+\([^)]*shell\s*=\s*True"),
]

_BUG_PATTERNS = [
    re.compile(r"==\s*None|==\s*null"),
    re.compile(r"^\s*except\s*:", re.MULTILINE),
    re.compile(r"catch\s*\(\s*\w*\s*\)\s*\{\s*\}"),
    re.compile(r"\bif\s*\([^)=!<>]*[^=!<>]=[^=][^)]*\)"),
    re.compile(r"def\s+\w+\([^)]*=\s*(\[\]|\{\})"),
]


def cyclomatic_complexity(code: str) -> int:
    """Rough cyclomatic complexity: 1 + number of branch points."""
    return 1 + sum(len(p.findall(code)) for p in _BRANCH_PATTERNS)


class HeuristicCodeScorer:
    """Static-signal code quality heuristics."""

    def score(self, code: str, language: str) -> CodeQualityMetrics:
        lines = code.split("\n")
        complexity = cyclomatic_complexity(code)
        return CodeQualityMetrics(
            maintainability=self._maintainability(code, lines, complexity),
            readability=self._readability(lines),
            testability=self._testability(code),
            performance=self._performance(code),
            security=self._security(code),
            bug_density=self._bug_density(code, lines),
            complexity=float(complexity),
        )

    @staticmethod
    def _clamp(value: float) -> float:
        return max(0.0, min(100.0, value))

    def _maintainability(self, code: str, lines: list[str], complexity: int) -> float:
        length = max(0.0, 100 - len(code) / 100)
        comment_lines = sum(1 for line in lines if _COMMENT_RE.match(line))
        comments = min(100.0, comment_lines / len(lines) * 100 * 3)
        branching = max(0.0, 100 - (complexity - 1) * 10)
        return self._clamp((length + comments + branching) / 3)

    def _readability(self, lines: list[str]) -> float:
        non_empty = [line for line in lines if line.strip()] or [""]
        avg_length = sum(len(line) for line in non_empty) / len(non_empty)
        # ~50 characters per line reads best
        score = 100 - max(0.0, avg_length - 50) * 2
        deep = sum(1 for line in non_empty if len(line) - len(line.lstrip()) > 16)
        score -= deep * 5
        return self._clamp(score)

    def _testability(self, code: str) -> float:
        score = 50.0
        if re.search(r"\bdef\b|\bfunction\b|\bpublic\b|\bprivate\b|=>", code):
            score += 20
        if re.search(r"\bclass\b|\binterface\b", code):
            score += 15
        if not re.search(r"\bglobal\b|\bwindow\.|\bdocument\.", code):
            score += 15
        return self._clamp(score)

    def _performance(self, code: str) -> float:
        score = 80.0
        loops = len(re.findall(r"\bfor\b|\bwhile\b", code))
        returns = len(re.findall(r"\breturn\b", code))
        if loops > 2:
            score -= 20
        if returns > 1:
            score += 10
        return self._clamp(score)

    def _security(self, code: str) -> float:
        score = 90.0
        for pattern in _SECURITY_RISKS:
            if pattern.search(code):
                score -= 15
        return self._clamp(score)

    def _bug_density(self, code: str, lines: list[str]) -> float:
        bugs = sum(len(p.findall(code)) for p in _BUG_PATTERNS)
        return bugs / len(lines) * 1000


_COMPLEXITY_STEPS = {
    Complexity.SIMPLE: 1,
    Complexity.MODERATE: 2,
    Complexity.COMPLEX: 3,
    Complexity.VERY_COMPLEX: 4,
}

_REQUIRED_STEP_TYPES = (StepType.ANALYSIS, StepType.EVALUATION)


class HeuristicReasoningScorer:
    """Scores coherence, completeness, accuracy, efficiency and creativity."""

    def score(
        self, trace: ReasoningTrace, profile: ReasoningProfile
    ) -> ReasoningQualityMetrics:
        return ReasoningQualityMetrics(
            coherence=self._coherence(trace),
            completeness=self._completeness(trace, profile),
            accuracy=self._accuracy(trace),
            efficiency=self._efficiency(trace),
            creativity=self._creativity(trace),
        )

    @staticmethod
    def _coherence(trace: ReasoningTrace) -> float:
        """Share of steps whose input picks up the previous output."""
        pairs = list(zip(trace.steps, trace.steps[1:]))
        if not pairs:
            return 0.8
        total = 0.0
        for prev, curr in pairs:
            head = prev.output[:30].strip()
            total += 1.0 if head and head in curr.input else 0.5
        return total / len(pairs)

    @staticmethod
    def _completeness(trace: ReasoningTrace, profile: ReasoningProfile) -> float:
        present = {step.type for step in trace.steps}
        coverage = sum(1 for t in _REQUIRED_STEP_TYPES if t in present) / len(
            _REQUIRED_STEP_TYPES
        )
        depth = min(1.0, len(trace.steps) / profile.min_steps)
        return coverage * depth

    @staticmethod
    def _accuracy(trace: ReasoningTrace) -> float:
        if not trace.steps:
            return trace.confidence * 0.5
        avg = sum(step.confidence for step in trace.steps) / len(trace.steps)
        bonus = 0.1 if trace.alternatives else 0.0
        return min(1.0, avg + bonus)

    @staticmethod
    def _efficiency(trace: ReasoningTrace) -> float:
        expected = _COMPLEXITY_STEPS[trace.metadata.complexity]
        extra = max(0, len(trace.steps) - expected)
        return max(0.2, 1.0 - extra * 0.1)

    @staticmethod
    def _creativity(trace: ReasoningTrace) -> float:
        techniques = len(set(trace.metadata.techniques))
        return min(1.0, 0.5 + techniques * 0.15 + len(trace.alternatives) * 0.2)
