"""Pattern Library - code patterns, anti-patterns, practices and templates.

Implements the pattern recognition side of System 1:
- Extracts candidate patterns from generated code
- Merges near-duplicate patterns instead of storing copies
- Detects known anti-patterns with regex detection rules
- Keeps registries of best practices and code templates
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from ...domain.exceptions import ValidationError
from ...domain.models import (
    AntiPattern,
    AntiPatternMatch,
    BestPractice,
    CodeExample,
    CodePattern,
    CodeTemplate,
    DetectionRule,
    DetectionRuleType,
    PerformanceProfile,
    Severity,
)
from ..hippocampus.dynamics import cosine_similarity, weighted_average

logger = logging.getLogger(__name__)

_RULE_FLAGS = re.IGNORECASE | re.MULTILINE
_PLACEHOLDER_RE = re.compile(r"\{\{\s*(\w+)\s*\}\}")

_SEVERITY_RANK = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
}

# (regex, use case) pairs; group 1 is the signature used as the pattern name
_EXTRACTORS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"^[ \t]*((?:async\s+)?def\s+\w+\s*\([^)]*\))", re.M), "function"),
    (re.compile(r"^[ \t]*class\s+(\w+)", re.M), "class"),
    (re.compile(r"((?:async\s+)?function\s+\w+\s*\([^)]*\))"), "function"),
    (
        re.compile(r"((?:const|let|var)\s+\w+\s*=\s*(?:async\s*)?\([^)]*\)\s*=>)"),
        "function",
    ),
]


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")[:40] or "pattern"


def default_anti_patterns() -> list[AntiPattern]:
    """Seed set of well-known anti-patterns."""
    return [
        AntiPattern(
            id="anti:eval-exec",
            name="Dynamic code execution",
            description="eval/exec on data that may be user controlled",
            severity=Severity.HIGH,
            detection_rules=[
                DetectionRule(
                    rule_type=DetectionRuleType.SECURITY,
                    pattern=r"\b(eval|exec)\s*\(",
                    confidence=0.9,
                )
            ],
            remediation="Parse data explicitly (e.g. ast.literal_eval, json).",
        ),
        AntiPattern(
            id="anti:bare-except",
            name="Bare except",
            description="Catches everything, including KeyboardInterrupt",
            severity=Severity.MEDIUM,
            languages=["python"],
            detection_rules=[
                DetectionRule(
                    rule_type=DetectionRuleType.SYNTAX,
                    pattern=r"^\s*except\s*:",
                    confidence=0.95,
                )
            ],
            remediation="Catch the specific exceptions you expect.",
        ),
        AntiPattern(
            id="anti:sql-concat",
            name="SQL string concatenation",
            description="Query text built from strings invites SQL injection",
            severity=Severity.CRITICAL,
            detection_rules=[
                DetectionRule(
                    rule_type=DetectionRuleType.SECURITY,
                    pattern=r"(select|insert|update|delete)\b[^\n]*[\"']\s*(\+|%)",
                    confidence=0.85,
                ),
                DetectionRule(
                    rule_type=DetectionRuleType.SECURITY,
                    pattern=r"f[\"'](select|insert|update|delete)\b[^\n]*\{",
                    confidence=0.85,
                ),
            ],
            remediation="Use parameterised queries.",
        ),
        AntiPattern(
            id="anti:nested-loops",
            name="Deeply nested loops",
            description="Three or more nested loops usually mean O(n^3) work",
            severity=Severity.MEDIUM,
            detection_rules=[
                DetectionRule(
                    rule_type=DetectionRuleType.PERFORMANCE,
                    pattern=r"^([ \t]*)for\b[^\n]*\n(\1[ \t]+)for\b[^\n]*\n"
                    r"\2[ \t]+for\b",
                    confidence=0.7,
                )
            ],
            remediation="Index with dicts/sets or restructure the algorithm.",
        ),
        AntiPattern(
            id="anti:hardcoded-secret",
            name="Hard-coded secret",
            description="Credentials committed in source",
            severity=Severity.HIGH,
            detection_rules=[
                DetectionRule(
                    rule_type=DetectionRuleType.SECURITY,
                    pattern=r"\b(password|passwd|secret|api_key|apikey|token)\s*[:=]\s*"
                    r"[\"'][^\"'\s]{4,}[\"']",
                    confidence=0.8,
                )
            ],
            remediation="Load secrets from the environment or a secret store.",
        ),
    ]


@dataclass
class ExtractedPattern:
    """A pattern candidate found in a piece of code."""

    name: str
    template: str
    use_case: str


class PatternLibrary:
    """Owns code patterns, anti-patterns, best practices and templates.

    Near-duplicate code patterns (``max(cosine, structural) >=
    merge_threshold`` within the same language and framework) are merged
    into the existing pattern, weighted by usage count.
    """

    def __init__(
        self,
        merge_threshold: float = 0.9,
        confidence_floor: float = 0.5,
        clock: Callable[[], datetime] | None = None,
        seed_defaults: bool = True,
    ) -> None:
        """Initialize the pattern library.

        Args:
            merge_threshold: Similarity at or above which patterns merge
            confidence_floor: Minimum rule confidence reported by detection
            clock: Time source (default: UTC now)
            seed_defaults: Install the default anti-pattern set
        """
        self.merge_threshold = merge_threshold
        self.confidence_floor = confidence_floor
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._seed_defaults = seed_defaults

        self.code_patterns: dict[str, CodePattern] = {}
        self.anti_patterns: dict[str, AntiPattern] = {}
        self.best_practices: dict[str, BestPractice] = {}
        self.templates: dict[str, CodeTemplate] = {}
        self._compiled: dict[str, list[tuple[DetectionRule, re.Pattern[str]]]] = {}

        if seed_defaults:
            for anti in default_anti_patterns():
                self.add_anti_pattern(anti)

    # =========================================================================
    # Code patterns
    # =========================================================================

    def structural_similarity(self, a: CodePattern, b: CodePattern) -> float:
        """Name containment and use-case equality, 0.5 each."""
        name_a, name_b = a.name.lower(), b.name.lower()
        names_similar = name_a in name_b or name_b in name_a
        use_cases_similar = a.use_case.lower() == b.use_case.lower()
        return (0.5 if names_similar else 0.0) + (0.5 if use_cases_similar else 0.0)

    def similarity(self, a: CodePattern, b: CodePattern) -> float:
        return max(
            cosine_similarity(a.embedding, b.embedding),
            self.structural_similarity(a, b),
        )

    def _merge_candidate(self, pattern: CodePattern) -> CodePattern | None:
        best: CodePattern | None = None
        best_score = -1.0
        for pattern_id in sorted(self.code_patterns):
            existing = self.code_patterns[pattern_id]
            if existing.language.lower() != pattern.language.lower():
                continue
            if (existing.framework or "") != (pattern.framework or ""):
                continue
            score = self.similarity(existing, pattern)
            if score >= self.merge_threshold and score > best_score:
                best, best_score = existing, score
        return best

    def add_code_pattern(
        self,
        name: str,
        language: str,
        template: str = "",
        *,
        framework: str | None = None,
        use_case: str = "general",
        description: str = "",
        embedding: list[float] | None = None,
        performance: PerformanceProfile | dict[str, Any] | None = None,
        examples: list[CodeExample] | None = None,
        usage_count: int = 1,
        effectiveness: float = 0.5,
    ) -> tuple[CodePattern, bool]:
        """Insert a pattern, merging into a near-duplicate if one exists.

        Returns:
            Tuple of (stored pattern, whether it was merged)
        """
        now = self._clock()
        if isinstance(performance, dict):
            performance = PerformanceProfile.model_validate(performance)
        candidate = CodePattern(
            id=f"pattern:{_slug(name)}:{uuid4().hex[:8]}",
            name=name,
            description=description,
            language=language,
            framework=framework,
            use_case=use_case,
            template=template,
            embedding=list(embedding or []),
            performance=performance or PerformanceProfile(),
            examples=list(examples or []),
            usage_count=usage_count,
            effectiveness=effectiveness,
            created_at=now,
            last_used=now,
        )

        existing = self._merge_candidate(candidate)
        if existing is None:
            self.code_patterns[candidate.id] = candidate
            logger.debug(f"Added code pattern {candidate.id}")
            return candidate, False

        self._merge_into(existing, candidate, now)
        logger.debug(f"Merged pattern '{name}' into {existing.id}")
        return existing, True

    @staticmethod
    def _merge_into(target: CodePattern, other: CodePattern, now: datetime) -> None:
        w_target = max(target.usage_count, 1)
        w_other = max(other.usage_count, 1)
        total = w_target + w_other

        perf = target.performance
        perf.avg_execution_ms = (
            perf.avg_execution_ms * w_target
            + other.performance.avg_execution_ms * w_other
        ) / total
        perf.memory_kb = (
            perf.memory_kb * w_target + other.performance.memory_kb * w_other
        ) / total

        if target.embedding and other.embedding:
            target.embedding = weighted_average(
                [target.embedding, other.embedding], [w_target, w_other]
            )
        elif other.embedding:
            target.embedding = list(other.embedding)

        target.effectiveness = (
            target.effectiveness * w_target + other.effectiveness * w_other
        ) / total

        known = {example.id for example in target.examples}
        for example in other.examples:
            if example.id not in known:
                target.examples.append(example)
                known.add(example.id)

        if not target.template and other.template:
            target.template = other.template
        target.usage_count += other.usage_count
        target.last_used = now

    def find_code_patterns(
        self,
        language: str | None = None,
        framework: str | None = None,
        use_case: str | None = None,
        limit: int = 10,
        embedding: list[float] | None = None,
    ) -> list[CodePattern]:
        """Exact-field filter, then sort by relevance (ties by id)."""
        matches = [
            p
            for p in list(self.code_patterns.values())
            if (language is None or p.language.lower() == language.lower())
            and (framework is None or (p.framework or "") == framework)
            and (use_case is None or p.use_case.lower() == use_case.lower())
        ]
        if not matches:
            return []

        max_usage = max(p.usage_count for p in matches)

        def relevance(p: CodePattern) -> float:
            usage = math.log1p(p.usage_count) / math.log1p(max_usage) if max_usage else 0
            score = 0.6 * p.effectiveness + 0.4 * usage
            if embedding:
                score = 0.5 * cosine_similarity(p.embedding, embedding) + 0.5 * score
            return score

        matches.sort(key=lambda p: (-relevance(p), p.id))
        return matches[:limit]

    def get_code_pattern(self, pattern_id: str) -> CodePattern | None:
        return self.code_patterns.get(pattern_id)

    def record_outcome(self, pattern_id: str, success: bool) -> CodePattern | None:
        """Nudge a pattern's effectiveness after it was (un)successfully used."""
        pattern = self.code_patterns.get(pattern_id)
        if pattern is None:
            return None
        adjustment = 0.1 if success else -0.05
        pattern.effectiveness = min(max(pattern.effectiveness + adjustment, 0.0), 1.0)
        pattern.last_used = self._clock()
        return pattern

    def extract_patterns(self, code: str) -> list[ExtractedPattern]:
        """Find function and class definitions in a piece of code.

        Each definition's snippet runs until the next definition.
        """
        hits: list[tuple[int, str, str]] = []
        seen: set[int] = set()
        for regex, use_case in _EXTRACTORS:
            for match in regex.finditer(code):
                if match.start() in seen:
                    continue
                seen.add(match.start())
                signature = re.sub(r"\s+", " ", match.group(1)).strip()
                hits.append((match.start(), signature, use_case))

        hits.sort()
        extracted = []
        for index, (start, signature, use_case) in enumerate(hits):
            end = hits[index + 1][0] if index + 1 < len(hits) else len(code)
            extracted.append(
                ExtractedPattern(
                    name=signature,
                    template=code[start:end].strip(),
                    use_case=use_case,
                )
            )
        return extracted

    # =========================================================================
    # Anti-patterns
    # =========================================================================

    def add_anti_pattern(self, anti_pattern: AntiPattern) -> AntiPattern:
        compiled = []
        for rule in anti_pattern.detection_rules:
            try:
                compiled.append((rule, re.compile(rule.pattern, _RULE_FLAGS)))
            except re.error as e:
                raise ValidationError(
                    f"Invalid detection rule for '{anti_pattern.name}': {e}"
                ) from e
        self.anti_patterns[anti_pattern.id] = anti_pattern
        self._compiled[anti_pattern.id] = compiled
        return anti_pattern

    def detect_anti_patterns(
        self, code: str, language: str | None = None
    ) -> list[AntiPatternMatch]:
        """Apply every detection rule and report matches above the floor.

        At most one match is reported per anti-pattern (the most
        confident rule that fired). Results are ordered by severity,
        then line.
        """
        matches: list[AntiPatternMatch] = []
        lines = code.splitlines()

        for anti_id, anti in sorted(list(self.anti_patterns.items())):
            if language and anti.languages and language.lower() not in anti.languages:
                continue
            best: AntiPatternMatch | None = None
            for rule, regex in self._compiled.get(anti_id, []):
                if rule.confidence < self.confidence_floor:
                    continue
                found = regex.search(code)
                if found is None:
                    continue
                text = found.group(0)
                start = found.start() + len(text) - len(text.lstrip())
                line = code.count("\n", 0, start) + 1
                if best is None or rule.confidence > best.confidence:
                    best = AntiPatternMatch(
                        anti_pattern_id=anti_id,
                        name=anti.name,
                        severity=anti.severity,
                        rule_type=rule.rule_type,
                        confidence=rule.confidence,
                        line=line,
                        snippet=lines[line - 1].strip() if line <= len(lines) else "",
                        remediation=anti.remediation,
                    )
            if best is not None:
                matches.append(best)

        matches.sort(key=lambda m: (_SEVERITY_RANK[m.severity], m.line, m.anti_pattern_id))
        return matches

    # =========================================================================
    # Best practices and templates
    # =========================================================================

    def add_best_practice(self, practice: BestPractice) -> BestPractice:
        self.best_practices[practice.id] = practice
        return practice

    def find_best_practices(
        self,
        language: str | None = None,
        domain: str | None = None,
        limit: int = 10,
    ) -> list[BestPractice]:
        """Practices for a language/domain; unscoped practices always apply."""
        results = [
            bp
            for bp in list(self.best_practices.values())
            if (language is None or bp.language in (None, language))
            and (domain is None or bp.domain in (None, domain))
        ]
        results.sort(key=lambda bp: (-bp.confidence, bp.id))
        return results[:limit]

    def add_template(self, template: CodeTemplate) -> CodeTemplate:
        if not template.parameters:
            template.parameters = sorted(set(_PLACEHOLDER_RE.findall(template.body)))
        self.templates[template.id] = template
        return template

    def render_template(self, template_id: str, values: dict[str, Any]) -> str | None:
        """Fill a template's ``{{name}}`` placeholders.

        Returns:
            Rendered text, or None if the template does not exist.

        Raises:
            ValidationError: If a placeholder has no value.
        """
        template = self.templates.get(template_id)
        if template is None:
            return None
        missing = [p for p in template.parameters if p not in values]
        if missing:
            raise ValidationError(
                f"Missing template parameters for '{template.name}': {missing}"
            )
        template.usage_count += 1
        return _PLACEHOLDER_RE.sub(
            lambda m: str(values.get(m.group(1), m.group(0))), template.body
        )

    # =========================================================================
    # State
    # =========================================================================

    def clear(self) -> None:
        self.code_patterns.clear()
        self.anti_patterns.clear()
        self.best_practices.clear()
        self.templates.clear()
        self._compiled.clear()
        if self._seed_defaults:
            for anti in default_anti_patterns():
                self.add_anti_pattern(anti)

    def export_state(self) -> dict[str, Any]:
        def dump(items: dict[str, Any]) -> list[dict[str, Any]]:
            return [item.model_dump(mode="json") for item in items.values()]

        return {
            "code_patterns": dump(self.code_patterns),
            "anti_patterns": dump(self.anti_patterns),
            "best_practices": dump(self.best_practices),
            "templates": dump(self.templates),
        }

    def import_state(self, state: dict[str, Any]) -> None:
        self.clear()
        for raw in state.get("code_patterns", []):
            pattern = CodePattern.model_validate(raw)
            self.code_patterns[pattern.id] = pattern
        for raw in state.get("anti_patterns", []):
            self.add_anti_pattern(AntiPattern.model_validate(raw))
        for raw in state.get("best_practices", []):
            self.add_best_practice(BestPractice.model_validate(raw))
        for raw in state.get("templates", []):
            self.add_template(CodeTemplate.model_validate(raw))
