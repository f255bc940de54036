"""Pattern library models (System 1)."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import DetectionRuleType, Severity


class PerformanceProfile(BaseModel):
    """Performance characteristics of a code pattern.

    Complexities are free-form (``O(n)``), numeric fields are averaged
    by usage count when patterns merge.
    """

    time_complexity: str = Field(default="O(1)")
    space_complexity: str = Field(default="O(1)")
    avg_execution_ms: float = Field(default=0.0, ge=0.0)
    memory_kb: float = Field(default=0.0, ge=0.0)


class CodeExample(BaseModel):
    """A concrete example of a pattern in use."""

    id: str
    code: str
    description: str = ""
    source_event_id: str | None = None


class CodePattern(BaseModel):
    """A reusable code pattern learned from generated code."""

    id: str = Field(..., description="Unique identifier")
    name: str = Field(..., description="Pattern name (e.g. function signature)")
    description: str = Field(default="")
    language: str = Field(..., description="Programming language")
    framework: str | None = Field(None)
    use_case: str = Field(default="general")
    template: str = Field(default="", description="Representative code")
    embedding: list[float] = Field(default_factory=list)
    performance: PerformanceProfile = Field(default_factory=PerformanceProfile)
    examples: list[CodeExample] = Field(default_factory=list)
    usage_count: int = Field(default=1, ge=0)
    effectiveness: float = Field(default=0.5, ge=0.0, le=1.0)
    created_at: datetime
    last_used: datetime


class DetectionRule(BaseModel):
    """A single regex-based detection rule."""

    rule_type: DetectionRuleType
    pattern: str = Field(..., description="Regular expression")
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    description: str = ""


class AntiPattern(BaseModel):
    """A known bad practice with detection rules."""

    id: str
    name: str
    description: str = ""
    severity: Severity = Severity.MEDIUM
    languages: list[str] = Field(
        default_factory=list, description="Empty means applies to all languages"
    )
    detection_rules: list[DetectionRule] = Field(default_factory=list)
    remediation: str = ""


class AntiPatternMatch(BaseModel):
    """An anti-pattern detected in a piece of code."""

    anti_pattern_id: str
    name: str
    severity: Severity
    rule_type: DetectionRuleType
    confidence: float
    line: int = Field(..., description="1-based line of the first match")
    snippet: str = ""
    remediation: str = ""


class BestPractice(BaseModel):
    """A recommended practice for a language or domain."""

    id: str
    title: str
    description: str = ""
    language: str | None = None
    domain: str | None = None
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    examples: list[str] = Field(default_factory=list)


class CodeTemplate(BaseModel):
    """A parameterised code template.

    Placeholders use ``{{name}}`` syntax.
    """

    id: str
    name: str
    language: str
    body: str
    parameters: list[str] = Field(default_factory=list)
    description: str = ""
    usage_count: int = 0
