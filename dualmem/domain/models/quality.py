"""Quality metric models (System 2)."""

from __future__ import annotations

from pydantic import BaseModel, Field


class CodeQualityMetrics(BaseModel):
    """Heuristic code quality assessment.

    Scores are 0-100 except ``bug_density`` (estimated bugs per 1000
    lines) and ``complexity`` (approximate cyclomatic complexity).
    """

    maintainability: float = Field(default=0.0, ge=0.0, le=100.0)
    readability: float = Field(default=0.0, ge=0.0, le=100.0)
    testability: float = Field(default=0.0, ge=0.0, le=100.0)
    performance: float = Field(default=0.0, ge=0.0, le=100.0)
    security: float = Field(default=0.0, ge=0.0, le=100.0)
    bug_density: float = Field(default=0.0, ge=0.0)
    complexity: float = Field(default=1.0, ge=0.0)

    @property
    def overall(self) -> float:
        """Mean of the 0-100 scores, normalised to [0, 1]."""
        total = (
            self.maintainability
            + self.readability
            + self.testability
            + self.performance
            + self.security
        )
        return total / 500.0


class ReasoningQualityMetrics(BaseModel):
    """Normalised sub-scores of a sealed trace."""

    coherence: float = Field(default=0.0, ge=0.0, le=1.0)
    completeness: float = Field(default=0.0, ge=0.0, le=1.0)
    accuracy: float = Field(default=0.0, ge=0.0, le=1.0)
    efficiency: float = Field(default=0.0, ge=0.0, le=1.0)
    creativity: float = Field(default=0.0, ge=0.0, le=1.0)


class QualityMetrics(BaseModel):
    """Running averages across everything System 2 has assessed."""

    code_quality: CodeQualityMetrics = Field(default_factory=CodeQualityMetrics)
    reasoning_quality: ReasoningQualityMetrics = Field(
        default_factory=ReasoningQualityMetrics
    )
    code_samples: int = 0
    reasoning_samples: int = 0
