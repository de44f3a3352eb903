from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

SCHEMA_VERSION = 1

# Recorded when no trial at a size was valid; far above any accepted reading.
SENTINEL_DURATION_MS = 9999.0


class ComplexityClass(str, Enum):
    CONSTANT = "constant"
    LOGARITHMIC = "logarithmic"
    LINEAR = "linear"
    LINEARITHMIC = "linearithmic"
    QUADRATIC = "quadratic"
    CUBIC_OR_WORSE = "cubic-or-worse"
    UNKNOWN = "unknown"

    @property
    def big_o(self) -> str:
        return _BIG_O[self]


_BIG_O = {
    ComplexityClass.CONSTANT: "O(1)",
    ComplexityClass.LOGARITHMIC: "O(log n)",
    ComplexityClass.LINEAR: "O(n)",
    ComplexityClass.LINEARITHMIC: "O(n log n)",
    ComplexityClass.QUADRATIC: "O(n^2)",
    ComplexityClass.CUBIC_OR_WORSE: "O(n^3) or worse",
    ComplexityClass.UNKNOWN: "O(?)",
}


class ConfidenceTier(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class SamplePoint:
    size: int
    duration_ms: float
    valid_trials: int
    jitter: float = 0.0
    sentinel: bool = False


@dataclass(frozen=True)
class RegressionFit:
    slope: float
    intercept: float
    r_squared: float


@dataclass(frozen=True)
class AnalysisError:
    kind: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Classification:
    complexity_class: ComplexityClass
    confidence: ConfidenceTier
    exponent: float | None = None
    r_squared: float | None = None


@dataclass(frozen=True)
class EstimationReport:
    complexity_class: ComplexityClass
    confidence: ConfidenceTier
    series: tuple[SamplePoint, ...]
    bailed_out: bool
    exponent: float | None = None
    r_squared: float | None = None
    sizes: tuple[int, ...] = field(default_factory=tuple)
    policy: str = ""
    strategy: str = ""
    elapsed_ms: float = 0.0
    failure: AnalysisError | None = None
    schema_version: int = SCHEMA_VERSION

    @property
    def big_o(self) -> str:
        return self.complexity_class.big_o

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["complexity_class"] = self.complexity_class.value
        data["confidence"] = self.confidence.value
        data["big_o"] = self.big_o
        data["series"] = [asdict(p) for p in self.series]
        data["sizes"] = list(self.sizes)
        if data.get("failure") is None:
            data.pop("failure", None)
        return data
