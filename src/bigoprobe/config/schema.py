from __future__ import annotations

from dataclasses import dataclass, field

SAMPLER_POLICIES = {"fixed", "adaptive", "progressive"}
CLASSIFIER_STRATEGIES = {"exponent", "ratio"}
AGGREGATES = {"mean", "min"}
ISOLATION_MODES = {"inline", "subprocess"}

DEFAULT_SIZES = (500, 1000, 2000, 5000, 10000, 20000, 40000, 60000, 80000, 100000)


@dataclass(frozen=True)
class ProbeConfig:
    sampler_policy: str = "fixed"
    classifier_strategy: str | None = None
    trial_count: int = 5
    per_trial_timeout_ms: float = 2000.0
    global_budget_ms: float = 15000.0
    min_valid_duration_ms: float = 0.05
    aggregate: str = "mean"
    sizes: list[int] = field(default_factory=list)
    function_name: str = "algoritmo"
    smoke_input: int = 10
    warmups: int = 0
    calibrate: bool = True
    calibration_target_ms: float = 1.0
    max_inner_repeats: int = 10000
    outlier_ratio: float = 3.0
    duration_floor_ms: float = 1e-6
    progressive_start: int = 64
    progressive_max_size: int = 4_194_304
    progressive_points: int = 5
    progressive_budget_fraction: float = 0.25
    isolation: str = "inline"
    memory_limit_mb: int | None = None
    kill_grace_ms: float = 1000.0

    @property
    def strategy(self) -> str:
        if self.classifier_strategy:
            return self.classifier_strategy
        # Adaptive sizing is paired with ratio classification; the other
        # policies feed the log-log regression.
        return "ratio" if self.sampler_policy == "adaptive" else "exponent"

    def checked(self) -> ProbeConfig:
        if self.sampler_policy not in SAMPLER_POLICIES:
            raise ValueError(f"unknown sampler_policy: {self.sampler_policy}")
        if self.classifier_strategy is not None and self.classifier_strategy not in CLASSIFIER_STRATEGIES:
            raise ValueError(f"unknown classifier_strategy: {self.classifier_strategy}")
        if self.aggregate not in AGGREGATES:
            raise ValueError(f"unknown aggregate: {self.aggregate}")
        if self.isolation not in ISOLATION_MODES:
            raise ValueError(f"unknown isolation: {self.isolation}")
        if self.trial_count < 1:
            raise ValueError("trial_count must be at least 1")
        if self.per_trial_timeout_ms <= self.min_valid_duration_ms:
            raise ValueError("per_trial_timeout_ms must exceed min_valid_duration_ms")
        if self.global_budget_ms <= 0:
            raise ValueError("global_budget_ms must be positive")
        if self.duration_floor_ms <= 0:
            raise ValueError("duration_floor_ms must be positive")
        if self.max_inner_repeats < 1:
            raise ValueError("max_inner_repeats must be at least 1")
        if self.sizes and len({n for n in self.sizes if n > 0}) < 3:
            raise ValueError("sizes must contain at least 3 distinct positive values")
        if self.progressive_points < 3:
            raise ValueError("progressive_points must be at least 3")
        return self
