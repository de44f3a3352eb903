from __future__ import annotations

from .models import AnalysisError, EstimationReport, SamplePoint


def _duration_cell(point: SamplePoint, ceiling_ms: float | None = None) -> str:
    if point.sentinel:
        return f">{ceiling_ms:.0f} ms" if ceiling_ms else "n/a"
    if point.duration_ms >= 1.0:
        return f"{point.duration_ms:.1f} ms"
    return f"{point.duration_ms * 1000.0:.2f} µs"


def _fmt_optional(value: float | None, digits: int) -> str:
    return "n/a" if value is None else f"{value:.{digits}f}"


def to_summary(result: EstimationReport | AnalysisError, ceiling_ms: float | None = None) -> str:
    if isinstance(result, AnalysisError):
        return f"error ({result.kind}): {result.message}"
    lines = [
        f"{result.big_o}  [{result.complexity_class.value}]",
        f"exponent: {_fmt_optional(result.exponent, 3)}  R^2: {_fmt_optional(result.r_squared, 4)}"
        f"  confidence: {result.confidence.value}",
    ]
    if result.failure:
        lines.append(f"note ({result.failure.kind}): {result.failure.message}")
    for point in result.series:
        lines.append(f"  n={point.size:>9,}  {_duration_cell(point, ceiling_ms)}")
    return "\n".join(lines)


def to_markdown(result: EstimationReport | AnalysisError, ceiling_ms: float | None = None) -> str:
    lines: list[str] = []
    lines.append("# bigoprobe report")
    lines.append("")
    if isinstance(result, AnalysisError):
        lines.append(f"❌ `{result.kind}`: {result.message}")
        lines.append("")
        return "\n".join(lines)

    lines.append(f"- Estimate: **{result.big_o}** (`{result.complexity_class.value}`)")
    lines.append(f"- Exponent: `{_fmt_optional(result.exponent, 3)}`")
    lines.append(f"- R²: `{_fmt_optional(result.r_squared, 4)}`")
    lines.append(f"- Confidence: `{result.confidence.value}`")
    lines.append(f"- Sampler: `{result.policy}`, classifier: `{result.strategy}`")
    lines.append(f"- Measured in: `{result.elapsed_ms:.0f} ms`")
    if result.bailed_out:
        lines.append("- ⚠️ Measurement stopped early; larger sizes were not attempted.")
    if result.failure:
        lines.append(f"- Note (`{result.failure.kind}`): {result.failure.message}")
    lines.append("")

    if result.series:
        lines.append("| n | Duration | Valid trials | Jitter |")
        lines.append("|---:|---:|---:|---:|")
        for point in result.series:
            lines.append(
                f"| {point.size:,} | {_duration_cell(point, ceiling_ms)} | {point.valid_trials} | {point.jitter:.2f} |"
            )
        lines.append("")
    return "\n".join(lines)
