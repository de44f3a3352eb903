from __future__ import annotations

from pathlib import Path

from bigoprobe.config.loader import DEFAULT_CONFIG_NAME, load_config
from bigoprobe.config.schema import ProbeConfig
from bigoprobe.config.templates import CONFIG_PRESETS


def test_missing_default_config_gives_defaults(tmp_path: Path) -> None:
    cfg = load_config(tmp_path)
    assert cfg == ProbeConfig()
    assert cfg.trial_count == 5
    assert cfg.per_trial_timeout_ms == 2000.0
    assert cfg.min_valid_duration_ms == 0.05
    assert cfg.strategy == "exponent"


def test_default_config_file_is_read(tmp_path: Path) -> None:
    (tmp_path / DEFAULT_CONFIG_NAME).write_text(
        "sampler_policy: Adaptive\ntrial_count: 7\nsizes: [10, 20, '40']\ncalibrate: 'no'\n",
        encoding="utf-8",
    )
    cfg = load_config(tmp_path)
    assert cfg.sampler_policy == "adaptive"
    assert cfg.strategy == "ratio"
    assert cfg.trial_count == 7
    assert cfg.sizes == [10, 20, 40]
    assert cfg.calibrate is False


def test_later_configs_override_earlier(tmp_path: Path) -> None:
    cfg1 = tmp_path / "a.yml"
    cfg2 = tmp_path / "b.yml"
    cfg1.write_text("global_budget_ms: 5000\naggregate: min\nmemory_limit_mb: 256\n", encoding="utf-8")
    cfg2.write_text("global_budget_ms: 8000\nmemory_limit_mb:\n", encoding="utf-8")

    cfg = load_config(tmp_path, [cfg1, cfg2])

    assert cfg.global_budget_ms == 8000.0
    assert cfg.aggregate == "min"
    assert cfg.memory_limit_mb is None


def test_bad_files_are_skipped(tmp_path: Path) -> None:
    broken = tmp_path / "broken.yml"
    broken.write_text("trial_count: [unclosed\n", encoding="utf-8")
    listing = tmp_path / "list.yml"
    listing.write_text("- 1\n- 2\n", encoding="utf-8")
    good = tmp_path / "good.yml"
    good.write_text("trial_count: 3\n", encoding="utf-8")

    cfg = load_config(tmp_path, [broken, listing, Path("absent.yml"), good])

    assert cfg.trial_count == 3


def test_presets_load_and_check(tmp_path: Path) -> None:
    for name, template in CONFIG_PRESETS.items():
        path = tmp_path / f"{name}.yml"
        path.write_text(template, encoding="utf-8")
        cfg = load_config(tmp_path, [path]).checked()
        assert cfg.function_name == "algoritmo"
