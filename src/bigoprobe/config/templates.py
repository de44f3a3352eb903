"""Templates for generated bigoprobe configuration files."""

DEFAULT_CONFIG = """# bigoprobe configuration example
# Name of the candidate function inside the analyzed source
function_name: "algoritmo"
smoke_input: 10

# Input sizes: fixed, adaptive (loop-depth tiers) or progressive (doubling)
sampler_policy: "fixed"
sizes: []
progressive_start: 64
progressive_max_size: 4194304
progressive_points: 5
progressive_budget_fraction: 0.25

# Classification: exponent (log-log regression) or ratio; empty pairs with the policy
classifier_strategy:

# Trials
trial_count: 5
warmups: 0
aggregate: "mean"
min_valid_duration_ms: 0.05
per_trial_timeout_ms: 2000
outlier_ratio: 3.0
calibrate: true
calibration_target_ms: 1.0
max_inner_repeats: 10000
duration_floor_ms: 0.000001

# Budget and isolation
global_budget_ms: 15000
isolation: "inline"
memory_limit_mb:
kill_grace_ms: 1000
"""

MINIMAL_CONFIG = """# bigoprobe minimal configuration
function_name: "algoritmo"
sampler_policy: "fixed"
"""

CI_CONFIG = """# bigoprobe CI configuration (isolated, bounded)
sampler_policy: "progressive"
trial_count: 7
aggregate: "min"
global_budget_ms: 10000
isolation: "subprocess"
memory_limit_mb: 512
"""

CONFIG_PRESETS = {
    "full": DEFAULT_CONFIG,
    "minimal": MINIMAL_CONFIG,
    "ci": CI_CONFIG,
}
