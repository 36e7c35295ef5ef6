"""
Configuration management for rastertrace.

Loads YAML configuration with sensible defaults for every pipeline stage.
All thresholds the host can tune live here.
"""

import os
from dataclasses import asdict, dataclass, field, fields

import yaml


@dataclass
class ScanConfig:
    """Configuration for the region scan."""
    foreground: tuple = (0, 0, 0)  # RGB
    fuzz: float = 0.1  # normalised colour distance in [0, 1]
    block_width: int = 4
    block_height: int = 4


@dataclass
class OptimizeConfig:
    """Configuration for collinear line collapsing."""
    gradient_epsilon: float = 0.05  # radians


@dataclass
class SplitConfig:
    """Configuration for sub-path splitting."""
    policy: str = "even_interior"  # "split_all", "even_interior" or "exterior_only"
    min_loop_size: int = 0  # vertex count
    min_loop_area: float = 0.0  # bounding box area


@dataclass
class DetectConfig:
    """Configuration for thick-trace centerline detection."""
    delta_threshold: float = 4.0
    variance_threshold: float = 1.0
    check_intersections: bool = True
    sample_spacing: float = 1.0
    max_samples: int = 400
    tie_tolerance: float = 0.02
    bend_search_radius: int = 3
    return_point_distance: float = 3.0
    min_stub_length: float = 2.0
    round_relative: bool = False
    width_round_step: float = 1.0
    fixed_width: float = None
    max_depth: int = 4
    min_region_area: float = 1.0
    # spike pair scoring weights
    weight_midway: float = 1.0
    weight_inclination: float = 1.0
    weight_length: float = 0.1
    weight_angle: float = 1.0
    weight_distance: float = 1.0


@dataclass
class MergeConfig:
    """Configuration for path welding."""
    delta_threshold: float = 2.0


@dataclass
class SmoothConfig:
    """Configuration for stair-step smoothing."""
    tiny_step_threshold: float = 3.0
    max_deviation: float = 0.5
    curve_fitting: bool = True
    min_bezier_samples: int = 5
    bezier_gradient_threshold: float = 0.1  # radians
    length_threshold: float = 10.0
    threshold_diff: float = 0.1
    curve_threshold_diff: float = 0.1
    stationary_threshold: float = 2.0
    flatness: float = 1.0
    # Nelder-Mead
    simplex_delta: float = 0.01
    max_iterations: int = 200
    max_function_evals: int = 1000
    tol_x: float = 1e-6
    tol_fun: float = 1e-6


@dataclass
class TinyConfig:
    """Configuration for tiny path removal."""
    area_threshold: float = 5.0


@dataclass
class RunConfig:
    """Configuration for stage execution."""
    order: list = field(default_factory=lambda: [
        "scan", "optimize", "split", "detect-lines", "merge", "smooth", "remove-tiny",
    ])
    yield_sleep: float = 0.0  # seconds slept at each checkpoint
    preview_batch: int = 20


@dataclass
class TracingConfig:
    """Configuration for runtime tracing."""
    enabled: bool = False
    level: str = "INFO"
    file_path: str = None
    json_output: bool = False


@dataclass
class DebugConfig:
    """Configuration for debug artifact generation."""
    enabled: bool = False
    max_edge_scale: int = 1600


@dataclass
class PipelineConfig:
    """Complete pipeline configuration."""
    scan: ScanConfig = field(default_factory=ScanConfig)
    optimize: OptimizeConfig = field(default_factory=OptimizeConfig)
    split: SplitConfig = field(default_factory=SplitConfig)
    detect: DetectConfig = field(default_factory=DetectConfig)
    merge: MergeConfig = field(default_factory=MergeConfig)
    smooth: SmoothConfig = field(default_factory=SmoothConfig)
    tiny: TinyConfig = field(default_factory=TinyConfig)
    run: RunConfig = field(default_factory=RunConfig)
    tracing: TracingConfig = field(default_factory=TracingConfig)
    debug: DebugConfig = field(default_factory=DebugConfig)


def load_config(config_path=None):
    """
    Load configuration from YAML file.

    Falls back to defaults for any missing values.
    """
    config = PipelineConfig()

    if config_path and os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f) or {}

        config = _merge_config(config, yaml_data)

    return config


def _merge_config(config, yaml_data):
    """Merge YAML data into config dataclass, ignoring unknown keys."""
    for section in fields(config):
        values = yaml_data.get(section.name)
        if not isinstance(values, dict):
            continue

        target = getattr(config, section.name)
        for key, value in values.items():
            if hasattr(target, key):
                if key == "foreground" and value is not None:
                    value = tuple(value)
                setattr(target, key, value)

    return config


def save_default_config(path):
    """Save default configuration to YAML file for reference."""
    yaml_data = asdict(PipelineConfig())
    yaml_data["scan"]["foreground"] = list(yaml_data["scan"]["foreground"])

    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(yaml_data, f, default_flow_style=False, sort_keys=False)
