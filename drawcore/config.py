"""
Editor configuration.

Policy constants (history depth, parallel edge spacing, hit tolerance)
live here instead of being scattered through the code. Values can be
overridden through DRAWCORE_* environment variables.
"""

import os

from pydantic import BaseModel, Field


class EditorConfig(BaseModel):
    """Tunable editor policies."""
    max_history: int = Field(default=100, ge=1)
    hit_tolerance: float = Field(default=5.0, ge=0)
    parallel_edge_step: float = Field(default=25.0, gt=0)
    curve_sample_steps: int = Field(default=20, ge=2)
    self_loop_spread_deg: float = 30.0
    self_loop_scale: float = 1.5

    @classmethod
    def from_env(cls) -> "EditorConfig":
        """Build a config, applying any DRAWCORE_* environment overrides."""
        overrides: dict = {}
        env_map = {
            "DRAWCORE_MAX_HISTORY": "max_history",
            "DRAWCORE_HIT_TOLERANCE": "hit_tolerance",
            "DRAWCORE_PARALLEL_EDGE_STEP": "parallel_edge_step",
            "DRAWCORE_CURVE_SAMPLE_STEPS": "curve_sample_steps",
        }
        for env_name, field_name in env_map.items():
            value = os.environ.get(env_name)
            if value is not None and value != "":
                overrides[field_name] = value
        return cls(**overrides)


DEFAULT_CONFIG = EditorConfig()
