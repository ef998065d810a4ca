"""
videoclipper: video ⇄ frame-sequence pipeline.

Quick start:
    from videoclipper.dispatch import run_stage
    from videoclipper.engines import Engines
    from videoclipper.models import ClipperConfig
    run_stage(ClipperConfig(input="shots_frames", fps=30), Engines.from_config())
"""

__version__ = "0.3.0"
