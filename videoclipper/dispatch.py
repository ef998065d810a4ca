"""
Stage dispatch: route a validated stage config to the function that runs it.
"""
from __future__ import annotations

from typing import Any, Callable

import structlog

from videoclipper.assembly import clipper
from videoclipper.engines import Engines
from videoclipper.extraction import exporter, sampler
from videoclipper.filters import clutter, gmicer
from videoclipper.frames import merger

log = structlog.get_logger(__name__)

STAGES: dict[str, Callable[..., Any]] = {
    "exporter": exporter.run,
    "sampler":  sampler.run,
    "merger":   merger.run,
    "gmicer":   gmicer.run,
    "clutter":  clutter.run,
    "clipper":  clipper.run,
}


def run_stage(cfg, engines: Engines | None = None):
    """Run the stage named by ``cfg.stage`` and return its result."""
    try:
        stage_fn = STAGES[cfg.stage]
    except KeyError:
        raise ValueError(f"Unknown stage '{cfg.stage}'; expected one of {sorted(STAGES)}") from None
    engines = engines or Engines.from_config()
    log.debug("dispatch.stage", stage=cfg.stage, input=str(cfg.input))
    return stage_fn(cfg, engines)
