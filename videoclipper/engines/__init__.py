"""
External engine adapters.

Quick start:
    from videoclipper.engines import Engines
    engines = Engines.from_config()
    engines.decoder.check(["-version"])
"""
from videoclipper.engines.base import Engine, EngineResult, Engines, SubprocessEngine

__all__ = ["Engine", "EngineResult", "Engines", "SubprocessEngine"]
