"""
Bounded worker pool for per-frame engine calls.

Each frame is an independent engine invocation writing its own output
path, so no locking is needed. Every job runs to completion; failures are
gathered and raised together once the pool has drained.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import structlog

from videoclipper.engines import Engine
from videoclipper.errors import EngineFailure, FilterBatchFailed
from videoclipper.models import Frame

log = structlog.get_logger(__name__)

PROGRESS_EVERY = 50


@dataclass(frozen=True)
class FrameJob:
    """One engine call producing one output frame."""

    index: int
    args: list[str]
    output: Path


def run_frame_jobs(
    engine: Engine,
    jobs: list[FrameJob],
    *,
    stage: str | None = None,
    workers: int | None = None,
    finalize: Callable[[FrameJob], None] | None = None,
) -> list[Frame]:
    """
    Run ``jobs`` on at most ``workers`` threads (default VIDEOCLIPPER_WORKERS).

    ``finalize`` runs on the calling thread after each successful call, before
    the job's output file is checked, so it can move engine output into place.
    A call that exits 0 without leaving ``job.output`` behind counts as failed.

    Returns:
        Frames that were produced, in index order.

    Raises:
        FilterBatchFailed listing every failed index, after all jobs finished.
        KeyboardInterrupt after cancelling jobs that have not started.
    """
    if not jobs:
        return []
    if workers is None:
        from videoclipper.config import config

        workers = config.WORKERS
    workers = max(1, min(workers, len(jobs)))

    failures: dict[int, EngineFailure] = {}
    produced: list[Frame] = []

    log.info("runner.started", stage=stage, engine=engine.name, frames=len(jobs), workers=workers)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"{stage or 'filter'}-frame") as executor:
        try:
            futures = {executor.submit(engine.check, job.args, stage=stage): job for job in jobs}
            for finished, future in enumerate(as_completed(futures), start=1):
                job = futures[future]
                try:
                    result = future.result()
                    if finalize is not None:
                        finalize(job)
                    if not job.output.is_file():
                        raise EngineFailure(
                            engine.name,
                            result.args,
                            result.returncode,
                            stderr=f"{engine.name} wrote no output to {job.output}\n{result.stderr}",
                            stage=stage,
                        )
                except EngineFailure as exc:
                    failures[job.index] = exc
                    log.warning(
                        "runner.frame_failed",
                        stage=stage,
                        index=job.index,
                        returncode=exc.returncode,
                        error=(exc.stderr or exc.stdout)[:300],
                    )
                else:
                    produced.append(Frame(index=job.index, path=job.output))
                if finished % PROGRESS_EVERY == 0:
                    log.info("runner.progress", stage=stage, done=finished, total=len(jobs))
        except KeyboardInterrupt:
            executor.shutdown(wait=False, cancel_futures=True)
            log.warning("runner.interrupted", stage=stage, completed=len(produced), total=len(jobs))
            raise

    if failures:
        raise FilterBatchFailed(failures, total=len(jobs), stage=stage)

    produced.sort(key=lambda f: f.index)
    log.info("runner.finished", stage=stage, frames=len(produced))
    return produced
