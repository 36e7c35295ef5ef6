"""
Stage runner for rastertrace.

Runs one stage at a time over the current path list, either inline or on
a single background worker, reports progress and previews to the host and
commits each completed stage through the host's undo boundary. Stages can
chain into the next one of the configured order.
"""

import dataclasses
import os
import threading
from concurrent.futures import ThreadPoolExecutor

from rastertrace.config import PipelineConfig, load_config
from rastertrace.errors import Cancelled, StageBusyError
from rastertrace.host import Host
from rastertrace.io.load_image import load_raster, validate_raster_path
from rastertrace.io.save_artifacts import DebugArtifactWriter, ensure_dir, paths_to_svg, save_json, save_svg
from rastertrace.lines.line_detector import detect_lines
from rastertrace.models import StageReport, TraceDocument, path_to_record
from rastertrace.paths.line_optimizer import optimize_lines
from rastertrace.paths.path_merger import merge_paths
from rastertrace.paths.subpath_splitter import split_sub_paths
from rastertrace.paths.tiny_filter import remove_tiny_paths
from rastertrace.run import CancellationToken, PipelineRun
from rastertrace.scan.region_scanner import scan_image
from rastertrace.smoothing.smoother import smooth_paths
from rastertrace.tracer import get_tracer, trace

STAGES = ("scan", "optimize", "split", "detect-lines", "merge", "smooth", "remove-tiny")


def _scan(run, paths, config, image=None, region=None, colour=None):
    scan_config = config.scan
    if colour is not None:
        scan_config = dataclasses.replace(scan_config, foreground=tuple(colour))
    return scan_image(run, image, scan_config, region=region), []


def _optimize(run, paths, config, **kwargs):
    return optimize_lines(run, paths, config.optimize), []


def _split(run, paths, config, **kwargs):
    return split_sub_paths(run, paths, config.split), []


def _detect(run, paths, config, **kwargs):
    return detect_lines(run, paths, config.detect)


def _merge(run, paths, config, **kwargs):
    return merge_paths(run, paths, config.merge), []


def _smooth(run, paths, config, **kwargs):
    return smooth_paths(run, paths, config.smooth)


def _remove_tiny(run, paths, config, **kwargs):
    return remove_tiny_paths(run, paths, config.tiny), []


STAGE_FUNCS = {
    "scan": _scan,
    "optimize": _optimize,
    "split": _split,
    "detect-lines": _detect,
    "merge": _merge,
    "smooth": _smooth,
    "remove-tiny": _remove_tiny,
}


class PipelineRunner:
    """
    Runs stages for one host.

    Only one stage may be active at a time; requesting another raises
    StageBusyError. A failed or cancelled stage leaves the host with the
    path list it had before the stage started. `paths` holds the list
    committed by the last successful stage.
    """

    def __init__(self, host=None, config=None, config_path=None, raise_errors=False):
        self.host = host or Host()
        self.config = config or load_config(config_path)
        self.raise_errors = raise_errors
        self.token = CancellationToken()
        self.reports = []
        self.paths = []
        self._lock = threading.Lock()
        self._active = None
        self._executor = None

    # ----------------------------------------------------------- lifecycle

    @property
    def active_stage(self):
        return self._active

    @property
    def is_busy(self):
        return self._active is not None

    def cancel(self):
        """Request cancellation of the active stage (and any chain after it)."""
        self.token.cancel()

    def shutdown(self, wait=True):
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
        return False

    # ------------------------------------------------------------ execution

    def _acquire(self, stage_name):
        with self._lock:
            if self._active is not None:
                raise StageBusyError(self._active, stage_name)
            self._active = stage_name
            self.token = CancellationToken()

    def _release(self):
        with self._lock:
            self._active = None

    def next_stage(self, stage_name):
        order = list(self.config.run.order)
        if stage_name not in order:
            return None
        index = order.index(stage_name)
        return order[index + 1] if index + 1 < len(order) else None

    def run_stage(self, stage_name, paths, chain=False, **kwargs):
        """
        Run a stage inline.

        Returns the list of StageReports for this stage and any chained
        stages. The host receives the final path list through stage_done.
        """
        if stage_name not in STAGE_FUNCS:
            raise ValueError(f"Unknown stage: {stage_name}")
        self._acquire(stage_name)
        try:
            return self._run_chain(stage_name, list(paths), chain, kwargs)
        finally:
            self._release()

    def submit(self, stage_name, paths, chain=False, **kwargs):
        """
        Run a stage on the background worker.

        Returns a Future resolving to the list of StageReports.
        """
        if stage_name not in STAGE_FUNCS:
            raise ValueError(f"Unknown stage: {stage_name}")
        self._acquire(stage_name)
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="rastertrace")

        def job():
            try:
                return self._run_chain(stage_name, list(paths), chain, kwargs)
            finally:
                self._release()

        try:
            return self._executor.submit(job)
        except RuntimeError:
            self._release()
            raise

    def _run_chain(self, stage_name, paths, chain, kwargs):
        reports = []
        while stage_name is not None:
            with self._lock:
                self._active = stage_name
            report, paths = self._execute(stage_name, paths, kwargs)
            reports.append(report)
            if not report.success or not chain:
                break
            stage_name = self.next_stage(stage_name)
            kwargs = {}
        return reports

    def _execute(self, stage_name, previous, kwargs):
        tracer = get_tracer()
        config = self.config
        run = PipelineRun(
            stage_name=stage_name,
            token=self.token,
            host=self.host,
            yield_sleep=config.run.yield_sleep,
            preview_batch=config.run.preview_batch,
        )
        self.host.message(f"Starting {stage_name} on {len(previous)} paths")

        try:
            with tracer.span(stage_name, module="pipeline"):
                paths, results = STAGE_FUNCS[stage_name](run, list(previous), config, **kwargs)
        except Cancelled:
            tracer.event(f"{stage_name} cancelled", level="WARN")
            return self._fail(run, previous, cancelled=True), previous
        except Exception as e:
            tracer.event(f"{stage_name} failed: {type(e).__name__}: {e}", level="ERROR")
            report = self._fail(run, previous, error=e)
            if self.raise_errors:
                raise
            return report, previous

        run.flush_preview()
        run.set_progress(100)
        report = StageReport(
            stage=stage_name,
            success=True,
            input_count=len(previous),
            output_count=len(paths),
            result_count=len(results),
            elapsed_ms=run.elapsed * 1000,
        )
        self.reports.append(report)
        self.paths = list(paths)
        self.host.record_undo(list(previous), list(paths), stage_name, list(results))
        self.host.stage_done(stage_name, list(paths), True)
        self.host.message(f"Finished {stage_name}: {len(previous)} -> {len(paths)} paths")
        return report, paths

    def _fail(self, run, previous, cancelled=False, error=None):
        report = StageReport(
            stage=run.stage_name,
            success=False,
            cancelled=cancelled,
            error=None if error is None else f"{type(error).__name__}: {error}",
            input_count=len(previous),
            output_count=len(previous),
            elapsed_ms=run.elapsed * 1000,
        )
        self.reports.append(report)
        if cancelled:
            self.host.message(f"{run.stage_name} cancelled")
        else:
            self.host.message(f"{run.stage_name} failed: {error}")
        self.host.stage_done(run.stage_name, list(previous), False)
        return report

    # ------------------------------------------------------ stage entry points

    def scan(self, image, colour=None, region=None, paths=(), chain=False):
        """Scan an image; `colour` overrides the configured foreground for this scan only."""
        return self.run_stage("scan", paths, chain=chain, image=image, region=region, colour=colour)

    def optimize(self, paths, chain=False):
        return self.run_stage("optimize", paths, chain=chain)

    def split(self, paths, chain=False):
        return self.run_stage("split", paths, chain=chain)

    def detect_lines(self, paths, chain=False):
        return self.run_stage("detect-lines", paths, chain=chain)

    def merge(self, paths, chain=False):
        return self.run_stage("merge", paths, chain=chain)

    def smooth(self, paths, chain=False):
        return self.run_stage("smooth", paths, chain=chain)

    def remove_tiny(self, paths, chain=False):
        return self.run_stage("remove-tiny", paths, chain=chain)


@trace(label="trace_image")
def trace_image(image, config=None, host=None, stages=STAGES, region=None):
    """
    Run a sequence of stages over an image.

    Convenience wrapper used by the command line. Errors propagate and a
    cancelled stage raises Cancelled.

    Returns:
        (paths, reports)
    """
    runner = PipelineRunner(host=host, config=config or PipelineConfig(), raise_errors=True)
    reports = []

    for stage_name in stages:
        kwargs = {"image": image, "region": region} if stage_name == "scan" else {}
        stage_reports = runner.run_stage(stage_name, runner.paths, **kwargs)
        reports.extend(stage_reports)
        if stage_reports[-1].cancelled:
            raise Cancelled(stage_name)

    return runner.paths, reports


class ArtifactHost(Host):
    """Host that dumps every completed stage through a DebugArtifactWriter."""

    def __init__(self, writer, width, height, base_img=None):
        self.writer = writer
        self.width = width
        self.height = height
        self.base_img = base_img

    def stage_done(self, stage_name, paths, success):
        if success:
            self.writer.save_stage(stage_name, paths, self.width, self.height, base_img=self.base_img)


@trace(label="run_pipeline")
def run_pipeline(input_path, out_dir, config=None, config_path=None, debug=False, stages=STAGES):
    """
    Trace an image file and write the results.

    Args:
        input_path: raster image file
        out_dir: output directory
        config: PipelineConfig object (optional)
        config_path: path to YAML configuration file (optional)
        debug: enable per-stage debug artifacts
        stages: stage names to run, in order

    Returns:
        TraceDocument with the final paths and the stage reports
    """
    tracer = get_tracer()

    if config is None:
        config = load_config(config_path)
    if debug:
        config.debug.enabled = True

    errors = validate_raster_path(input_path)
    if errors:
        raise ValueError("; ".join(errors))

    ensure_dir(out_dir)
    image, meta = load_raster(input_path)

    writer = DebugArtifactWriter(out_dir, enabled=config.debug.enabled, max_edge=config.debug.max_edge_scale)
    preview = image if image.ndim == 2 or image.shape[2] in (3, 4) else None
    host = ArtifactHost(writer, meta["width"], meta["height"], base_img=preview)

    with tracer.span("trace", module="pipeline"):
        paths, reports = trace_image(image, config=config, host=host, stages=stages)

    document = TraceDocument(
        source_path=meta["source_path"],
        width=meta["width"],
        height=meta["height"],
        paths=[path_to_record(p) for p in paths],
        reports=reports,
    )

    save_json(document, os.path.join(out_dir, "paths.json"))
    save_svg(paths_to_svg(paths, meta["width"], meta["height"]), os.path.join(out_dir, "final.svg"))

    tracer.event(f"Pipeline complete: {len(paths)} paths")
    return document
