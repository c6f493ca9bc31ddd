"""
rasterizer.py – Chart Rasterizer Bridge
========================================
The exported document cannot embed interactive charts, so every chartable
scale block is painted off-screen and captured as a PNG.

Lifecycle
---------
  mount(results)       register one chart per chartable ScaleResult
                       (nothing is painted yet)
  await capture(id)    paint the chart, wait for its first paint, hand the
                       surface to the rasterizer, release the surface
  unmount()            forget every registered chart

Capture is lazy and serialized: paints run on a single dedicated worker
thread and an asyncio.Lock keeps at most one off-screen chart alive at a
time.  A paint that outlives its timeout keeps the worker busy; until it
finishes, later captures fail at once instead of starting a second paint.
Each chart is captured at most once per mount (the bytes, or the failure,
are remembered).  Every failure (timeout, busy worker, unknown block id,
rasterizer exception, empty image) surfaces as RasterizationError so the
exporter has one thing to catch.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from io import BytesIO
from typing import Any, Iterable, Optional, Protocol, Union

from matplotlib.backends.backend_agg import FigureCanvasAgg

from followup.charts import ChartSpec, chart_spec, matplotlib_radar
from followup.resolvers import ResolvedResult, ScaleResult

logger = logging.getLogger(__name__)


class RasterizationError(Exception):
    """A chart could not be turned into a bitmap."""


class Rasterizer(Protocol):
    """External collaborator: paints a chart and converts it to an image buffer."""

    def render(self, spec: ChartSpec) -> Any:
        """Mount the chart on an off-screen surface; return once first paint is done."""

    def capture(self, surface: Any) -> bytes:
        """Convert a painted surface to PNG bytes.  May raise."""

    def release(self, surface: Any) -> None:
        """Dispose of the off-screen surface."""


class MatplotlibRasterizer:
    """Default rasterizer: Agg canvas, PNG output."""

    def __init__(self, width_mm: float = 180, height_mm: float = 80, dpi: int = 150) -> None:
        self.width_mm = width_mm
        self.height_mm = height_mm
        self.dpi = dpi

    def render(self, spec: ChartSpec) -> FigureCanvasAgg:
        fig = matplotlib_radar(spec, self.width_mm, self.height_mm, self.dpi)
        canvas = FigureCanvasAgg(fig)
        canvas.draw()
        return canvas

    def capture(self, surface: FigureCanvasAgg) -> bytes:
        buf = BytesIO()
        surface.print_png(buf)
        return buf.getvalue()

    def release(self, surface: FigureCanvasAgg) -> None:
        surface.figure.clear()


class ChartRasterizerBridge:
    """Coordinates lazy, one-at-a-time chart captures for one export pass."""

    def __init__(self, rasterizer: Rasterizer, timeout_s: float = 10.0) -> None:
        self.rasterizer = rasterizer
        self.timeout_s = timeout_s
        self._specs: dict[str, ChartSpec] = {}
        self._outcomes: dict[str, Union[bytes, RasterizationError]] = {}
        self._lock: Optional[asyncio.Lock] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._inflight: Optional[Future] = None

    @property
    def busy(self) -> bool:
        """True while a previous paint is still running on the worker thread."""
        return self._inflight is not None and not self._inflight.done()

    @property
    def mounted_ids(self) -> list[str]:
        return list(self._specs)

    def mount(self, results: Iterable[ResolvedResult]) -> list[str]:
        """Register a chart for every chartable scale result; returns their block ids."""
        self.unmount()
        for result in results:
            if not isinstance(result, ScaleResult):
                continue
            spec = chart_spec(result)
            if spec is not None:
                self._specs[spec.block_id] = spec
        logger.debug("Mounted %d off-screen chart(s)", len(self._specs))
        return self.mounted_ids

    def unmount(self) -> None:
        self._specs.clear()
        self._outcomes.clear()
        if self._executor is not None:
            # a still-running paint finishes on its own; _inflight keeps tracking it
            self._executor.shutdown(wait=False)
            self._executor = None

    def _paint_and_capture(self, spec: ChartSpec) -> bytes:
        surface = self.rasterizer.render(spec)
        try:
            data = self.rasterizer.capture(surface)
        finally:
            self.rasterizer.release(surface)
        if not data:
            raise RasterizationError(f"Rasterizer returned an empty image for '{spec.block_id}'")
        return data

    async def capture(self, block_id: str) -> bytes:
        """PNG bytes of the chart mounted for *block_id*; raises RasterizationError."""
        spec = self._specs.get(block_id)
        if spec is None:
            raise RasterizationError(f"No chart mounted for block '{block_id}'")

        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            if block_id not in self._outcomes:
                self._outcomes[block_id] = await self._attempt(spec)
        outcome = self._outcomes[block_id]
        if isinstance(outcome, RasterizationError):
            raise outcome
        return outcome

    async def _attempt(self, spec: ChartSpec) -> Union[bytes, RasterizationError]:
        if self.busy:
            logger.warning("Chart capture for '%s' skipped: previous capture still running", spec.block_id)
            return RasterizationError(f"Capture of '{spec.block_id}' skipped: previous capture still running")
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="chart-capture")
        self._inflight = self._executor.submit(self._paint_and_capture, spec)
        try:
            return await asyncio.wait_for(asyncio.wrap_future(self._inflight), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            logger.warning("Chart capture for '%s' timed out after %.1fs", spec.block_id, self.timeout_s)
            return RasterizationError(f"Capture of '{spec.block_id}' timed out")
        except RasterizationError as exc:
            logger.warning("Chart capture for '%s' failed: %s", spec.block_id, exc)
            return exc
        except Exception as exc:
            logger.warning("Chart capture for '%s' failed: %s", spec.block_id, exc)
            error = RasterizationError(f"Capture of '{spec.block_id}' failed: {exc}")
            error.__cause__ = exc
            return error
