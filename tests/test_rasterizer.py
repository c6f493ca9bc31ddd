"""
Tests for the chart rasterizer bridge (followup/rasterizer.py).
Async captures are driven with asyncio.run so no plugin is required.
"""
import asyncio

import pytest
from factories import (
    FailingRasterizer,
    HangingRasterizer,
    OkRasterizer,
    SlowRasterizer,
    make_scale_block,
    make_template,
    make_followup,
)

from followup.charts import ChartSpec
from followup.models import FreeTextBlock, ScaleAnswer
from followup.rasterizer import ChartRasterizerBridge, MatplotlibRasterizer, RasterizationError
from followup.resolvers import resolve_all

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


@pytest.fixture
def results():
    template = make_template(
        make_scale_block("b-chart"),
        make_scale_block("b-single", labels=("Pain",)),
        FreeTextBlock(id="b-text"),
    )
    return resolve_all(template, make_followup(template, {"b-chart": ScaleAnswer({"q1": 8, "q2": 3})}))


class TestMount:
    def test_only_chartable_scales_are_mounted(self, results):
        bridge = ChartRasterizerBridge(OkRasterizer())
        assert bridge.mount(results) == ["b-chart"]

    def test_mount_paints_nothing(self, results):
        rasterizer = OkRasterizer()
        ChartRasterizerBridge(rasterizer).mount(results)
        assert rasterizer.rendered == []

    def test_unmount_forgets_charts(self, results):
        bridge = ChartRasterizerBridge(OkRasterizer())
        bridge.mount(results)
        bridge.unmount()
        assert bridge.mounted_ids == []
        with pytest.raises(RasterizationError):
            asyncio.run(bridge.capture("b-chart"))


class TestCapture:
    def test_ok_capture_releases_surface(self, results):
        rasterizer = OkRasterizer()
        bridge = ChartRasterizerBridge(rasterizer)
        bridge.mount(results)
        data = asyncio.run(bridge.capture("b-chart"))
        assert data.startswith(PNG_SIGNATURE)
        assert rasterizer.rendered[0].values == [8, 3]
        assert rasterizer.released == 1

    def test_captured_once_per_mount(self, results):
        rasterizer = OkRasterizer()
        bridge = ChartRasterizerBridge(rasterizer)
        bridge.mount(results)

        async def twice():
            return await asyncio.gather(bridge.capture("b-chart"), bridge.capture("b-chart"))

        first, second = asyncio.run(twice())
        assert first == second
        assert len(rasterizer.rendered) == 1

    def test_unknown_block_id(self, results):
        bridge = ChartRasterizerBridge(OkRasterizer())
        bridge.mount(results)
        with pytest.raises(RasterizationError, match="b-single"):
            asyncio.run(bridge.capture("b-single"))

    def test_rasterizer_exception_wrapped(self, results):
        rasterizer = FailingRasterizer()
        bridge = ChartRasterizerBridge(rasterizer)
        bridge.mount(results)
        with pytest.raises(RasterizationError) as info:
            asyncio.run(bridge.capture("b-chart"))
        assert isinstance(info.value.__cause__, RuntimeError)
        assert rasterizer.released == 1

    def test_failure_remembered(self, results):
        rasterizer = FailingRasterizer()
        bridge = ChartRasterizerBridge(rasterizer)
        bridge.mount(results)

        async def twice():
            for _ in range(2):
                with pytest.raises(RasterizationError):
                    await bridge.capture("b-chart")

        asyncio.run(twice())
        assert len(rasterizer.rendered) == 1

    def test_timeout(self, results):
        bridge = ChartRasterizerBridge(HangingRasterizer(delay_s=0.5), timeout_s=0.05)
        bridge.mount(results)
        with pytest.raises(RasterizationError, match="timed out"):
            asyncio.run(bridge.capture("b-chart"))

    def test_timed_out_paint_blocks_next_capture(self):
        template = make_template(make_scale_block("s1"), make_scale_block("s2"))
        answers = {b: ScaleAnswer({"q1": 5, "q2": 6}) for b in ("s1", "s2")}
        rasterizer = SlowRasterizer(delay_s=0.5)
        bridge = ChartRasterizerBridge(rasterizer, timeout_s=0.05)
        bridge.mount(resolve_all(template, make_followup(template, answers)))

        async def both():
            with pytest.raises(RasterizationError, match="timed out"):
                await bridge.capture("s1")
            assert bridge.busy
            with pytest.raises(RasterizationError, match="still running"):
                await bridge.capture("s2")

        asyncio.run(both())
        assert rasterizer.peak == 1

    def test_empty_image(self, results):
        class EmptyRasterizer(OkRasterizer):
            def capture(self, surface):
                return b""

        bridge = ChartRasterizerBridge(EmptyRasterizer())
        bridge.mount(results)
        with pytest.raises(RasterizationError, match="empty image"):
            asyncio.run(bridge.capture("b-chart"))


class TestMatplotlibRasterizer:
    def test_paints_png(self):
        rasterizer = MatplotlibRasterizer(width_mm=60, height_mm=40, dpi=72)
        surface = rasterizer.render(ChartSpec("b", "T", labels=["a", "b", "c"], values=[1, 5, 9]))
        try:
            data = rasterizer.capture(surface)
        finally:
            rasterizer.release(surface)
        assert data.startswith(PNG_SIGNATURE)
