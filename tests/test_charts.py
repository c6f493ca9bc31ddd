"""
Tests for radar chart specs and figures (followup/charts.py).
"""
from factories import make_scale_block

from followup.charts import ChartSpec, chart_spec, matplotlib_radar, radar_figure
from followup.models import ScaleAnswer
from followup.resolvers import resolve


class TestChartSpec:
    def test_points_in_sub_question_order(self):
        spec = chart_spec(resolve(make_scale_block(), ScaleAnswer({"q1": 8, "q2": 3})))
        assert spec.labels == ["Energy", "Sleep"]
        assert spec.values == [8, 3]
        assert spec.block_id == "b-scale"

    def test_single_question_has_no_chart(self):
        result = resolve(make_scale_block(labels=("Pain",)), ScaleAnswer({"q1": 3}))
        assert chart_spec(result) is None

    def test_closed_polygon(self):
        spec = ChartSpec("b", "T", labels=["a", "b", "c"], values=[1, 2, 3])
        assert spec.closed() == (["a", "b", "c", "a"], [1, 2, 3, 1])
        assert ChartSpec("b", "T").closed() == ([], [])


class TestFigures:
    def test_plotly_radar(self):
        spec = ChartSpec("b", "Wellbeing", labels=["Energy", "Sleep"], values=[8, 3])
        fig = radar_figure(spec)
        trace = fig.data[0]
        assert list(trace.r) == [8, 3, 8]
        assert list(trace.theta) == ["Energy", "Sleep", "Energy"]
        assert list(fig.layout.polar.radialaxis.range) == [0, 10]

    def test_matplotlib_radar_sized_to_slot(self):
        spec = ChartSpec("b", "Wellbeing", labels=["Energy", "Sleep", "Stress"], values=[4, 7, 2])
        fig = matplotlib_radar(spec, width_mm=127, height_mm=50.8, dpi=100)
        width_in, height_in = fig.get_size_inches()
        assert round(width_in, 2) == 5.0
        assert round(height_in, 2) == 2.0
        assert fig.axes[0].get_ylim() == (0.0, 10.0)
