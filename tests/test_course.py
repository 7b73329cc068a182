"""
Tests for the chapter registry and chapter results.
"""

from unittest.mock import patch

import numpy as np
import pandas as pd
import pytest

from bayesreg.bayesian import SamplerConfig
from bayesreg.bayesian.diagnostics import Diagnostics
from bayesreg.config import settings
from bayesreg.course import (
    Chapter,
    ChapterResult,
    Exercise,
    Section,
    get_chapter,
    list_chapters,
    run_chapter,
    solve_exercise,
)
from bayesreg.course import registry
from bayesreg.course.models import jsonable, table_records
from bayesreg.plotting import plot_posterior_density


def make_diagnostics(healthy: bool = True) -> Diagnostics:
    return Diagnostics(
        n_divergences=0 if healthy else 3,
        max_rhat=1.001 if healthy else 1.2,
        min_ess_bulk=1000.0 if healthy else 50.0,
        min_ess_tail=900.0,
        n_rhat_issues=0 if healthy else 1,
        n_ess_issues=0 if healthy else 1,
        n_draws=1000,
        n_chains=4,
    )


def toy_run(sampler: SamplerConfig) -> ChapterResult:
    result = ChapterResult(chapter_id="toy", sampler=sampler)
    result.summaries["m"] = pd.DataFrame({"mean": [1.0, np.nan]}, index=["b_Intercept", "b_x"])
    result.diagnostics["m"] = make_diagnostics(healthy=False)
    result.figures["density"] = plot_posterior_density(np.random.default_rng(0).normal(size=100), "b_x")
    result.values["slope_mean"] = np.float64(1.5)
    return result


TOY = Chapter(
    id="toy",
    number=99,
    title="Toy",
    summary="A chapter for tests.",
    sections=[Section(title="Only", body="Text.")],
    exercises=[
        Exercise(id="99.1", prompt="Double it.", solution_text="Twice the slope.",
                 solution=lambda result: 2 * result.values["slope_mean"]),
        Exercise(id="99.2", prompt="Think.", solution_text="No computation."),
    ],
    run=toy_run,
)


class TestChapterList:
    """Test the registered chapters."""

    def test_nine_chapters_in_order(self):
        chapters = list_chapters()

        assert len(chapters) == 9
        assert [c.number for c in chapters] == list(range(1, 10))
        assert len({c.id for c in chapters}) == 9

    def test_every_chapter_has_prose_and_exercises(self):
        for chapter in list_chapters():
            assert chapter.sections, chapter.id
            assert chapter.exercises, chapter.id
            assert all(e.solution is not None for e in chapter.exercises), chapter.id

    def test_lookup_by_id_and_number(self):
        assert get_chapter("causal-inference").number == 7
        assert get_chapter("1").id == "linear-regression"

    def test_unknown_chapter(self):
        with pytest.raises(KeyError):
            get_chapter("quantum-regression")

    def test_to_dict_has_no_callables(self):
        as_dict = get_chapter("linear-regression").to_dict()

        assert "run" not in as_dict
        assert all("solution" not in e for e in as_dict["exercises"])
        assert as_dict["exercises"][0]["solution_text"]


class TestChapterResult:
    """Test result bookkeeping."""

    def test_health_banner(self):
        result = ChapterResult(chapter_id="x")
        result.diagnostics["good"] = make_diagnostics()
        assert result.is_healthy
        assert result.health_banner() == {"is_healthy": True, "problems": {}}

        result.diagnostics["bad"] = make_diagnostics(healthy=False)
        banner = result.health_banner()

        assert not result.is_healthy
        assert list(banner["problems"]) == ["bad"]
        assert any("divergent" in m for m in banner["problems"]["bad"])

    def test_to_dict_is_json_ready(self):
        result = toy_run(SamplerConfig.quick())
        as_dict = result.to_dict()

        assert as_dict["summaries"]["m"] == [
            {"parameter": "b_Intercept", "mean": 1.0},
            {"parameter": "b_x", "mean": None},
        ]
        assert as_dict["values"]["slope_mean"] == 1.5
        assert isinstance(as_dict["values"]["slope_mean"], float)
        assert as_dict["figures"] == ["density"]
        assert as_dict["sampler"]["chains"] == 1

    def test_jsonable(self):
        value = {"a": np.arange(3), "b": (np.float32(0.5), float("inf")), 1: np.int64(2)}
        assert jsonable(value) == {"a": [0, 1, 2], "b": [0.5, None], "1": 2}

    def test_table_records_index_name(self):
        table = pd.DataFrame({"elpd": [-10.0]}, index=["m1"])
        assert table_records(table, index_name="model") == [{"model": "m1", "elpd": -10.0}]


class TestRunChapter:
    """Test running chapters through the registry."""

    @pytest.fixture(autouse=True)
    def toy_registry(self):
        with patch.dict(registry.CHAPTERS, {"toy": TOY}):
            yield

    def test_run(self):
        result = run_chapter("toy", sampler=SamplerConfig.quick())

        assert result.chapter_id == "toy"
        assert not result.is_healthy

    def test_run_by_number(self):
        assert run_chapter("99").chapter_id == "toy"

    def test_save_figures(self, monkeypatch, tmp_path):
        monkeypatch.setattr(settings, "figures_dir", tmp_path)

        run_chapter("toy", save_figures=True)

        assert (tmp_path / "99_toy_density.html").exists()

    def test_solve_exercise(self):
        result = run_chapter("toy")
        assert solve_exercise("toy", "99.1", result) == 3.0

    def test_exercise_without_solution(self):
        result = run_chapter("toy")
        with pytest.raises(ValueError):
            solve_exercise("toy", "99.2", result)

    def test_unknown_exercise(self):
        with pytest.raises(KeyError):
            solve_exercise("toy", "1.1", ChapterResult(chapter_id="toy"))


@pytest.mark.slow
class TestChapterRuns:
    """Run real chapters end to end."""

    @pytest.mark.parametrize("chapter", list_chapters(), ids=lambda c: c.id)
    def test_chapter_runs_and_solves(self, chapter):
        pytest.importorskip("pymc")

        result = run_chapter(chapter.id, sampler=SamplerConfig.quick(random_seed=1))

        assert result.chapter_id == chapter.id
        assert result.values
        assert result.to_dict()["health"]["is_healthy"] in {True, False}
        for exercise in chapter.exercises:
            assert solve_exercise(chapter.id, exercise.id, result) is not None, exercise.id

    def test_linear_regression_chapter(self):
        pytest.importorskip("pymc")

        result = run_chapter("linear-regression", sampler=SamplerConfig.quick(random_seed=1))

        assert "simple" in result.models
        assert result.values["slope_mean"] > 0
        assert 0 < result.values["bayes_r2_mean"] < 1
        assert solve_exercise("linear-regression", "1.2", result) is not None
