"""
Tests for the course API.

Chapter runs are replaced by a hand-made result so no sampling happens.
"""

from datetime import datetime
from unittest.mock import patch

import numpy as np
import pandas as pd
import pytest
from fastapi.testclient import TestClient

from bayesreg.api import main
from bayesreg.api.main import app
from bayesreg.bayesian import SamplerConfig
from bayesreg.bayesian.diagnostics import Diagnostics
from bayesreg.course import ChapterResult


@pytest.fixture
def client():
    main._results.clear()
    yield TestClient(app)
    main._results.clear()


@pytest.fixture
def fake_result():
    result = ChapterResult(chapter_id="linear-regression")
    result.summaries["simple"] = pd.DataFrame(
        {"mean": [-29.9, 2.6], "lower": [-45.0, 1.8], "upper": [-15.0, 3.4]},
        index=["b_Intercept", "b_low_income"],
    )
    result.diagnostics["simple"] = Diagnostics(
        n_divergences=0, max_rhat=float("nan"), min_ess_bulk=250.0, min_ess_tail=300.0,
        n_rhat_issues=0, n_ess_issues=2, n_draws=300, n_chains=1,
    )
    result.values["slope_mean"] = np.float64(2.6)
    return result


class TestRoot:
    """Test service endpoints."""

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert "version" in data

    def test_health(self, client):
        data = client.get("/api/v1/health").json()

        assert data["chapters"] == 9
        assert data["cached_results"] == []
        assert data["status"] in {"ok", "degraded"}


class TestChapters:
    """Test chapter prose endpoints."""

    def test_list(self, client):
        data = client.get("/api/v1/chapters").json()

        assert len(data) == 9
        assert data[0]["id"] == "linear-regression"
        assert data[0]["n_exercises"] >= 1

    def test_detail(self, client):
        data = client.get("/api/v1/chapters/causal-inference").json()

        assert data["number"] == 7
        assert data["sections"]
        assert {"id", "prompt", "solution_text"} == set(data["exercises"][0])

    def test_detail_by_number(self, client):
        assert client.get("/api/v1/chapters/4").json()["id"] == "categorical-predictors"

    def test_unknown_chapter(self, client):
        response = client.get("/api/v1/chapters/astrology")
        assert response.status_code == 404


class TestResults:
    """Test chapter results."""

    def test_results(self, client, fake_result):
        with patch("bayesreg.api.main.run_chapter", return_value=fake_result) as run:
            response = client.get("/api/v1/chapters/linear-regression/results?quick=true")

        assert response.status_code == 200
        data = response.json()
        assert data["chapter_id"] == "linear-regression"
        assert data["health"]["is_healthy"] is False
        assert data["summaries"]["simple"][1]["parameter"] == "b_low_income"
        assert data["values"]["slope_mean"] == 2.6

        diagnostics = data["diagnostics"]["simple"]
        assert diagnostics["max_rhat"] is None
        assert diagnostics["min_ess"] == 250
        assert "ESS" in diagnostics["warning"]

        assert run.call_args.kwargs["sampler"].chains == 1

    def test_results_cached(self, client, fake_result):
        with patch("bayesreg.api.main.run_chapter", return_value=fake_result) as run:
            client.get("/api/v1/chapters/linear-regression/results")
            client.get("/api/v1/chapters/linear-regression/results")
            assert run.call_count == 1

            client.get("/api/v1/chapters/linear-regression/results?refresh=true")
            assert run.call_count == 2

        assert client.get("/api/v1/health").json()["cached_results"] == ["linear-regression"]

    def test_quick_and_full_runs_cached_apart(self, client, fake_result):
        full_result = ChapterResult(chapter_id="linear-regression", sampler=SamplerConfig())
        fake_result.sampler = SamplerConfig.quick()

        with patch("bayesreg.api.main.run_chapter", side_effect=[fake_result, full_result]) as run:
            quick = client.get("/api/v1/chapters/linear-regression/results?quick=true").json()
            full = client.get("/api/v1/chapters/linear-regression/results").json()
            client.get("/api/v1/chapters/linear-regression/results?quick=true")

        assert run.call_count == 2
        assert quick["sampler"]["chains"] == 1
        assert full["sampler"]["chains"] == SamplerConfig().chains
        assert client.get("/api/v1/health").json()["cached_results"] == ["linear-regression"]

    def test_computed_at_is_run_time(self, client, fake_result):
        fake_result.computed_at = datetime(2024, 1, 2, 3, 4, 5)

        with patch("bayesreg.api.main.run_chapter", return_value=fake_result):
            data = client.get("/api/v1/chapters/linear-regression/results").json()

        assert data["computed_at"] == "2024-01-02T03:04:05"

    def test_failed_run(self, client):
        with patch("bayesreg.api.main.run_chapter", side_effect=ValueError("Data not suitable")):
            response = client.get("/api/v1/chapters/linear-regression/results")

        assert response.status_code == 422
        assert "Data not suitable" in response.json()["detail"]

    def test_results_unknown_chapter(self, client):
        assert client.get("/api/v1/chapters/astrology/results").status_code == 404


class TestSolutions:
    """Test exercise solutions."""

    def test_solution(self, client, fake_result):
        with patch("bayesreg.api.main.run_chapter", return_value=fake_result), \
                patch("bayesreg.api.main.solve_exercise", return_value={"mean": np.float64(22.1)}):
            response = client.get("/api/v1/chapters/linear-regression/exercises/1.2/solution")

        assert response.status_code == 200
        data = response.json()
        assert data["exercise_id"] == "1.2"
        assert data["value"] == {"mean": 22.1}
        assert data["solution_text"]

    def test_unknown_exercise(self, client):
        response = client.get("/api/v1/chapters/linear-regression/exercises/9.9/solution")
        assert response.status_code == 404
