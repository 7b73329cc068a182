"""
Tests for observation-table quality checks.

Critical tests for:
- Response support per family
- Missing columns and values
- Table size vs number of coefficients
"""

from datetime import datetime

import numpy as np
import pandas as pd
import pytest

from bayesreg.constants import Family, Severity
from bayesreg.data.quality import (
    ObservationTableChecker,
    QualityIssue,
    QualityReport,
    check_observation_table,
)


class TestQualityIssue:
    """Test QualityIssue dataclass."""

    def test_create_error_issue(self):
        issue = QualityIssue(
            issue_type="missing_values",
            severity=Severity.ERROR,
            column="y",
            description="2 missing values in 'y'",
            details={"missing_count": 2},
        )

        assert issue.severity == Severity.ERROR
        assert issue.column == "y"
        assert issue.details["missing_count"] == 2


class TestQualityReport:
    """Test QualityReport dataclass."""

    def test_empty_report_is_healthy(self):
        report = QualityReport(checked_at=datetime.now(), n_rows=10, n_columns=2, issues=[])

        assert report.is_healthy
        assert report.error_count == 0
        assert report.warning_count == 0

    def test_warnings_do_not_make_unhealthy(self):
        report = QualityReport(
            checked_at=datetime.now(), n_rows=10, n_columns=2,
            issues=[QualityIssue("constant_predictor", Severity.WARNING, "x", "constant")],
        )

        assert report.is_healthy
        assert report.warning_count == 1

    def test_errors_make_unhealthy(self):
        error = QualityIssue("missing_column", Severity.ERROR, "z", "missing")
        report = QualityReport(checked_at=datetime.now(), n_rows=10, n_columns=2, issues=[error])

        assert not report.is_healthy
        assert report.errors() == [error]


class TestObservationTableChecker:
    """Test individual checks."""

    @pytest.fixture
    def data(self):
        return pd.DataFrame({
            "x": np.arange(12, dtype=float),
            "const": np.ones(12),
            "y": np.arange(12) % 2,
            "counts": np.arange(12),
        })

    def test_missing_column(self, data):
        issues = ObservationTableChecker(data).check_required_columns(["x", "z"])

        assert len(issues) == 1
        assert issues[0].column == "z"
        assert issues[0].severity == Severity.ERROR

    def test_missing_values(self, data):
        data.loc[3, "x"] = np.nan
        issues = ObservationTableChecker(data).check_missing_values(["x", "y"])

        assert len(issues) == 1
        assert issues[0].details["missing_count"] == 1

    def test_constant_predictor_is_warning(self, data):
        issues = ObservationTableChecker(data).check_constant_predictors(["x", "const"])

        assert [i.column for i in issues] == ["const"]
        assert issues[0].severity == Severity.WARNING

    def test_bernoulli_accepts_zero_one(self, data):
        assert ObservationTableChecker(data).check_response("y", Family.BERNOULLI) == []

    def test_bernoulli_rejects_other_values(self, data):
        issues = ObservationTableChecker(data).check_response("x", Family.BERNOULLI)

        assert len(issues) == 1
        assert issues[0].issue_type == "response_support"

    def test_poisson_rejects_negative(self, data):
        data["counts"] = data["counts"] - 3
        issues = ObservationTableChecker(data).check_response("counts", "poisson")
        assert issues and issues[0].issue_type == "response_support"

    def test_poisson_rejects_fractions(self, data):
        data["counts"] = data["counts"] + 0.5
        assert ObservationTableChecker(data).check_response("counts", Family.NEGBINOMIAL)

    def test_non_numeric_response(self):
        data = pd.DataFrame({"y": ["a", "b"]})
        issues = ObservationTableChecker(data).check_response("y", Family.GAUSSIAN)
        assert issues[0].issue_type == "non_numeric_response"

    def test_size_checks(self, data):
        checker = ObservationTableChecker(data)

        assert checker.check_size(n_coefficients=2) == []
        assert checker.check_size(n_coefficients=20)[0].issue_type == "too_few_rows"

        small = ObservationTableChecker(data.head(5)).check_size(n_coefficients=2)
        assert small[0].severity == Severity.INFO

        empty = ObservationTableChecker(data.head(0)).check_size(n_coefficients=1)
        assert empty[0].issue_type == "empty_table"


class TestCheckObservationTable:
    """Test the combined report."""

    def test_healthy_table(self):
        data = pd.DataFrame({"x": np.linspace(0, 1, 20), "y": np.linspace(1, 2, 20)})
        report = check_observation_table(data, "y", ["x"], Family.GAUSSIAN, n_coefficients=2)

        assert report.is_healthy
        assert report.n_rows == 20
        assert report.n_columns == 2

    def test_collects_all_errors(self):
        data = pd.DataFrame({"x": [1.0, np.nan, 3.0], "y": [0, 1, 2]})
        report = check_observation_table(data, "y", ["x", "w"], Family.BERNOULLI, n_coefficients=4)

        types = {i.issue_type for i in report.errors()}
        assert types == {"missing_column", "missing_values", "response_support", "too_few_rows"}
