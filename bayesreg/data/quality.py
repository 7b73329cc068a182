"""
Data quality checks for observation tables.

Validates before a model is fitted:
- Required columns are present
- No missing values in model columns
- Response is compatible with the likelihood family
- Enough rows for the number of coefficients
- Constant predictors (warning) and tiny tables (info)
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

import numpy as np
import pandas as pd

from bayesreg.constants import Family, MIN_ROWS_WARNING, Severity


@dataclass
class QualityIssue:
    """Represents a data quality issue."""
    issue_type: str
    severity: Severity
    column: Optional[str]
    description: str
    details: Optional[dict] = None


@dataclass
class QualityReport:
    """Summary of data quality check results."""
    checked_at: datetime
    n_rows: int
    n_columns: int
    issues: list[QualityIssue] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return sum(1 for i in self.issues if i.severity == Severity.ERROR)

    @property
    def warning_count(self) -> int:
        return sum(1 for i in self.issues if i.severity == Severity.WARNING)

    @property
    def is_healthy(self) -> bool:
        return self.error_count == 0

    def errors(self) -> list[QualityIssue]:
        return [i for i in self.issues if i.severity == Severity.ERROR]


class ObservationTableChecker:
    """
    Runs quality checks on an observation table.
    """

    def __init__(self, data: pd.DataFrame):
        self.data = data

    def check_required_columns(self, columns: Iterable[str]) -> list[QualityIssue]:
        """Check that every column the model refers to exists."""
        missing = [c for c in columns if c not in self.data.columns]
        return [
            QualityIssue(
                issue_type="missing_column",
                severity=Severity.ERROR,
                column=column,
                description=f"Column {column!r} not found",
                details={"available": list(self.data.columns)},
            )
            for column in missing
        ]

    def check_missing_values(self, columns: Iterable[str]) -> list[QualityIssue]:
        """Check for NA values in model columns."""
        issues = []
        for column in columns:
            if column not in self.data.columns:
                continue
            n_missing = int(self.data[column].isna().sum())
            if n_missing > 0:
                issues.append(QualityIssue(
                    issue_type="missing_values",
                    severity=Severity.ERROR,
                    column=column,
                    description=f"{n_missing} missing values in {column!r}",
                    details={"missing_count": n_missing},
                ))
        return issues

    def check_constant_predictors(self, columns: Iterable[str]) -> list[QualityIssue]:
        """Predictors without variation cannot be estimated from the data."""
        issues = []
        for column in columns:
            if column not in self.data.columns:
                continue
            if self.data[column].nunique(dropna=True) <= 1:
                issues.append(QualityIssue(
                    issue_type="constant_predictor",
                    severity=Severity.WARNING,
                    column=column,
                    description=f"Predictor {column!r} takes a single value",
                ))
        return issues

    def check_response(self, response: str, family: Family | str) -> list[QualityIssue]:
        """Check the response values are in the support of the family."""
        family = Family(family)
        if response not in self.data.columns:
            return []

        y = self.data[response].dropna()
        if not pd.api.types.is_numeric_dtype(y):
            return [QualityIssue(
                issue_type="non_numeric_response",
                severity=Severity.ERROR,
                column=response,
                description=f"Response {response!r} is not numeric",
            )]

        values = y.to_numpy(dtype=float)
        if family == Family.BERNOULLI and not np.isin(values, [0, 1]).all():
            return [QualityIssue(
                issue_type="response_support",
                severity=Severity.ERROR,
                column=response,
                description="Bernoulli response must be coded 0/1",
                details={"unique_values": sorted(np.unique(values).tolist())[:10]},
            )]

        if family in {Family.POISSON, Family.NEGBINOMIAL}:
            if (values < 0).any() or not np.allclose(values, np.round(values)):
                return [QualityIssue(
                    issue_type="response_support",
                    severity=Severity.ERROR,
                    column=response,
                    description=f"{family.value} response must be non-negative integers",
                )]

        return []

    def check_size(self, n_coefficients: int) -> list[QualityIssue]:
        """Check there are enough rows for the coefficients."""
        n = len(self.data)
        if n == 0:
            return [QualityIssue(
                issue_type="empty_table",
                severity=Severity.ERROR,
                column=None,
                description="Observation table has no rows",
            )]
        if n < n_coefficients:
            return [QualityIssue(
                issue_type="too_few_rows",
                severity=Severity.ERROR,
                column=None,
                description=f"{n} rows for {n_coefficients} coefficients",
                details={"n_rows": n, "n_coefficients": n_coefficients},
            )]
        if n < MIN_ROWS_WARNING:
            return [QualityIssue(
                issue_type="small_table",
                severity=Severity.INFO,
                column=None,
                description=f"Only {n} rows; the prior will dominate",
            )]
        return []

    def run_all_checks(
        self,
        response: str,
        predictors: Iterable[str] = (),
        family: Family | str = Family.GAUSSIAN,
        n_coefficients: int = 1,
    ) -> QualityReport:
        """Run all quality checks and return report."""
        predictors = [p for p in predictors if p != response]
        columns = [response, *predictors]

        issues = []
        issues.extend(self.check_required_columns(columns))
        issues.extend(self.check_missing_values(columns))
        issues.extend(self.check_response(response, family))
        issues.extend(self.check_constant_predictors(predictors))
        issues.extend(self.check_size(n_coefficients))

        return QualityReport(
            checked_at=datetime.now(),
            n_rows=len(self.data),
            n_columns=len(self.data.columns),
            issues=issues,
        )


def check_observation_table(
    data: pd.DataFrame,
    response: str,
    predictors: Iterable[str] = (),
    family: Family | str = Family.GAUSSIAN,
    n_coefficients: int = 1,
) -> QualityReport:
    """Convenience function to run all quality checks."""
    checker = ObservationTableChecker(data)
    return checker.run_all_checks(
        response=response,
        predictors=predictors,
        family=family,
        n_coefficients=n_coefficients,
    )
