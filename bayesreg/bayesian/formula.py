"""
Model formulas.

Regression models are declared with an lme4/brms-style formula:

    murder_rate ~ low_income + unemployment
    pitch ~ gender * context + (1 | subject) + (1 | sentence)
    y ~ x + (1 + x | group)
    y ~ s(x, k = 8)

The population-level part is handed to patsy unchanged (interactions,
`C()`, `0 +` for no intercept). Group-level terms `(expr | group)` and
smooth terms `s(x, k=...)` are pulled out first and turned into index
arrays and spline bases.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
from patsy import build_design_matrices, dmatrix

from bayesreg.constants import DEFAULT_SMOOTH_BASIS_SIZE
from bayesreg.utils import get_logger

logger = get_logger("bayesian.formula")


_GROUP_TERM = re.compile(r"\(\s*([^()|]+?)\s*\|\s*([A-Za-z_][A-Za-z0-9_.]*)\s*\)")
_SMOOTH_TERM = re.compile(
    r"\bs\(\s*([A-Za-z_][A-Za-z0-9_.]*)\s*(?:,\s*k\s*=\s*(\d+)\s*)?\)"
)
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")
# Whole names that are neither called nor used as keyword arguments
_COLUMN = re.compile(r"(?<![A-Za-z0-9_.])[A-Za-z_][A-Za-z0-9_.]*(?![A-Za-z0-9_.]|\s*\(|\s*=(?!=))")
_QUOTED = re.compile(r"'[^']*'|\"[^\"]*\"")


def _column_names(expr: str) -> List[str]:
    """Names in a patsy expression that refer to data columns."""
    return _COLUMN.findall(_QUOTED.sub("", expr))


# =============================================================================
# Parsed formula
# =============================================================================

@dataclass(frozen=True)
class GroupTerm:
    """A group-level term `(expr | group)`."""

    expr: str
    group: str

    def __str__(self) -> str:
        return f"({self.expr} | {self.group})"


@dataclass(frozen=True)
class SmoothTerm:
    """A penalised smooth `s(variable, k=...)`."""

    variable: str
    k: int = DEFAULT_SMOOTH_BASIS_SIZE

    @property
    def name(self) -> str:
        return f"s{self.variable}"

    @property
    def patsy_term(self) -> str:
        # Centering removes one degree of freedom, as in mgcv
        return f"cr({self.variable}, df={self.k - 1}, constraints='center')"

    def __str__(self) -> str:
        return f"s({self.variable}, k={self.k})"


@dataclass(frozen=True)
class ParsedFormula:
    """Formula split into response, population-level, group-level and smooth parts."""

    response: str
    fixed: str
    group_terms: tuple = ()
    smooth_terms: tuple = ()

    @property
    def variables(self) -> List[str]:
        """Data columns the formula refers to (best effort for patsy expressions)."""
        names = [self.response]
        names.extend(_column_names(self.fixed))
        for term in self.group_terms:
            names.append(term.group)
            names.extend(_column_names(term.expr))
        for term in self.smooth_terms:
            names.append(term.variable)
        return list(dict.fromkeys(names))

    def __str__(self) -> str:
        parts = [self.fixed]
        parts.extend(str(t) for t in self.group_terms)
        parts.extend(str(t) for t in self.smooth_terms)
        return f"{self.response} ~ {' + '.join(parts)}"


def _split_top_level(text: str, sep: str = "+") -> List[str]:
    """Split on `sep` outside parentheses."""
    pieces, depth, current = [], 0, []
    for char in text:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        if char == sep and depth == 0:
            pieces.append("".join(current))
            current = []
        else:
            current.append(char)
    pieces.append("".join(current))
    return pieces


def parse_formula(text: str) -> ParsedFormula:
    """
    Parse a model formula.

    Raises:
        ValueError: missing/duplicated `~`, empty response, duplicated
            grouping factor, or a smooth basis smaller than 3
    """
    if text.count("~") != 1:
        raise ValueError(f"Formula must contain exactly one '~': {text!r}")

    lhs, rhs = (part.strip() for part in text.split("~"))
    if not _IDENTIFIER.match(lhs):
        raise ValueError(f"Response must be a single column name, got {lhs!r}")
    if not rhs:
        raise ValueError(f"Formula has no predictors: {text!r}")

    group_terms = []
    for expr, group in _GROUP_TERM.findall(rhs):
        if any(t.group == group for t in group_terms):
            raise ValueError(f"Grouping factor {group!r} appears in more than one term")
        group_terms.append(GroupTerm(expr=" ".join(expr.split()), group=group))
    rhs = _GROUP_TERM.sub("", rhs)

    smooth_terms = []
    for variable, k in _SMOOTH_TERM.findall(rhs):
        k = int(k) if k else DEFAULT_SMOOTH_BASIS_SIZE
        if k < 3:
            raise ValueError(f"Smooth basis size must be at least 3, got k={k}")
        smooth_terms.append(SmoothTerm(variable=variable, k=k))
    rhs = _SMOOTH_TERM.sub("", rhs)

    pieces = [p.strip() for p in _split_top_level(rhs)]
    pieces = [p for p in pieces if p]
    fixed = " + ".join(pieces) if pieces else "1"

    if "|" in fixed:
        raise ValueError(f"Could not parse group-level term in {text!r}")

    return ParsedFormula(
        response=lhs,
        fixed=fixed,
        group_terms=tuple(group_terms),
        smooth_terms=tuple(smooth_terms),
    )


# =============================================================================
# Design matrices
# =============================================================================

def clean_name(column: str) -> str:
    """
    Turn a patsy column label into an identifier.

    `C(context)[T.pol]` -> `contextpol`, `gender[T.M]:context[T.pol]` ->
    `genderM_contextpol`, `I(x ** 2)` -> `I_x_2`.
    """
    name = re.sub(r"C\(\s*([^,)]+)[^)]*\)", r"\1", column)
    name = re.sub(r"\[T\.([^\]]+)\]", r"\1", name)
    name = re.sub(r"\[([^\]]+)\]", r"\1", name)
    name = name.replace(":", "_")
    name = re.sub(r"[^A-Za-z0-9_]+", "_", name)
    return name.strip("_")


def _clean_columns(columns: List[str]) -> List[str]:
    cleaned = [clean_name(c) for c in columns]
    if len(set(cleaned)) != len(cleaned):
        # fall back to positional suffixes rather than silently merging
        seen: Dict[str, int] = {}
        unique = []
        for name in cleaned:
            seen[name] = seen.get(name, 0) + 1
            unique.append(name if seen[name] == 1 else f"{name}_{seen[name]}")
        cleaned = unique
    return cleaned


@dataclass
class GroupDesign:
    """Design for one grouping factor."""

    group: str
    levels: List[str]
    index: np.ndarray           # (n,) level index per row, -1 for unseen levels
    matrix: np.ndarray          # (n, n_terms)
    terms: List[str]            # e.g. ["Intercept", "x"]
    design_info: object = None

    @property
    def n_levels(self) -> int:
        return len(self.levels)


@dataclass
class SmoothDesign:
    """Spline basis for one smooth term."""

    term: SmoothTerm
    basis: np.ndarray           # (n, k - 1)
    design_info: object = None


@dataclass
class DesignMatrices:
    """All matrices needed to build a regression model from a formula."""

    formula: ParsedFormula
    response: Optional[np.ndarray]
    fixed: pd.DataFrame                      # population-level predictors, no intercept column
    has_intercept: bool
    fixed_means: np.ndarray
    groups: Dict[str, GroupDesign] = field(default_factory=dict)
    smooths: Dict[str, SmoothDesign] = field(default_factory=dict)
    fixed_design_info: object = None

    @property
    def n_obs(self) -> int:
        return len(self.fixed)

    @property
    def coefficient_names(self) -> List[str]:
        return list(self.fixed.columns)

    @property
    def n_coefficients(self) -> int:
        """Number of population-level and smooth coefficients (incl. intercept)."""
        n = len(self.fixed.columns) + int(self.has_intercept)
        return n + sum(s.basis.shape[1] for s in self.smooths.values())

    @classmethod
    def from_formula(cls, formula: str | ParsedFormula, data: pd.DataFrame) -> "DesignMatrices":
        """Build design matrices for fitting."""
        parsed = parse_formula(formula) if isinstance(formula, str) else formula

        if parsed.response not in data.columns:
            raise ValueError(f"Response column {parsed.response!r} not in data")

        fixed_dm = dmatrix(parsed.fixed, data, return_type="dataframe", NA_action="raise")
        has_intercept = "Intercept" in fixed_dm.columns
        fixed = fixed_dm.drop(columns=["Intercept"]) if has_intercept else fixed_dm
        fixed = fixed.set_axis(_clean_columns(list(fixed.columns)), axis=1)
        fixed_means = fixed.mean(axis=0).to_numpy() if has_intercept else np.zeros(fixed.shape[1])

        groups = {}
        for term in parsed.group_terms:
            if term.group not in data.columns:
                raise ValueError(f"Grouping column {term.group!r} not in data")
            group_dm = dmatrix(term.expr, data, return_type="dataframe", NA_action="raise")
            levels = [str(level) for level in pd.unique(data[term.group].astype(str))]
            levels = sorted(levels)
            lookup = {level: i for i, level in enumerate(levels)}
            index = data[term.group].astype(str).map(lookup).to_numpy(dtype=int)
            groups[term.group] = GroupDesign(
                group=term.group,
                levels=levels,
                index=index,
                matrix=group_dm.to_numpy(),
                terms=_clean_columns(list(group_dm.columns)),
                design_info=group_dm.design_info,
            )

        smooths = {}
        for term in parsed.smooth_terms:
            basis = dmatrix(f"0 + {term.patsy_term}", data, return_type="dataframe")
            smooths[term.name] = SmoothDesign(
                term=term,
                basis=basis.to_numpy(),
                design_info=basis.design_info,
            )

        logger.debug(
            f"Design for '{parsed}': {len(fixed.columns)} predictors, "
            f"{len(groups)} grouping factors, {len(smooths)} smooths"
        )

        return cls(
            formula=parsed,
            response=data[parsed.response].to_numpy(dtype=float),
            fixed=fixed,
            has_intercept=has_intercept,
            fixed_means=fixed_means,
            groups=groups,
            smooths=smooths,
            fixed_design_info=fixed_dm.design_info,
        )

    def transform(self, newdata: pd.DataFrame, allow_new_levels: bool = False) -> "DesignMatrices":
        """
        Apply the same coding (factor levels, spline knots) to new data.

        Rows whose grouping level was not seen during fitting get index -1,
        meaning "population-level prediction"; this requires
        `allow_new_levels=True`.
        """
        (fixed_dm,) = build_design_matrices(
            [self.fixed_design_info], newdata, return_type="dataframe"
        )
        fixed = fixed_dm.drop(columns=["Intercept"]) if self.has_intercept else fixed_dm
        fixed = fixed.set_axis(list(self.fixed.columns), axis=1)

        groups = {}
        for name, design in self.groups.items():
            (group_dm,) = build_design_matrices(
                [design.design_info], newdata, return_type="dataframe"
            )
            lookup = {level: i for i, level in enumerate(design.levels)}
            index = newdata[name].astype(str).map(lookup).fillna(-1).to_numpy(dtype=int)
            if (index < 0).any() and not allow_new_levels:
                unseen = sorted(set(newdata[name].astype(str)) - set(design.levels))
                raise ValueError(
                    f"New levels {unseen} of {name!r}; pass allow_new_levels=True"
                )
            groups[name] = GroupDesign(
                group=name,
                levels=design.levels,
                index=index,
                matrix=group_dm.to_numpy(),
                terms=design.terms,
                design_info=design.design_info,
            )

        smooths = {}
        for name, design in self.smooths.items():
            (basis,) = build_design_matrices(
                [design.design_info], newdata, return_type="dataframe"
            )
            smooths[name] = SmoothDesign(
                term=design.term,
                basis=basis.to_numpy(),
                design_info=design.design_info,
            )

        response = None
        if self.formula.response in newdata.columns:
            response = newdata[self.formula.response].to_numpy(dtype=float)

        return DesignMatrices(
            formula=self.formula,
            response=response,
            fixed=fixed,
            has_intercept=self.has_intercept,
            fixed_means=self.fixed_means,
            groups=groups,
            smooths=smooths,
            fixed_design_info=self.fixed_design_info,
        )
