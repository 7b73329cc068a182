"""
Tests for formula parsing and design matrices.
"""

import numpy as np
import pandas as pd
import pytest

from bayesreg.bayesian.formula import (
    DesignMatrices,
    GroupTerm,
    SmoothTerm,
    clean_name,
    parse_formula,
)


class TestParseFormula:
    """Test formula parsing."""

    def test_simple(self):
        parsed = parse_formula("murder_rate ~ low_income + unemployment")

        assert parsed.response == "murder_rate"
        assert parsed.fixed == "low_income + unemployment"
        assert parsed.group_terms == ()
        assert parsed.smooth_terms == ()

    def test_group_terms(self):
        parsed = parse_formula("pitch ~ gender * context + (1 | subject) + (1 + x | sentence)")

        assert parsed.fixed == "gender * context"
        assert parsed.group_terms == (
            GroupTerm("1", "subject"),
            GroupTerm("1 + x", "sentence"),
        )

    def test_smooth_terms(self):
        parsed = parse_formula("y ~ z + s(x, k = 8)")

        assert parsed.fixed == "z"
        assert parsed.smooth_terms == (SmoothTerm("x", 8),)
        assert parsed.smooth_terms[0].name == "sx"

    def test_smooth_default_basis(self):
        parsed = parse_formula("y ~ s(x)")

        assert parsed.smooth_terms[0].k == 10
        # Intercept only once smooths are removed
        assert parsed.fixed == "1"

    def test_variables(self):
        parsed = parse_formula("y ~ C(context) + x + (1 + w | group) + s(t)")
        assert parsed.variables == ["y", "context", "x", "group", "w", "t"]

    def test_variables_skip_functions_and_keywords(self):
        parsed = parse_formula("y ~ np.log(x) + C(g, Treatment('a')) + cr(z, df=3)")
        assert parsed.variables == ["y", "x", "g", "z"]

    def test_str_round_trip(self):
        text = "y ~ x + (1 | g) + s(t, k=5)"
        assert parse_formula(str(parse_formula(text))) == parse_formula(text)

    @pytest.mark.parametrize("text", [
        "y x",
        "y ~ x ~ z",
        "log(y) ~ x",
        "y ~ ",
        "y ~ x + (1 | g) + (x | g)",
        "y ~ s(x, k = 2)",
        "y ~ x | g",
    ])
    def test_malformed(self, text):
        with pytest.raises(ValueError):
            parse_formula(text)


class TestCleanName:
    """Test patsy column label cleaning."""

    @pytest.mark.parametrize("label,expected", [
        ("x", "x"),
        ("context[T.pol]", "contextpol"),
        ("C(context)[T.pol]", "contextpol"),
        ("gender[T.M]:context[T.pol]", "genderM_contextpol"),
        ("I(x ** 2)", "I_x_2"),
    ])
    def test_labels(self, label, expected):
        assert clean_name(label) == expected


class TestDesignMatrices:
    """Test design construction."""

    @pytest.fixture
    def data(self):
        rng = np.random.default_rng(0)
        return pd.DataFrame({
            "y": rng.normal(size=30),
            "x": np.linspace(0, 1, 30),
            "context": ["inf", "pol"] * 15,
            "group": np.repeat(["a", "b", "c"], 10),
        })

    def test_fixed_part(self, data):
        design = DesignMatrices.from_formula("y ~ x + context", data)

        assert design.has_intercept
        assert design.coefficient_names == ["contextpol", "x"]
        assert design.n_obs == 30
        assert design.n_coefficients == 3
        np.testing.assert_allclose(design.fixed_means, design.fixed.mean().to_numpy())
        np.testing.assert_allclose(design.response, data["y"])

    def test_no_intercept(self, data):
        design = DesignMatrices.from_formula("y ~ 0 + x", data)

        assert not design.has_intercept
        np.testing.assert_allclose(design.fixed_means, [0.0])

    def test_group_design(self, data):
        design = DesignMatrices.from_formula("y ~ x + (1 + x | group)", data)
        group = design.groups["group"]

        assert group.levels == ["a", "b", "c"]
        assert group.terms == ["Intercept", "x"]
        assert group.matrix.shape == (30, 2)
        assert list(group.index[:3]) == [0, 0, 0]
        assert group.index[-1] == 2

    def test_smooth_design(self, data):
        design = DesignMatrices.from_formula("y ~ s(x, k = 5)", data)
        smooth = design.smooths["sx"]

        assert smooth.basis.shape == (30, 4)
        # centred basis
        np.testing.assert_allclose(smooth.basis.mean(axis=0), 0.0, atol=1e-8)
        assert design.n_coefficients == 1 + 4

    def test_missing_columns(self, data):
        with pytest.raises(ValueError, match="Response"):
            DesignMatrices.from_formula("outcome ~ x", data)
        with pytest.raises(ValueError, match="Grouping"):
            DesignMatrices.from_formula("y ~ x + (1 | school)", data)

    def test_transform_keeps_coding(self, data):
        design = DesignMatrices.from_formula("y ~ x + context + (1 | group)", data)
        newdata = pd.DataFrame({"x": [0.5], "context": ["pol"], "group": ["b"]})

        new = design.transform(newdata)

        assert new.coefficient_names == design.coefficient_names
        assert new.fixed.iloc[0].to_dict() == {"contextpol": 1.0, "x": 0.5}
        assert new.groups["group"].index.tolist() == [1]
        assert new.response is None

    def test_transform_new_levels(self, data):
        design = DesignMatrices.from_formula("y ~ x + (1 | group)", data)
        newdata = pd.DataFrame({"x": [0.5, 0.1], "group": ["z", "a"]})

        with pytest.raises(ValueError, match="allow_new_levels"):
            design.transform(newdata)

        new = design.transform(newdata, allow_new_levels=True)
        assert new.groups["group"].index.tolist() == [-1, 0]
