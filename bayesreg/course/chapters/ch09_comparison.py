"""Chapter 9: model comparison and hypothesis testing."""

from bayesreg.bayesian import RegressionModel, RegressionPriors, SamplerConfig
from bayesreg.course.models import Chapter, ChapterResult, Exercise, Section
from bayesreg.data import load_murder_data
from bayesreg.evaluation import (
    compare_models,
    point_null_interval_test,
    savage_dickey_bayes_factor,
)
from bayesreg.plotting import plot_prior_posterior

CHAPTER_ID = "model-comparison"

FORMULAS = {
    "low_income": "murder_rate ~ low_income",
    "unemployment": "murder_rate ~ unemployment",
    "both": "murder_rate ~ low_income + unemployment",
}

# Murder rate change per percentage point considered negligible
ROPE = (-1.0, 1.0)

SECTIONS = [
    Section(
        title="Predictive comparison",
        body=(
            "PSIS-LOO estimates how well each model predicts a new city from\n"
            "the others (expected log predictive density, elpd). Differences\n"
            "smaller than a couple of standard errors (`dse`) do not\n"
            "distinguish the models."
        ),
    ),
    Section(
        title="Bayes factors for point hypotheses",
        body=(
            "Is the effect of unemployment exactly zero? For nested models the\n"
            "Bayes factor BF01 equals the posterior density at zero divided by\n"
            "the prior density at zero (Savage-Dickey ratio). BF01 > 1 favours\n"
            "the null. It depends strongly on the prior: a vaguer prior puts\n"
            "less density at zero and so favours the null more."
        ),
    ),
    Section(
        title="Region of practical equivalence",
        body=(
            "Instead of a point null we can ask whether the effect is\n"
            f"practically zero, here within {ROPE}. If the 95% HDI lies outside\n"
            "the ROPE the null value is rejected, if it lies inside it is\n"
            "accepted, otherwise the data are undecided."
        ),
    ),
]


def run(sampler: SamplerConfig) -> ChapterResult:
    data = load_murder_data()
    result = ChapterResult(chapter_id=CHAPTER_ID, sampler=sampler)

    for key, formula in FORMULAS.items():
        model = RegressionModel(formula, data, sampler=sampler, name=key)
        model.fit()
        result.add_model(key, model)

    comparison = compare_models({key: result.models[key] for key in FORMULAS})
    result.summaries["loo"] = comparison.table

    both = result.models["both"]
    draws = both.draws()
    result.values.update({
        "best_model": comparison.best_model,
        "bf01_unemployment": savage_dickey_bayes_factor(both, "b_unemployment"),
        "bf01_low_income": savage_dickey_bayes_factor(both, "b_low_income"),
        "rope": list(ROPE),
        "rope_unemployment": point_null_interval_test(draws["b_unemployment"], ROPE).value,
        "rope_low_income": point_null_interval_test(draws["b_low_income"], ROPE).value,
    })

    result.figures["prior_posterior_unemployment"] = plot_prior_posterior(
        both.prior_draws()["b_unemployment"], draws["b_unemployment"], "b_unemployment"
    )
    return result


def _prior_sensitivity(result: ChapterResult):
    data = load_murder_data()
    factors = {}
    for sd in (1, 10, 100):
        model = RegressionModel(
            FORMULAS["both"], data,
            priors=RegressionPriors(b={"unemployment": f"normal(0, {sd})"}),
            sampler=result.sampler, name=f"prior_sd_{sd}",
        )
        model.fit()
        factors[str(sd)] = savage_dickey_bayes_factor(model, "b_unemployment")
    return factors


EXERCISES = [
    Exercise(
        id="9.1",
        prompt=(
            "Recompute BF01 for `b_unemployment` with priors normal(0, 1),\n"
            "normal(0, 10) and normal(0, 100). What happens?"
        ),
        solution_text=(
            "The posterior barely changes but the prior density at zero drops\n"
            "as the prior widens, so BF01 grows: vague priors favour the point\n"
            "null (the Jeffreys-Lindley paradox)."
        ),
        solution=_prior_sensitivity,
    ),
]

CHAPTER = Chapter(
    id=CHAPTER_ID,
    number=9,
    title="Model comparison and hypothesis testing",
    summary="LOO, Savage-Dickey Bayes factors and ROPE decisions.",
    sections=SECTIONS,
    exercises=EXERCISES,
    run=run,
)
