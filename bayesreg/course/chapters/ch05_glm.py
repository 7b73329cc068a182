"""Chapter 5: generalized linear models."""

import numpy as np
import pandas as pd

from bayesreg.bayesian import RegressionModel, SamplerConfig, hdi
from bayesreg.course.models import Chapter, ChapterResult, Exercise, Section
from bayesreg.data import simulate_logistic, simulate_poisson
from bayesreg.evaluation import compare_models, posterior_predictive_pvalue
from bayesreg.plotting import plot_conditional_effect

CHAPTER_ID = "generalized-linear-models"

LOGISTIC_TRUTH = {"intercept": -0.5, "slope": 1.5}
POISSON_TRUTH = {"intercept": 1.0, "slope": 0.4}

SECTIONS = [
    Section(
        title="Beyond the normal likelihood",
        body=(
            "A GLM keeps the linear predictor but changes the likelihood and\n"
            "connects the two through a link function:\n\n"
            "- binary outcomes: `family='bernoulli'`, logit link,\n"
            "  P(y = 1) = logistic(eta);\n"
            "- counts: `family='poisson'`, log link, E[y] = exp(eta).\n\n"
            "Coefficients live on the link scale. exp(b) is an odds ratio for\n"
            "the logistic model and a rate ratio for the Poisson model."
        ),
    ),
    Section(
        title="Predictions on the response scale",
        body=(
            "`kind='linpred'` returns the linear predictor, `kind='epred'` the\n"
            "expected response (probabilities, rates) and `kind='predict'`\n"
            "simulated new observations. Conditional-effect plots show the\n"
            "expected response with its credible band along a predictor."
        ),
    ),
]


def run(sampler: SamplerConfig) -> ChapterResult:
    result = ChapterResult(chapter_id=CHAPTER_ID, sampler=sampler)

    logistic_data = simulate_logistic(seed=sampler.random_seed, **LOGISTIC_TRUTH)
    logistic = RegressionModel("y ~ x", logistic_data, family="bernoulli", sampler=sampler, name="logistic")
    logistic.fit()
    result.add_model("logistic", logistic)

    poisson_data = simulate_poisson(seed=sampler.random_seed, **POISSON_TRUTH)
    poisson = RegressionModel("y ~ x", poisson_data, family="poisson", sampler=sampler, name="poisson")
    poisson.fit()
    result.add_model("poisson", poisson)

    logistic_draws = logistic.draws()
    poisson_draws = poisson.draws()
    odds_ratio = np.exp(logistic_draws["b_x"].to_numpy())
    rate_ratio = np.exp(poisson_draws["b_x"].to_numpy())

    result.values.update({
        "logistic_truth": LOGISTIC_TRUTH,
        "poisson_truth": POISSON_TRUTH,
        "odds_ratio": {"mean": float(odds_ratio.mean()), "interval": list(hdi(odds_ratio))},
        "rate_ratio": {"mean": float(rate_ratio.mean()), "interval": list(hdi(rate_ratio))},
        "poisson_ppc_pvalue_sd": posterior_predictive_pvalue(poisson, "sd"),
    })

    result.figures["conditional_logistic"] = plot_conditional_effect(
        logistic.conditional_effects("x"), "x", logistic_data, "y"
    )
    result.figures["conditional_poisson"] = plot_conditional_effect(
        poisson.conditional_effects("x"), "x", poisson_data, "y"
    )
    return result


def _probability_at_one(result: ChapterResult):
    p = result.models["logistic"].predict(pd.DataFrame({"x": [1.0]}), kind="epred")[:, 0]
    lower, upper = hdi(p)
    return {"mean": float(p.mean()), "lower": lower, "upper": upper}


def _negative_binomial(result: ChapterResult):
    data = result.models["poisson"].data
    negbin = RegressionModel("y ~ x", data, family="negbinomial", sampler=result.sampler, name="negbinomial")
    negbin.fit()
    comparison = compare_models([result.models["poisson"], negbin])
    return {
        "best_model": comparison.best_model,
        "phi_mean": float(negbin.draws()["phi"].mean()),
    }


EXERCISES = [
    Exercise(
        id="5.1",
        prompt="What is the probability that y = 1 when x = 1 in the logistic model?",
        solution_text=(
            "Predict with `kind='epred'` at x = 1; the draws are probabilities.\n"
            "The true value is logistic(-0.5 + 1.5) = 0.73."
        ),
        solution=_probability_at_one,
    ),
    Exercise(
        id="5.2",
        prompt=(
            "Fit a negative binomial model to the count data and compare it to\n"
            "the Poisson model by LOO. Is there evidence of overdispersion?"
        ),
        solution_text=(
            "The data are Poisson, so the negative binomial model has a large\n"
            "shape phi and no better LOO; the simpler model is preferred or the\n"
            "two are indistinguishable."
        ),
        solution=_negative_binomial,
    ),
]

CHAPTER = Chapter(
    id=CHAPTER_ID,
    number=5,
    title="Generalized linear models",
    summary="Logistic and Poisson regression, links and response-scale predictions.",
    sections=SECTIONS,
    exercises=EXERCISES,
    run=run,
)
