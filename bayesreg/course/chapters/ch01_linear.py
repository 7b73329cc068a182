"""Chapter 1: simple linear regression."""

import pandas as pd

from bayesreg.bayesian import RegressionModel, hdi, posterior_probability
from bayesreg.bayesian.priors import SamplerConfig
from bayesreg.course.models import Chapter, ChapterResult, Exercise, Section
from bayesreg.data import load_murder_data
from bayesreg.evaluation import bayesian_r2
from bayesreg.plotting import plot_conditional_effect, plot_ppc, plot_trace

CHAPTER_ID = "linear-regression"

SECTIONS = [
    Section(
        title="The model",
        body=(
            "We start with the simplest regression: one numeric predictor and a\n"
            "normally distributed response.\n\n"
            "    murder_rate_i ~ Normal(mu_i, sigma)\n"
            "    mu_i = Intercept + b_low_income * low_income_i\n\n"
            "The data are murder rates (per million inhabitants) of 20 cities\n"
            "together with the percentage of families with low income. Writing\n"
            "`murder_rate ~ low_income` fixes the likelihood and the linear\n"
            "predictor; default priors are scaled to the data."
        ),
    ),
    Section(
        title="Reading the posterior",
        body=(
            "Every parameter now has a posterior distribution represented by\n"
            "draws. The summary table reports the posterior mean, sd and a 95%\n"
            "highest density interval. The question 'does low income go with\n"
            "higher murder rates?' becomes a posterior probability,\n"
            "P(b_low_income > 0 | data), computed by counting draws."
        ),
    ),
    Section(
        title="Checking the fit",
        body=(
            "Before trusting the numbers we check the sampler (trace plot,\n"
            "R-hat, ESS) and the model (posterior predictive check: do\n"
            "replicated data sets look like the observed one?). Bayesian R2\n"
            "summarises how much of the variance the predictor explains."
        ),
    ),
]


def run(sampler: SamplerConfig) -> ChapterResult:
    data = load_murder_data()
    result = ChapterResult(chapter_id=CHAPTER_ID, sampler=sampler)

    model = RegressionModel("murder_rate ~ low_income", data, sampler=sampler, name="murder_simple")
    model.fit()
    result.add_model("simple", model)

    draws = model.draws()
    hypothesis = posterior_probability(draws, "b_low_income > 0")
    r2 = bayesian_r2(model)

    result.values.update({
        "slope_mean": float(draws["b_low_income"].mean()),
        "p_slope_positive": hypothesis.probability,
        "bayes_r2_mean": float(r2.mean()),
        "bayes_r2_interval": list(hdi(r2)),
    })

    result.figures["trace"] = plot_trace(draws, ["b_Intercept", "b_low_income", "sigma"])
    result.figures["ppc"] = plot_ppc(model.design.response, model.predict(kind="predict"))
    result.figures["conditional_low_income"] = plot_conditional_effect(
        model.conditional_effects("low_income"), "low_income", data, "murder_rate"
    )
    return result


def _two_predictors(result: ChapterResult):
    data = load_murder_data()
    model = RegressionModel(
        "murder_rate ~ low_income + unemployment", data,
        sampler=result.sampler, name="murder_two_predictors",
    )
    model.fit()
    draws = model.draws()
    return {
        "b_low_income": float(draws["b_low_income"].mean()),
        "b_unemployment": float(draws["b_unemployment"].mean()),
        "p_low_income_positive": posterior_probability(draws, "b_low_income > 0").probability,
    }


def _prediction_at_20(result: ChapterResult):
    model = result.models["simple"]
    epred = model.predict(pd.DataFrame({"low_income": [20.0]}), kind="epred")[:, 0]
    lower, upper = hdi(epred)
    return {"mean": float(epred.mean()), "lower": lower, "upper": upper}


EXERCISES = [
    Exercise(
        id="1.1",
        prompt=(
            "Add `unemployment` as a second predictor. Is the coefficient of\n"
            "`low_income` still credibly positive?"
        ),
        solution_text=(
            "Fit `murder_rate ~ low_income + unemployment`. The two predictors\n"
            "are correlated, so the low_income coefficient shrinks and its\n"
            "interval widens; part of its effect is now carried by unemployment."
        ),
        solution=_two_predictors,
    ),
    Exercise(
        id="1.2",
        prompt=(
            "What murder rate does the model expect for a city where 20% of\n"
            "families have low income? Give a 95% interval."
        ),
        solution_text=(
            "Predict the expected response (`kind='epred'`) at low_income = 20\n"
            "and summarise the draws by their mean and HDI."
        ),
        solution=_prediction_at_20,
    ),
]

CHAPTER = Chapter(
    id=CHAPTER_ID,
    number=1,
    title="Simple linear regression",
    summary="One predictor, a normal likelihood and reading a posterior.",
    sections=SECTIONS,
    exercises=EXERCISES,
    run=run,
)
