"""Chapter 6: multilevel models."""

import pandas as pd

from bayesreg.bayesian import RegressionModel, SamplerConfig, hdi
from bayesreg.course.models import Chapter, ChapterResult, Exercise, Section
from bayesreg.data import simulate_grouped
from bayesreg.evaluation import compare_models
from bayesreg.plotting import plot_posterior_density

CHAPTER_ID = "multilevel-models"

TRUTH = {"intercept": 1.0, "slope": 0.8, "sd_intercept": 1.0, "sd_slope": 0.3, "sigma": 0.5}

FORMULAS = {
    "complete_pooling": "y ~ x",
    "varying_intercepts": "y ~ x + (1 | group)",
    "varying_slopes": "y ~ x + (1 + x | group)",
}

SECTIONS = [
    Section(
        title="Repeated measures",
        body=(
            "Observations come in groups (subjects, schools, cities). Ignoring\n"
            "the groups (complete pooling) understates uncertainty; fitting\n"
            "each group separately (no pooling) overfits small groups.\n"
            "Multilevel models do partial pooling: group-level effects are\n"
            "drawn from a common distribution whose sd is estimated.\n\n"
            "    y ~ x + (1 | group)         varying intercepts\n"
            "    y ~ x + (1 + x | group)     varying intercepts and slopes"
        ),
    ),
    Section(
        title="Shrinkage",
        body=(
            "Group estimates are pulled towards the population mean, more so\n"
            "for groups with little data or when the group-level sd is small.\n"
            "Group-level effects are sampled in non-centred form, which keeps\n"
            "NUTS efficient when the sd is close to zero."
        ),
    ),
    Section(
        title="Which structure?",
        body="LOO compares the three models on their expected out-of-sample predictive accuracy.",
    ),
]


def run(sampler: SamplerConfig) -> ChapterResult:
    data = simulate_grouped(seed=sampler.random_seed, **TRUTH)
    result = ChapterResult(chapter_id=CHAPTER_ID, sampler=sampler)

    for key, formula in FORMULAS.items():
        model = RegressionModel(formula, data, sampler=sampler, name=key)
        model.fit()
        result.add_model(key, model)

    comparison = compare_models({key: result.models[key] for key in FORMULAS})
    result.summaries["loo"] = comparison.table

    draws = result.models["varying_slopes"].draws()
    result.values.update({
        "truth": TRUTH,
        "sd_intercept_mean": float(draws["sd_group__Intercept"].mean()),
        "sd_slope_mean": float(draws["sd_group__x"].mean()),
        "best_model": comparison.best_model,
    })

    result.figures["sd_intercept"] = plot_posterior_density(
        draws["sd_group__Intercept"], "sd_group__Intercept", reference=TRUTH["sd_intercept"]
    )
    return result


def _new_group(result: ChapterResult):
    model = result.models["varying_slopes"]
    newdata = pd.DataFrame({"x": [1.0], "group": ["new"]})
    y_new = model.predict(newdata, kind="predict", allow_new_levels=True)[:, 0]
    y_known = model.predict(pd.DataFrame({"x": [1.0], "group": ["g1"]}), kind="predict")[:, 0]
    return {
        "new_group": {"mean": float(y_new.mean()), "interval": list(hdi(y_new))},
        "known_group": {"mean": float(y_known.mean()), "interval": list(hdi(y_known))},
    }


def _shrinkage(result: ChapterResult):
    model = result.models["varying_intercepts"]
    draws = model.draws()
    data = model.data
    rows = {}
    for level in model.design.groups["group"].levels:
        raw = data.loc[data["group"].astype(str) == level, "y"].mean()
        column = f"r_group[{level},Intercept]"
        rows[level] = {
            "raw_mean": float(raw),
            "partial_pooling": float((draws["b_Intercept"] + draws[column]).mean()),
        }
    return rows


EXERCISES = [
    Exercise(
        id="6.1",
        prompt=(
            "Predict y at x = 1 for group g1 and for a group not in the data.\n"
            "Why is the second interval wider?"
        ),
        solution_text=(
            "For a new group the group-level effects are unknown and must be\n"
            "integrated over; with `allow_new_levels=True` the prediction is the\n"
            "population-level one, so its interval includes between-group\n"
            "variation the known group does not have."
        ),
        solution=_new_group,
    ),
    Exercise(
        id="6.2",
        prompt="Compare each group's raw mean of y with its varying-intercept estimate.",
        solution_text=(
            "Intercept estimates sit between the raw group means and the\n"
            "population intercept: partial pooling shrinks extreme groups."
        ),
        solution=_shrinkage,
    ),
]

CHAPTER = Chapter(
    id=CHAPTER_ID,
    number=6,
    title="Multilevel models",
    summary="Varying intercepts and slopes, partial pooling and shrinkage.",
    sections=SECTIONS,
    exercises=EXERCISES,
    run=run,
)
