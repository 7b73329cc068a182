"""Chapter 7: causal inference with regression."""

from bayesreg.bayesian import RegressionModel, SamplerConfig, total_causal_effect
from bayesreg.course.models import Chapter, ChapterResult, Exercise, Section
from bayesreg.data import simulate_confounded, true_total_causal_effect
from bayesreg.plotting import plot_posterior_density

CHAPTER_ID = "causal-inference"

P_Z = 0.5

SECTIONS = [
    Section(
        title="Association is not causation",
        body=(
            "In the simulated data a binary confounder Z raises both the\n"
            "chance of treatment X and the chance of the outcome Y:\n\n"
            "    Z -> X,  Z -> Y,  X -> Y\n\n"
            "A regression of Y on X alone mixes the causal path X -> Y with\n"
            "the back-door path X <- Z -> Y and overstates the effect."
        ),
    ),
    Section(
        title="The total causal effect",
        body=(
            "The quantity of interest is\n\n"
            "    TCE = P(Y = 1 | do(X = 1)) - P(Y = 1 | do(X = 0))\n\n"
            "Adjusting for Z closes the back-door path. We then standardise:\n"
            "for every posterior draw, set X to 1 for all rows (keeping each\n"
            "row's Z), average the predicted probabilities, do the same with\n"
            "X = 0 and take the difference. The result is the posterior\n"
            "distribution of the TCE."
        ),
    ),
]


def run(sampler: SamplerConfig) -> ChapterResult:
    data = simulate_confounded(p_z=P_Z, seed=sampler.random_seed)
    result = ChapterResult(chapter_id=CHAPTER_ID, sampler=sampler)

    naive = RegressionModel("Y ~ X", data, family="bernoulli", sampler=sampler, name="naive")
    naive.fit()
    result.add_model("naive", naive)

    adjusted = RegressionModel("Y ~ X + Z", data, family="bernoulli", sampler=sampler, name="adjusted")
    adjusted.fit()
    result.add_model("adjusted", adjusted)

    naive_effect = total_causal_effect(naive, "X")
    adjusted_effect = total_causal_effect(adjusted, "X", adjust_for=["Z"])

    result.values.update({
        "true_tce": true_total_causal_effect(P_Z),
        "naive_effect": naive_effect.to_dict(),
        "adjusted_effect": adjusted_effect.to_dict(),
    })

    result.figures["tce_adjusted"] = plot_posterior_density(
        adjusted_effect.draws, "TCE of X on Y", reference=true_total_causal_effect(P_Z)
    )
    return result


def _effect_among_exposed_confounder(result: ChapterResult):
    model = result.models["adjusted"]
    subset = model.data[model.data["Z"] == 1]
    return total_causal_effect(model, "X", data=subset, adjust_for=["Z"]).to_dict()


def _log_odds_scale(result: ChapterResult):
    effect = total_causal_effect(result.models["adjusted"], "X", kind="linpred")
    draws = result.models["adjusted"].draws()
    return {"tce_linpred": effect.mean, "b_X": float(draws["b_X"].mean())}


EXERCISES = [
    Exercise(
        id="7.1",
        prompt="What is the causal effect of X among units with Z = 1 only?",
        solution_text=(
            "Standardise over the Z = 1 rows only. Because the outcome model is\n"
            "non-linear, the effect differs from the population TCE."
        ),
        solution=_effect_among_exposed_confounder,
    ),
    Exercise(
        id="7.2",
        prompt="Compute the TCE on the log-odds scale. How does it relate to the coefficient of X?",
        solution_text=(
            "On the linear-predictor scale the model is additive, so the\n"
            "standardised difference equals b_X in every draw."
        ),
        solution=_log_odds_scale,
    ),
]

CHAPTER = Chapter(
    id=CHAPTER_ID,
    number=7,
    title="Causal inference",
    summary="Confounding, back-door adjustment and the total causal effect.",
    sections=SECTIONS,
    exercises=EXERCISES,
    run=run,
)
