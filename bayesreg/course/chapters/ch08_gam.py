"""Chapter 8: generalized additive models."""

from bayesreg.bayesian import RegressionModel, SamplerConfig
from bayesreg.course.models import Chapter, ChapterResult, Exercise, Section
from bayesreg.data import simulate_wiggly
from bayesreg.evaluation import bayesian_r2, compare_models
from bayesreg.plotting import plot_conditional_effect

CHAPTER_ID = "additive-models"

SECTIONS = [
    Section(
        title="Smooth functions",
        body=(
            "When a relationship is not a straight line, a GAM replaces the\n"
            "linear term by a smooth function built from a spline basis:\n\n"
            "    y ~ s(x, k = 10)\n\n"
            "`k` sets the basis size (the maximum wiggliness). The basis\n"
            "weights get a common prior Normal(0, sds); the smoothness sd `sds`\n"
            "is estimated, so the data decide how wiggly the curve is."
        ),
    ),
    Section(
        title="Linear vs smooth",
        body=(
            "On data following a sine curve a straight line misses the shape.\n"
            "The conditional-effect plot and LOO both show the smooth model\n"
            "is the better description."
        ),
    ),
]


def run(sampler: SamplerConfig) -> ChapterResult:
    data = simulate_wiggly(seed=sampler.random_seed)
    result = ChapterResult(chapter_id=CHAPTER_ID, sampler=sampler)

    linear = RegressionModel("y ~ x", data, sampler=sampler, name="linear")
    linear.fit()
    result.add_model("linear", linear)

    smooth = RegressionModel("y ~ s(x, k = 10)", data, sampler=sampler, name="smooth")
    smooth.fit()
    result.add_model("smooth", smooth)

    comparison = compare_models([linear, smooth])
    result.summaries["loo"] = comparison.table

    result.values.update({
        "best_model": comparison.best_model,
        "sds_mean": float(smooth.draws()["sds_sx"].mean()),
        "bayes_r2_linear": float(bayesian_r2(linear).mean()),
        "bayes_r2_smooth": float(bayesian_r2(smooth).mean()),
    })

    result.figures["conditional_linear"] = plot_conditional_effect(
        linear.conditional_effects("x"), "x", data, "y"
    )
    result.figures["conditional_smooth"] = plot_conditional_effect(
        smooth.conditional_effects("x"), "x", data, "y"
    )
    return result


def _basis_size(result: ChapterResult):
    data = result.models["smooth"].data
    models = []
    for k in (4, 10, 20):
        model = RegressionModel(f"y ~ s(x, k = {k})", data, sampler=result.sampler, name=f"k{k}")
        model.fit()
        models.append(model)
    comparison = compare_models(models)
    return comparison.to_dict()


EXERCISES = [
    Exercise(
        id="8.1",
        prompt="Fit the smooth with k = 4, 10 and 20. Does a bigger basis always help?",
        solution_text=(
            "k = 4 is too stiff for a full sine period. Beyond that the\n"
            "estimated sds keeps the curve from overfitting, so k = 10 and\n"
            "k = 20 predict about equally well."
        ),
        solution=_basis_size,
    ),
]

CHAPTER = Chapter(
    id=CHAPTER_ID,
    number=8,
    title="Generalized additive models",
    summary="Penalised spline smooths and how wiggly a curve should be.",
    sections=SECTIONS,
    exercises=EXERCISES,
    run=run,
)
