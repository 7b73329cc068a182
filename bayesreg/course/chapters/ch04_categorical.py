"""Chapter 4: categorical predictors."""

from bayesreg.bayesian import (
    RegressionModel,
    SamplerConfig,
    compare_groups,
    extract_cell_draws,
    posterior_probability,
    summarize_draws,
)
from bayesreg.course.models import Chapter, ChapterResult, Exercise, Section
from bayesreg.data import load_politeness_data
from bayesreg.plotting import plot_conditional_effect, plot_posterior_density

CHAPTER_ID = "categorical-predictors"

FORMULA = "pitch ~ gender * context + (1 | subject) + (1 | sentence)"

CELLS = {
    f"{gender}:{context}": {"gender": gender, "context": context}
    for gender in ("F", "M")
    for context in ("inf", "pol")
}

SECTIONS = [
    Section(
        title="Factors as predictors",
        body=(
            "Voice pitch was recorded for female and male speakers in an\n"
            "informal and a polite context: a 2x2 factorial design. Factors\n"
            "enter the model through treatment (dummy) coding: the intercept is\n"
            "the mean of the reference cell (F, inf) and each coefficient is a\n"
            "difference to it. `gender * context` adds the interaction.\n\n"
            f"    {FORMULA}\n\n"
            "Each speaker and each sentence appears several times, so both get\n"
            "a varying intercept."
        ),
    ),
    Section(
        title="Cell means from draws",
        body=(
            "Instead of interpreting dummy coefficients directly, we predict\n"
            "each design cell for every posterior draw. Differences between\n"
            "cells are then computed draw by draw, giving their full posterior:\n"
            "is polite speech lower in pitch, and by how much?"
        ),
    ),
]


def run(sampler: SamplerConfig) -> ChapterResult:
    data = load_politeness_data(seed=sampler.random_seed)
    result = ChapterResult(chapter_id=CHAPTER_ID, sampler=sampler)

    model = RegressionModel(FORMULA, data, sampler=sampler, name="politeness")
    model.fit()
    result.add_model("politeness", model)

    cells = extract_cell_draws(model, CELLS)
    result.summaries["cell_means"] = summarize_draws(cells)

    context_effect = compare_groups(model, higher={"context": "inf"}, lower={"context": "pol"})
    female_effect = compare_groups(
        model, higher={"gender": "F", "context": "inf"}, lower={"gender": "F", "context": "pol"}
    )

    result.values.update({
        "informal_vs_polite": context_effect.to_dict(),
        "informal_vs_polite_female": female_effect.to_dict(),
        "p_polite_lower_female": posterior_probability(
            model.draws(include_group_effects=False), "b_contextpol < 0"
        ).probability,
    })

    result.figures["context_difference"] = plot_posterior_density(
        context_effect.difference, "pitch(inf) - pitch(pol)", reference=0.0
    )
    result.figures["conditional_context"] = plot_conditional_effect(
        model.conditional_effects("context"), "context"
    )
    return result


def _interaction(result: ChapterResult):
    draws = result.models["politeness"].draws(include_group_effects=False)
    hypothesis = posterior_probability(draws, "b_genderM_contextpol > 0")
    return hypothesis.to_dict()


def _male_effect(result: ChapterResult):
    comparison = compare_groups(
        result.models["politeness"],
        higher={"gender": "M", "context": "inf"},
        lower={"gender": "M", "context": "pol"},
    )
    return comparison.to_dict()


EXERCISES = [
    Exercise(
        id="4.1",
        prompt="Is the politeness effect smaller for male speakers? Give the posterior probability.",
        solution_text=(
            "The interaction coefficient `b_genderM_contextpol` is the change\n"
            "of the polite-vs-informal difference for male speakers. Its\n"
            "posterior probability of being positive (a smaller drop) answers\n"
            "the question."
        ),
        solution=_interaction,
    ),
    Exercise(
        id="4.2",
        prompt="Estimate the informal minus polite pitch difference for male speakers only.",
        solution_text=(
            "Compare the cells (M, inf) and (M, pol) draw by draw; the\n"
            "difference is positive but smaller than for female speakers."
        ),
        solution=_male_effect,
    ),
]

CHAPTER = Chapter(
    id=CHAPTER_ID,
    number=4,
    title="Categorical predictors",
    summary="Dummy coding, interactions and comparing design cells.",
    sections=SECTIONS,
    exercises=EXERCISES,
    run=run,
)
