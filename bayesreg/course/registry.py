"""
Chapter registry.

Chapters are looked up by id and run independently: every run builds its
own data and re-fits its own models.
"""

from typing import Any, Dict, List, Optional

from bayesreg.bayesian.priors import SamplerConfig
from bayesreg.course.chapters import ALL_CHAPTERS
from bayesreg.course.models import Chapter, ChapterResult
from bayesreg.plotting import save_figure
from bayesreg.utils import LogContext, get_logger

logger = get_logger("course.registry")

CHAPTERS: Dict[str, Chapter] = {chapter.id: chapter for chapter in ALL_CHAPTERS}


def list_chapters() -> List[Chapter]:
    """Chapters in reading order."""
    return sorted(CHAPTERS.values(), key=lambda c: c.number)


def get_chapter(chapter_id: str) -> Chapter:
    """
    Look up a chapter by id (or by number given as text).

    Raises:
        KeyError: unknown chapter
    """
    if chapter_id in CHAPTERS:
        return CHAPTERS[chapter_id]
    for chapter in CHAPTERS.values():
        if str(chapter.number) == str(chapter_id):
            return chapter
    raise KeyError(f"Unknown chapter {chapter_id!r} (known: {', '.join(CHAPTERS)})")


def run_chapter(
    chapter_id: str,
    sampler: Optional[SamplerConfig] = None,
    save_figures: bool = False,
) -> ChapterResult:
    """
    Run a chapter: build its data, fit its models, collect results.

    Args:
        chapter_id: Chapter id or number
        sampler: NUTS configuration (default from settings)
        save_figures: Write every figure as HTML to the figures directory
    """
    chapter = get_chapter(chapter_id)
    sampler = sampler or SamplerConfig()

    with LogContext(chapter=chapter.id):
        logger.info(f"Running chapter {chapter.number}: {chapter.title}")
        result = chapter.run(sampler)

        if not result.is_healthy:
            logger.warning(
                f"Chapter {chapter.id} has fits with convergence problems: "
                f"{result.health_banner()['problems']}"
            )

        if save_figures:
            for name, fig in result.figures.items():
                save_figure(fig, f"{chapter.number:02d}_{chapter.id}_{name}")

    return result


def solve_exercise(chapter_id: str, exercise_id: str, result: ChapterResult) -> Any:
    """
    Worked solution of an exercise, computed from a chapter run.

    Raises:
        KeyError: unknown chapter or exercise
    """
    chapter = get_chapter(chapter_id)
    exercise = chapter.get_exercise(exercise_id)
    with LogContext(chapter=chapter.id, exercise=exercise.id):
        return exercise.solve(result)
