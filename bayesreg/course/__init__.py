"""
Course module.

Provides:
- Chapter / Exercise / ChapterResult models
- Chapter registry: list, look up, run, solve exercises
"""

from bayesreg.course.models import (
    Section,
    Exercise,
    Chapter,
    ChapterResult,
)
from bayesreg.course.registry import (
    CHAPTERS,
    list_chapters,
    get_chapter,
    run_chapter,
    solve_exercise,
)

__all__ = [
    # Models
    "Section",
    "Exercise",
    "Chapter",
    "ChapterResult",
    # Registry
    "CHAPTERS",
    "list_chapters",
    "get_chapter",
    "run_chapter",
    "solve_exercise",
]
