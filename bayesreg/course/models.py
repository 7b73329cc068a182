"""
Chapter and exercise models.

A chapter is prose (sections), a `run` function that builds its data, fits
its models and collects results, and exercises whose worked solutions are
computed from that result.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import numpy as np
import pandas as pd
from pydantic import BaseModel, Field

from bayesreg.bayesian.diagnostics import Diagnostics
from bayesreg.bayesian.priors import SamplerConfig
from bayesreg.utils import get_logger

logger = get_logger("course.models")


# =============================================================================
# Results
# =============================================================================

def jsonable(value: Any) -> Any:
    """Numpy scalars/arrays and NaN to plain JSON values."""
    if isinstance(value, dict):
        return {str(k): jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [jsonable(v) for v in value]
    if isinstance(value, np.ndarray):
        return jsonable(value.tolist())
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and not np.isfinite(value):
        return None
    return value


def table_records(table: pd.DataFrame, index_name: str = "parameter") -> List[Dict[str, Any]]:
    """DataFrame rows as JSON-ready records, index kept as a column."""
    frame = table.reset_index().rename(columns={"index": index_name})
    return [jsonable(row) for row in frame.to_dict(orient="records")]


@dataclass
class ChapterResult:
    """Everything a chapter run produced."""

    chapter_id: str
    sampler: Optional[SamplerConfig] = None
    models: Dict[str, Any] = field(default_factory=dict, repr=False)
    summaries: Dict[str, pd.DataFrame] = field(default_factory=dict, repr=False)
    diagnostics: Dict[str, Diagnostics] = field(default_factory=dict)
    figures: Dict[str, Any] = field(default_factory=dict, repr=False)
    values: Dict[str, Any] = field(default_factory=dict)
    computed_at: datetime = field(default_factory=datetime.now)

    def add_model(self, key: str, model) -> None:
        """Record a fitted model with its summary and diagnostics."""
        self.models[key] = model
        self.summaries[key] = model.summary()
        self.diagnostics[key] = model.get_diagnostics()

    @property
    def is_healthy(self) -> bool:
        return all(d.is_healthy for d in self.diagnostics.values())

    def health_banner(self) -> Dict[str, Any]:
        """Overall convergence status with the problems of each fit."""
        problems = {
            key: diag.messages()
            for key, diag in self.diagnostics.items()
            if not diag.is_healthy
        }
        return {"is_healthy": not problems, "problems": problems}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "chapter_id": self.chapter_id,
            "computed_at": self.computed_at.isoformat(),
            "sampler": jsonable(self.sampler.to_dict()) if self.sampler else None,
            "health": self.health_banner(),
            "summaries": {key: table_records(t) for key, t in self.summaries.items()},
            "diagnostics": {key: jsonable(d.to_dict()) for key, d in self.diagnostics.items()},
            "figures": sorted(self.figures),
            "values": jsonable(self.values),
        }


# =============================================================================
# Chapter content
# =============================================================================

class Section(BaseModel):
    """A titled block of chapter prose (markdown)."""
    title: str
    body: str


class Exercise(BaseModel):
    """An exercise with a worked solution."""
    id: str
    prompt: str
    solution_text: str
    solution: Optional[Callable[[ChapterResult], Any]] = Field(default=None, exclude=True)

    def solve(self, result: ChapterResult) -> Any:
        """Compute the worked solution from a chapter run."""
        if self.solution is None:
            raise ValueError(f"Exercise {self.id!r} has no computed solution")
        logger.info(f"Solving exercise {self.id}")
        return self.solution(result)


class Chapter(BaseModel):
    """One course chapter."""
    id: str
    number: int
    title: str
    summary: str
    sections: List[Section]
    exercises: List[Exercise] = Field(default_factory=list)
    run: Callable[[SamplerConfig], ChapterResult] = Field(exclude=True)

    def get_exercise(self, exercise_id: str) -> Exercise:
        for exercise in self.exercises:
            if exercise.id == exercise_id:
                return exercise
        raise KeyError(f"Chapter {self.id!r} has no exercise {exercise_id!r}")

    def to_dict(self) -> Dict[str, Any]:
        """Prose and exercises, without callables."""
        return self.model_dump()
