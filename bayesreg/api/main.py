"""
API Layer

FastAPI backend serving:
- The chapter list and chapter prose with exercises
- Chapter results: summaries, derived values and diagnostics
- Worked exercise solutions

IMPORTANT: every result carries a health banner. Check `health.is_healthy`
before trusting a summary; convergence problems are reported, not fixed.
"""

import importlib.util
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from bayesreg import __version__
from bayesreg.bayesian.priors import SamplerConfig
from bayesreg.course import ChapterResult, get_chapter, list_chapters, run_chapter, solve_exercise
from bayesreg.course.models import jsonable
from bayesreg.utils import get_logger

logger = get_logger("api")

# =============================================================================
# FastAPI App
# =============================================================================

app = FastAPI(
    title="Bayesian Regression Course API",
    description="""
    Serves the chapters of a course on Bayesian regression modeling and the
    results of running them.

    **Important Notes:**
    - Results include credible intervals, not point estimates alone
    - Running a chapter fits its models; the first request may be slow
    - Check `health.is_healthy` before trusting a summary
    """,
    version=__version__,
)

# CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Chapter results by (chapter id, quick run)
_results: Dict[Tuple[str, bool], ChapterResult] = {}


# =============================================================================
# Response Models
# =============================================================================

class ModelDiagnostics(BaseModel):
    """Model health diagnostics."""

    is_healthy: bool = Field(description="True if the fit passes all diagnostic checks")
    n_divergences: int = Field(description="Number of divergent transitions (should be 0)")
    max_rhat: Optional[float] = Field(description="Highest R-hat (should be < 1.01; null for one chain)")
    min_ess: int = Field(description="Minimum bulk effective sample size (should be > 400)")
    warning: Optional[str] = Field(None, description="Problems found, if unhealthy")

    @classmethod
    def from_fit_summary(cls, diagnostics: Dict[str, Any]) -> "ModelDiagnostics":
        messages = diagnostics.get("messages", [])
        return cls(
            is_healthy=diagnostics.get("is_healthy", False),
            n_divergences=diagnostics.get("n_divergences", 0),
            max_rhat=diagnostics.get("max_rhat"),
            min_ess=int(diagnostics.get("min_ess_bulk") or 0),
            warning="; ".join(messages) if messages else None,
        )


class ChapterInfo(BaseModel):
    """Chapter listing entry."""
    id: str
    number: int
    title: str
    summary: str
    n_exercises: int


class SectionOut(BaseModel):
    title: str
    body: str


class ExerciseOut(BaseModel):
    id: str
    prompt: str
    solution_text: str


class ChapterDetail(BaseModel):
    """Chapter prose and exercises."""
    id: str
    number: int
    title: str
    summary: str
    sections: List[SectionOut]
    exercises: List[ExerciseOut]


class HealthBanner(BaseModel):
    is_healthy: bool
    problems: Dict[str, List[str]] = Field(default_factory=dict)


class ChapterResults(BaseModel):
    """Results of running a chapter."""
    chapter_id: str
    computed_at: datetime
    sampler: Optional[Dict[str, Any]] = None
    health: HealthBanner
    summaries: Dict[str, List[Dict[str, Any]]]
    diagnostics: Dict[str, ModelDiagnostics]
    figures: List[str]
    values: Dict[str, Any]


class ExerciseSolution(BaseModel):
    chapter_id: str
    exercise_id: str
    solution_text: str
    value: Any = None


# =============================================================================
# Helpers
# =============================================================================

def _chapter_or_404(chapter_id: str):
    try:
        return get_chapter(chapter_id)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e).strip("'\""))


def _sampler(quick: bool) -> SamplerConfig:
    return SamplerConfig.quick() if quick else SamplerConfig()


def _get_result(chapter_id: str, refresh: bool, quick: bool) -> ChapterResult:
    key = (chapter_id, quick)
    if refresh or key not in _results:
        try:
            _results[key] = run_chapter(chapter_id, sampler=_sampler(quick))
        except ValueError as e:
            logger.error(f"Chapter {chapter_id} failed: {e}")
            raise HTTPException(status_code=422, detail=str(e))
    return _results[key]


# =============================================================================
# API Endpoints
# =============================================================================

@app.get("/")
async def root():
    """API health check."""
    return {
        "status": "ok",
        "service": "Bayesian Regression Course API",
        "version": __version__,
        "docs": "/docs",
    }


@app.get("/api/v1/health")
async def health_check():
    """System health check."""
    sampler_available = importlib.util.find_spec("pymc") is not None
    return {
        "status": "ok" if sampler_available else "degraded",
        "sampler": "ok" if sampler_available else "pymc not installed",
        "chapters": len(list_chapters()),
        "cached_results": sorted({chapter_id for chapter_id, _ in _results}),
        "timestamp": datetime.now().isoformat(),
    }


@app.get("/api/v1/chapters", response_model=List[ChapterInfo])
async def get_chapters():
    """All chapters in reading order."""
    return [
        ChapterInfo(
            id=c.id,
            number=c.number,
            title=c.title,
            summary=c.summary,
            n_exercises=len(c.exercises),
        )
        for c in list_chapters()
    ]


@app.get("/api/v1/chapters/{chapter_id}", response_model=ChapterDetail)
async def get_chapter_detail(chapter_id: str):
    """Chapter prose and exercises (without solutions' computed values)."""
    chapter = _chapter_or_404(chapter_id)
    return ChapterDetail(**chapter.to_dict())


@app.get("/api/v1/chapters/{chapter_id}/results", response_model=ChapterResults)
def get_chapter_results(
    chapter_id: str,
    refresh: bool = Query(False, description="Re-run the chapter even if results are cached"),
    quick: bool = Query(False, description="Single short chain (for previews, may be unhealthy)"),
):
    """
    Run a chapter (or return its cached results).

    Sampling blocks, so this endpoint is a plain function and runs in the
    threadpool.
    """
    chapter = _chapter_or_404(chapter_id)
    result = _get_result(chapter.id, refresh, quick)
    data = result.to_dict()

    return ChapterResults(
        chapter_id=chapter.id,
        computed_at=result.computed_at,
        sampler=data["sampler"],
        health=HealthBanner(**data["health"]),
        summaries=data["summaries"],
        diagnostics={
            key: ModelDiagnostics.from_fit_summary(diag)
            for key, diag in data["diagnostics"].items()
        },
        figures=data["figures"],
        values=data["values"],
    )


@app.get(
    "/api/v1/chapters/{chapter_id}/exercises/{exercise_id}/solution",
    response_model=ExerciseSolution,
)
def get_exercise_solution(
    chapter_id: str,
    exercise_id: str,
    quick: bool = Query(False, description="Run the chapter with a single short chain if needed"),
):
    """Worked solution computed on the chapter's fitted models."""
    chapter = _chapter_or_404(chapter_id)
    try:
        exercise = chapter.get_exercise(exercise_id)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e).strip("'\""))

    result = _get_result(chapter.id, refresh=False, quick=quick)
    try:
        value = solve_exercise(chapter.id, exercise.id, result)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return ExerciseSolution(
        chapter_id=chapter.id,
        exercise_id=exercise.id,
        solution_text=exercise.solution_text,
        value=jsonable(value),
    )


# =============================================================================
# Main
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8080)
