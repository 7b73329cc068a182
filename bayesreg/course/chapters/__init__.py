"""Course chapters, in reading order."""

from bayesreg.course.chapters import (
    ch01_linear,
    ch02_priors,
    ch03_diagnostics,
    ch04_categorical,
    ch05_glm,
    ch06_multilevel,
    ch07_causal,
    ch08_gam,
    ch09_comparison,
)

ALL_CHAPTERS = [
    ch01_linear.CHAPTER,
    ch02_priors.CHAPTER,
    ch03_diagnostics.CHAPTER,
    ch04_categorical.CHAPTER,
    ch05_glm.CHAPTER,
    ch06_multilevel.CHAPTER,
    ch07_causal.CHAPTER,
    ch08_gam.CHAPTER,
    ch09_comparison.CHAPTER,
]

__all__ = ["ALL_CHAPTERS"]
