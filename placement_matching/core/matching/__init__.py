"""
Scoring: the score calculator and insights read from its breakdowns.
"""

from .insights import (
    analyze_fit,
    build_insights,
    generate_candidate_recommendations,
    generate_improvements,
    generate_recommendations,
    generate_strengths,
    identify_skill_gaps,
)
from .score_calculator import ScoreCalculator, compute, get_score_calculator, round_score

__all__ = [
    "ScoreCalculator",
    "compute",
    "get_score_calculator",
    "round_score",
    "analyze_fit",
    "build_insights",
    "generate_candidate_recommendations",
    "generate_improvements",
    "generate_recommendations",
    "generate_strengths",
    "identify_skill_gaps",
]
