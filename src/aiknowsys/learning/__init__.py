"""Pattern detection, tracking and learned-skill generation."""

from aiknowsys.learning.detector import PatternCluster, detect_patterns, jaccard_similarity
from aiknowsys.learning.skills import (
    SkillPattern,
    SkillResult,
    auto_create_skills,
    create_learned_skill,
    extract_pattern,
    slugify,
)
from aiknowsys.learning.tracker import PatternTracker

__all__ = [
    "PatternCluster",
    "PatternTracker",
    "SkillPattern",
    "SkillResult",
    "auto_create_skills",
    "create_learned_skill",
    "detect_patterns",
    "extract_pattern",
    "jaccard_similarity",
    "slugify",
]
