"""Verifier Set: visual, functional, link and performance checks."""

from speed_agent.verification.functional import FunctionalVerifier, compare_behavior
from speed_agent.verification.links import LinkVerifier
from speed_agent.verification.performance import PageSpeedScorer, PerformanceVerifier, heuristic_score
from speed_agent.verification.suite import VerificationOutcome, VerifierSet
from speed_agent.verification.visual import PixelDiffComparator, VisualVerifier, classify_diff

__all__ = [
    "FunctionalVerifier",
    "compare_behavior",
    "LinkVerifier",
    "PageSpeedScorer",
    "PerformanceVerifier",
    "heuristic_score",
    "VerificationOutcome",
    "VerifierSet",
    "PixelDiffComparator",
    "VisualVerifier",
    "classify_diff",
]
