"""
Verifier Set - Runs the four independent checks against one deployment.

A checker that raises, or that returns nothing although it had inputs, is
recorded as degraded. Degraded checkers make the outcome non-passing.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from speed_agent.core.schemas import (
    FunctionalTestResult,
    LinkVerificationResult,
    PerformanceResult,
    SiteInventory,
    VisualComparisonResult,
)
from speed_agent.utils.helpers import StructuredLogger, average
from speed_agent.verification.functional import FunctionalVerifier
from speed_agent.verification.links import LinkVerifier
from speed_agent.verification.performance import PerformanceVerifier
from speed_agent.verification.visual import VisualVerifier


class VerificationOutcome(BaseModel):
    visual: List[VisualComparisonResult] = Field(default_factory=list)
    functional: List[FunctionalTestResult] = Field(default_factory=list)
    links: List[LinkVerificationResult] = Field(default_factory=list)
    performance: List[PerformanceResult] = Field(default_factory=list)
    degraded_checkers: List[str] = Field(default_factory=list)

    @property
    def visual_failures(self) -> int:
        return sum(1 for v in self.visual if not v.passed)

    @property
    def functional_failures(self) -> int:
        return sum(1 for t in self.functional if not t.passed)

    @property
    def broken_links(self) -> int:
        return sum(1 for link in self.links if not link.passed)

    @property
    def avg_performance(self) -> float:
        return average(p.performance for p in self.performance)

    @property
    def worst_performance(self) -> int:
        return min((p.performance for p in self.performance), default=0)

    @property
    def checks_clean(self) -> bool:
        """Visual, functional and link checks all passed and nothing degraded."""
        return (
            self.visual_failures == 0
            and self.functional_failures == 0
            and self.broken_links == 0
            and not self.degraded_checkers
        )


class VerifierSet:
    def __init__(
        self,
        visual: VisualVerifier,
        functional: FunctionalVerifier,
        links: LinkVerifier,
        performance: PerformanceVerifier,
        log: Optional[StructuredLogger] = None,
    ):
        self.visual = visual
        self.functional = functional
        self.links = links
        self.performance = performance
        self.log = log or StructuredLogger("Verify")

    async def _run(self, name: str, outcome: VerificationOutcome, has_inputs: bool, check) -> list:
        try:
            results = await check
        except Exception as e:
            self.log.error(f"{name} checker failed: {e}")
            outcome.degraded_checkers.append(name)
            return []
        if has_inputs and not results:
            self.log.warning(f"{name} checker produced no results")
            outcome.degraded_checkers.append(name)
        return results

    async def run(
        self,
        original_url: str,
        edge_url: str,
        inventory: SiteInventory,
        work_dir: str,
    ) -> VerificationOutcome:
        outcome = VerificationOutcome()

        self.log.info("Visual comparison...")
        outcome.visual = await self._run(
            "visual", outcome, bool(inventory.baseline_screenshots),
            self.visual.verify(edge_url, inventory.baseline_screenshots, work_dir),
        )

        self.log.info("Functional testing...")
        outcome.functional = await self._run(
            "functional", outcome, any(b.passed for b in inventory.baseline_behavior),
            self.functional.verify(edge_url, inventory.baseline_behavior),
        )

        self.log.info("Link verification...")
        outcome.links = await self._run(
            "links", outcome, bool(inventory.pages),
            self.links.verify(original_url, edge_url, inventory.pages),
        )

        self.log.info("Performance measurement...")
        outcome.performance = await self._run(
            "performance", outcome, bool(inventory.pages),
            self.performance.measure(edge_url, inventory.pages),
        )

        return outcome
