"""
External collaborator contracts used by the agent.

Contains:
- Data types exchanged with collaborators (BuildJob, BuildStatus, ...)
- Protocols: Optimizer, Deployer, Scorer, Reviewer, Planner, BuildQueue, SiteStore
- InMemorySiteStore: dict-backed SiteStore for local runs and tests
"""

import asyncio
from typing import Any, Dict, List, Literal, Optional, Protocol

from pydantic import BaseModel, Field

from speed_agent.core.errors import SiteNotFoundError
from speed_agent.core.schemas import (
    IterationResult,
    OptimizationPlan,
    ReviewDecision,
    ScoreResult,
    SiteInventory,
)
from speed_agent.core.settings import OptimizationSettings

BuildState = Literal["queued", "processing", "deploying", "success", "failed"]


class SiteRecord(BaseModel):
    site_id: str
    site_url: str
    name: str = ""
    settings: Dict[str, Any] = Field(default_factory=dict)
    edge_url: Optional[str] = None


class OptimizedPage(BaseModel):
    path: str
    html: str
    original_bytes: int = 0
    optimized_bytes: int = 0


class OptimizeResult(BaseModel):
    pages: List[OptimizedPage] = Field(default_factory=list)
    stats: Dict[str, int] = Field(default_factory=dict)


class DeployResult(BaseModel):
    url: str
    files_uploaded: int = 0
    total_bytes: int = 0


class BuildJob(BaseModel):
    build_id: str
    site_id: str
    scope: str = "full"
    triggered_by: str = "speed-agent"
    inventory: Optional[SiteInventory] = None


class BuildStatus(BaseModel):
    build_id: str
    status: BuildState = "queued"
    edge_url: Optional[str] = None
    error_message: Optional[str] = None
    pages_total: int = 0
    pages_processed: int = 0

    @property
    def finished(self) -> bool:
        return self.status in ("success", "failed")


# ============================================================================
# PROTOCOLS
# ============================================================================

class Optimizer(Protocol):
    async def optimize(self, inventory: SiteInventory, settings: OptimizationSettings) -> OptimizeResult:
        ...


class Deployer(Protocol):
    async def deploy(self, project_name: str, output_dir: str) -> DeployResult:
        ...


class Scorer(Protocol):
    async def score(self, url: str, strategy: str = "mobile") -> ScoreResult:
        """Raises ScorerUnavailable when the service cannot be used."""
        ...


class Reviewer(Protocol):
    async def review(
        self,
        iteration_result: IterationResult,
        history: List[IterationResult],
        inventory: SiteInventory,
    ) -> ReviewDecision:
        ...


class Planner(Protocol):
    async def plan(self, inventory: SiteInventory) -> OptimizationPlan:
        ...


class BuildQueue(Protocol):
    async def enqueue(self, job: BuildJob) -> None:
        """Enqueue a job. Enqueuing an already known build_id is a no-op."""
        ...

    async def get_status(self, build_id: str) -> Optional[BuildStatus]:
        ...


class SiteStore(Protocol):
    async def get_site(self, site_id: str) -> SiteRecord:
        """Raises SiteNotFoundError for unknown ids."""
        ...

    async def save_settings(self, site_id: str, settings: OptimizationSettings) -> None:
        ...

    async def set_edge_url(self, site_id: str, edge_url: str) -> None:
        ...


class InMemorySiteStore:
    def __init__(self, sites: Optional[List[SiteRecord]] = None):
        self._sites: Dict[str, SiteRecord] = {s.site_id: s for s in sites or []}
        self._lock = asyncio.Lock()

    async def add_site(self, site: SiteRecord) -> None:
        async with self._lock:
            self._sites[site.site_id] = site

    async def get_site(self, site_id: str) -> SiteRecord:
        site = self._sites.get(site_id)
        if site is None:
            raise SiteNotFoundError(site_id)
        return site

    async def save_settings(self, site_id: str, settings: OptimizationSettings) -> None:
        async with self._lock:
            site = await self.get_site(site_id)
            self._sites[site_id] = site.model_copy(update={"settings": settings.model_dump()})

    async def set_edge_url(self, site_id: str, edge_url: str) -> None:
        async with self._lock:
            site = await self.get_site(site_id)
            self._sites[site_id] = site.model_copy(update={"edge_url": edge_url})
