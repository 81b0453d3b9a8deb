"""
Run registry - The only structure shared between concurrent runs.

Maps site id -> AgentState. Entries are written by their owning run and
evicted on a fixed delay once the run is finished.
"""

import asyncio
from typing import Dict, List, Optional

from speed_agent.core.errors import RunAlreadyActiveError
from speed_agent.core.state import AgentState


class RunRegistry:
    def __init__(self):
        self._runs: Dict[str, AgentState] = {}
        self._evictions: Dict[str, asyncio.TimerHandle] = {}

    def create(self, state: AgentState) -> AgentState:
        """
        Register a new run for state.site_id.

        Raises RunAlreadyActiveError when a non-terminal run is registered
        for the same site. A finished run is replaced.
        """
        existing = self._runs.get(state.site_id)
        if existing is not None and not existing.is_terminal:
            raise RunAlreadyActiveError(state.site_id)
        self._cancel_eviction(state.site_id)
        self._runs[state.site_id] = state
        return state

    def get(self, site_id: str) -> Optional[AgentState]:
        return self._runs.get(site_id)

    def delete(self, site_id: str) -> None:
        self._cancel_eviction(site_id)
        self._runs.pop(site_id, None)

    def stop(self, site_id: str) -> bool:
        """Flip the abort flag of a live run. Returns False if there is none."""
        state = self._runs.get(site_id)
        if state is None or state.is_terminal:
            return False
        state.aborted = True
        return True

    def expire(self, site_id: str, delay_seconds: float, run_id: str) -> None:
        """
        Evict run_id after delay_seconds.

        No-op when the entry for site_id already belongs to another run, so a
        finishing run can never schedule eviction of its successor.
        """
        state = self._runs.get(site_id)
        if state is None or state.run_id != run_id:
            return
        self._cancel_eviction(site_id)
        loop = asyncio.get_running_loop()
        self._evictions[site_id] = loop.call_later(delay_seconds, self._evict, site_id, run_id)

    def active_site_ids(self) -> List[str]:
        return [site_id for site_id, state in self._runs.items() if not state.is_terminal]

    def _evict(self, site_id: str, run_id: str) -> None:
        self._evictions.pop(site_id, None)
        state = self._runs.get(site_id)
        if state is not None and state.run_id == run_id:
            del self._runs[site_id]

    def _cancel_eviction(self, site_id: str) -> None:
        handle = self._evictions.pop(site_id, None)
        if handle is not None:
            handle.cancel()

    def __len__(self) -> int:
        return len(self._runs)

    def __contains__(self, site_id: str) -> bool:
        return site_id in self._runs
