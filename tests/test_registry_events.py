import asyncio

import pytest

from speed_agent.core.errors import RunAlreadyActiveError
from speed_agent.core.events import RunEventBus
from speed_agent.core.registry import RunRegistry
from speed_agent.core.state import AgentState


def _state(site_id="site-1", run_id="run-1"):
    return AgentState(site_id=site_id, run_id=run_id)


# ============================================================================
# AGENT STATE
# ============================================================================

def test_set_phase_closes_previous_interval():
    state = _state()
    state.set_phase("analyzing")
    state.set_phase("planning")

    assert state.phase_timings["analyzing"].end is not None
    assert state.phase_timings["planning"].end is None
    assert state.phase_timings["analyzing"].start <= state.phase_timings["planning"].start
    assert state.last_successful_phase == "planning"


def test_terminal_phase_does_not_update_last_successful_phase():
    state = _state()
    state.set_phase("building")
    state.set_phase("failed")

    assert state.is_terminal
    assert state.last_successful_phase == "building"
    assert state.phase_timings["building"].end is not None


def test_add_log_records_level():
    state = _state()
    entry = state.add_log("WARN", "careful")
    assert state.logs == [entry]
    assert entry.level == "WARN"


# ============================================================================
# RUN REGISTRY
# ============================================================================

def test_create_rejects_second_live_run():
    registry = RunRegistry()
    registry.create(_state(run_id="a"))
    with pytest.raises(RunAlreadyActiveError):
        registry.create(_state(run_id="b"))


def test_create_replaces_finished_run():
    registry = RunRegistry()
    first = registry.create(_state(run_id="a"))
    first.set_phase("complete")

    second = registry.create(_state(run_id="b"))

    assert registry.get("site-1") is second


def test_stop_sets_abort_flag_on_live_run_only():
    registry = RunRegistry()
    state = registry.create(_state())

    assert registry.stop("site-1") is True
    assert state.aborted is True
    assert registry.stop("unknown") is False

    state.set_phase("complete")
    assert registry.stop("site-1") is False


def test_active_site_ids():
    registry = RunRegistry()
    registry.create(_state("a"))
    done = registry.create(_state("b"))
    done.set_phase("failed")

    assert registry.active_site_ids() == ["a"]
    assert len(registry) == 2
    assert "b" in registry


@pytest.mark.asyncio
async def test_expire_evicts_after_delay():
    registry = RunRegistry()
    state = registry.create(_state())
    state.set_phase("complete")

    registry.expire("site-1", 0.01, "run-1")
    assert "site-1" in registry
    await asyncio.sleep(0.05)
    assert "site-1" not in registry


@pytest.mark.asyncio
async def test_eviction_of_old_run_keeps_newer_run():
    registry = RunRegistry()
    old = registry.create(_state(run_id="old"))
    old.set_phase("complete")
    registry.expire("site-1", 0.01, "old")

    newer = registry.create(_state(run_id="new"))
    await asyncio.sleep(0.05)

    assert registry.get("site-1") is newer


@pytest.mark.asyncio
async def test_finishing_run_does_not_expire_its_successor():
    registry = RunRegistry()
    old = registry.create(_state(run_id="old"))
    old.set_phase("complete")
    # a restart lands before the old run's cleanup schedules eviction
    newer = registry.create(_state(run_id="new"))

    registry.expire("site-1", 0.01, "old")
    await asyncio.sleep(0.05)

    assert registry.get("site-1") is newer
    assert registry.stop("site-1") is True
    with pytest.raises(RunAlreadyActiveError):
        registry.create(_state(run_id="third"))


# ============================================================================
# EVENT BUS
# ============================================================================

@pytest.mark.asyncio
async def test_every_subscriber_receives_events_in_order():
    bus = RunEventBus()
    first = bus.subscribe("site-1")
    second = bus.subscribe("site-1")
    channel = bus.channel("site-1", "run-1")

    channel.phase_changed("analyzing", 0)
    channel.log_line("INFO", "hello")

    for queue in (first, second):
        kinds = [queue.get_nowait().kind, queue.get_nowait().kind]
        assert kinds == ["phase-changed", "log-line"]


@pytest.mark.asyncio
async def test_events_are_scoped_to_site():
    bus = RunEventBus()
    other = bus.subscribe("site-2")
    bus.channel("site-1", "run-1").log_line("INFO", "hello")
    assert other.empty()


@pytest.mark.asyncio
async def test_full_queue_drops_events_without_blocking():
    bus = RunEventBus(queue_size=1)
    queue = bus.subscribe("site-1")
    channel = bus.channel("site-1", "run-1")

    channel.log_line("INFO", "one")
    channel.log_line("INFO", "two")

    assert queue.qsize() == 1
    assert queue.get_nowait().payload["message"] == "one"


@pytest.mark.asyncio
async def test_subscription_context_unsubscribes():
    bus = RunEventBus()
    async with bus.subscription("site-1"):
        assert bus.subscriber_count("site-1") == 1
    assert bus.subscriber_count("site-1") == 0
    # publishing with nobody listening is a no-op
    bus.channel("site-1", "run-1").run_complete({"final_verdict": "pass"})
