"""Tests for eventfsm.debounce — debounced event dispatch."""

import asyncio
from unittest.mock import Mock

import pytest

from eventfsm.machine import Machine


# ── Helpers ────────────────────────────────────────────────────────────────────

def _machine(kick=None) -> Machine:
    return Machine("off", {
        "off": {"toggle": "on", "kick": kick or Mock(return_value=None)},
        "on": {"toggle": "off"},
    })


def _kick(machine: Machine) -> Mock:
    return machine.graph.resolve("off", "kick").value


# ── Scheduling ─────────────────────────────────────────────────────────────────

class TestDebounce:
    def test_debounce_is_a_function(self):
        assert callable(_machine().some_event.debounce)

    def test_requires_running_loop(self):
        m = _machine()
        with pytest.raises(RuntimeError):
            m.kick.debounce(0.1)
        assert not m._debounce.pending("kick")

    @pytest.mark.asyncio
    async def test_negative_wait_raises(self):
        with pytest.raises(ValueError, match="wait"):
            _machine().kick.debounce(-1)

    @pytest.mark.asyncio
    async def test_invokes_event_after_wait(self):
        m = _machine()
        assert await m.kick.debounce(0.01) == "off"
        _kick(m).assert_called_once_with(m)

    @pytest.mark.asyncio
    async def test_passes_arguments_through(self):
        m = _machine()
        await m.kick.debounce(0.01, "hard")
        _kick(m).assert_called_once_with(m, "hard")

    @pytest.mark.asyncio
    async def test_resolves_to_new_state_and_notifies(self):
        m = _machine()
        cb = Mock()
        m.subscribe(cb)
        cb.reset_mock()

        assert await m.toggle.debounce(0.01) == "on"
        cb.assert_called_once_with("on")

    @pytest.mark.asyncio
    async def test_not_invoked_before_wait(self):
        m = _machine()
        pending = m.kick.debounce(0.2)
        await asyncio.sleep(0.05)
        _kick(m).assert_not_called()
        assert m._debounce.pending("kick")
        await pending
        assert not m._debounce.pending("kick")

    @pytest.mark.asyncio
    async def test_coalesces_calls_within_wait(self):
        m = _machine()
        first = m.kick.debounce(0.2, 1)
        await asyncio.sleep(0.1)
        second = m.kick.debounce(0.2, 2)
        await asyncio.sleep(0.12)
        _kick(m).assert_not_called()
        assert not first.done()

        assert await second == "off"
        _kick(m).assert_called_once_with(m, 2)
        assert first.result() == "off"

    @pytest.mark.asyncio
    async def test_uses_last_calls_wait(self):
        m = _machine()
        m.kick.debounce(0.5, 1)
        await asyncio.sleep(0.05)
        await asyncio.wait_for(m.kick.debounce(0.01, 2), timeout=0.3)
        _kick(m).assert_called_once_with(m, 2)

    @pytest.mark.asyncio
    async def test_events_have_separate_slots(self):
        m = _machine()
        kick = m.kick.debounce(0.01, 1)
        m.toggle.debounce(0.01)
        await kick
        _kick(m).assert_called_once_with(m, 1)

    @pytest.mark.asyncio
    async def test_machines_do_not_share_slots(self):
        a, b = _machine(), _machine()
        first = a.kick.debounce(0.01, "a")
        second = b.kick.debounce(0.01, "b")
        await asyncio.gather(first, second)
        _kick(a).assert_called_once_with(a, "a")
        _kick(b).assert_called_once_with(b, "b")


# ── Cancellation ───────────────────────────────────────────────────────────────

class TestCancellation:
    @pytest.mark.asyncio
    async def test_none_wait_cancels_pending_call(self):
        m = _machine()
        kick = m.kick.debounce(0.05, 1)
        cancellation = m.kick.debounce(None)
        assert await cancellation == "off"
        await asyncio.sleep(0.1)
        _kick(m).assert_not_called()
        assert not kick.done()
        assert not m._debounce.pending("kick")

    @pytest.mark.asyncio
    async def test_cancel_without_pending_call(self):
        m = _machine()
        assert await m.kick.debounce(None) == "off"

    @pytest.mark.asyncio
    async def test_cancel_reports_current_state(self):
        m = _machine()
        m.toggle()
        assert await m.toggle.debounce(None) == "on"

    @pytest.mark.asyncio
    async def test_controller_cancel(self):
        m = _machine()
        pending = m.kick.debounce(0.05)
        assert m._debounce.cancel("kick")
        assert not m._debounce.cancel("kick")
        assert await pending == "off"

    @pytest.mark.asyncio
    async def test_destroy_cancels_pending_calls(self):
        m = _machine()
        pending = m.kick.debounce(0.05)
        m.destroy()
        assert await pending == "off"
        await asyncio.sleep(0.1)
        _kick(m).assert_not_called()

    @pytest.mark.asyncio
    async def test_caller_may_cancel_its_own_future(self):
        m = _machine()
        pending = m.kick.debounce(0.01)
        pending.cancel()
        await asyncio.sleep(0.05)
        _kick(m).assert_called_once_with(m)


# ── Async and failing handlers ─────────────────────────────────────────────────

class TestDebouncedHandlers:
    @pytest.mark.asyncio
    async def test_async_hooks(self):
        order = []

        async def on_exit(machine, meta):
            await asyncio.sleep(0)
            order.append("on:_exit")

        m = Machine("off", {
            "off": {"toggle": "on", "_exit": lambda machine, meta: order.append("off:_exit")},
            "on": {
                "toggle": "off",
                "_enter": lambda machine, meta: order.append("on:_enter"),
                "_exit": on_exit,
            },
        })
        m.subscribe(lambda state: order.append(state))
        order.clear()

        assert await m.toggle.debounce(0.001) == "on"
        assert await m.toggle.debounce(0.001) == "off"
        assert order == ["off:_exit", "on:_enter", "on", "on:_exit", "off"]

    @pytest.mark.asyncio
    async def test_async_action(self):
        async def warm_up(machine, delay):
            await asyncio.sleep(delay)
            return "on"

        m = Machine("off", {"off": {"warm_up": warm_up}, "on": {}})
        assert await m.warm_up.debounce(0.01, 0.01) == "on"
        assert m.state == "on"

    @pytest.mark.asyncio
    async def test_handler_error_set_on_future(self):
        m = _machine(Mock(side_effect=RuntimeError("jammed")))
        with pytest.raises(RuntimeError, match="jammed"):
            await m.kick.debounce(0.01)
        assert m.state == "off"

    @pytest.mark.asyncio
    async def test_async_handler_error_set_on_future(self):
        async def fail(machine):
            raise ValueError("nope")

        m = Machine("off", {"off": {"fail": fail}})
        with pytest.raises(ValueError, match="nope"):
            await m.fail.debounce(0.01)
