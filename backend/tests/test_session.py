"""
Tests for the session resolver and the session registry.

Each test drives its own event loop with asyncio.run.
"""
import asyncio
import time

from agency.core.session import SessionRegistry, SessionResolver
from agency.schemas.user import UserProfile
from fakes import principal


class ManualIdentity:
    """Identity whose auth-state transitions are pushed by the test."""

    def __init__(self):
        self.listeners = []
        self.subscribe_calls = 0

    def subscribe(self, on_change):
        self.subscribe_calls += 1
        self.listeners.append(on_change)
        on_change(None)

        def unsubscribe():
            self.listeners.remove(on_change)

        return unsubscribe

    def push(self, who):
        for listener in list(self.listeners):
            listener(who)

    async def sign_out(self):
        self.push(None)

    async def revalidate(self):
        return None


class GatedRoles:
    """Role reads that block until the test releases them."""

    def __init__(self, roles=None):
        self.roles = dict(roles or {})
        self.calls = []
        self.gates = []

    async def load_profile(self, uid):
        role = self.roles.get(uid)
        gate = asyncio.Event()
        self.calls.append(uid)
        self.gates.append(gate)
        await gate.wait()
        return UserProfile(uid=uid, role=role) if role else None

    def release_all(self):
        for gate in self.gates:
            gate.set()


async def _spin(times=5):
    for _ in range(times):
        await asyncio.sleep(0)


class TestSessionResolverLifecycle:
    """Subscription, close and initial state."""

    def test_initial_state_is_loading(self):
        async def scenario():
            resolver = SessionResolver(ManualIdentity(), GatedRoles())
            return resolver.state

        state = asyncio.run(scenario())
        assert state.loading is True
        assert state.principal is None
        assert state.role is None

    def test_start_subscribes_once(self):
        async def scenario():
            identity = ManualIdentity()
            resolver = SessionResolver(identity, GatedRoles())
            resolver.start()
            resolver.start()
            return identity, resolver

        identity, resolver = asyncio.run(scenario())
        assert identity.subscribe_calls == 1
        assert len(identity.listeners) == 1

    def test_no_principal_settles_without_read(self):
        """A signed-out session never reaches the role resolver."""
        async def scenario():
            roles = GatedRoles()
            async with SessionResolver(ManualIdentity(), roles) as resolver:
                state = await resolver.wait_settled(1)
                refreshed = await resolver.refresh()
            return roles, state, refreshed

        roles, state, refreshed = asyncio.run(scenario())
        assert roles.calls == []
        assert state.loading is False
        assert state.principal is None
        assert refreshed.principal is None

    def test_close_is_idempotent_and_unsubscribes(self):
        async def scenario():
            identity = ManualIdentity()
            resolver = SessionResolver(identity, GatedRoles())
            resolver.start()
            await resolver.close()
            await resolver.close()
            resolver.start()
            return identity, resolver

        identity, resolver = asyncio.run(scenario())
        assert resolver.closed
        assert identity.listeners == []
        assert identity.subscribe_calls == 1

    def test_context_manager_releases(self):
        async def scenario():
            identity = ManualIdentity()
            async with SessionResolver(identity, GatedRoles()):
                inside = len(identity.listeners)
            return inside, len(identity.listeners)

        assert asyncio.run(scenario()) == (1, 0)


class TestSessionResolverReads:
    """Role resolution on principal transitions."""

    def test_sign_in_resolves_role(self):
        async def scenario():
            identity = ManualIdentity()
            roles = GatedRoles({"dj1": "dj"})
            seen = []
            async with SessionResolver(identity, roles) as resolver:
                resolver.observe(seen.append)
                identity.push(principal("dj1"))
                await _spin()
                roles.release_all()
                state = await resolver.wait_settled(1)
            return seen, state

        seen, state = asyncio.run(scenario())
        assert state.role == "dj"
        assert state.loading is False
        assert [(s.principal.uid if s.principal else None, s.loading) for s in seen] == [
            (None, False),
            ("dj1", True),
            ("dj1", False),
        ]

    def test_missing_profile_reads_as_no_role(self):
        async def scenario():
            identity = ManualIdentity()
            roles = GatedRoles()
            async with SessionResolver(identity, roles) as resolver:
                identity.push(principal("ghost"))
                await _spin()
                roles.release_all()
                return await resolver.wait_settled(1)

        state = asyncio.run(scenario())
        assert state.principal.uid == "ghost"
        assert state.role is None
        assert state.loading is False

    def test_same_principal_is_read_once(self):
        """Re-emitting the current principal never starts a second read."""
        async def scenario():
            identity = ManualIdentity()
            roles = GatedRoles({"a": "admin"})
            async with SessionResolver(identity, roles) as resolver:
                identity.push(principal("a"))
                identity.push(principal("a"))
                await _spin()
                roles.release_all()
                await resolver.wait_settled(1)
                identity.push(principal("a"))
                await _spin()
            return roles.calls

        assert asyncio.run(scenario()) == ["a"]

    def test_fast_switch_never_publishes_stale_role(self):
        """Sign-in A, sign-out, sign-in B: A's role is never published."""
        async def scenario():
            identity = ManualIdentity()
            roles = GatedRoles({"a": "admin", "b": "dj"})
            seen = []
            async with SessionResolver(identity, roles) as resolver:
                resolver.observe(seen.append)
                identity.push(principal("a"))
                await _spin()
                identity.push(None)
                identity.push(principal("b"))
                await _spin()
                roles.release_all()
                await _spin()
                state = await resolver.wait_settled(1)
            return seen, state

        seen, state = asyncio.run(scenario())
        assert state.principal.uid == "b"
        assert state.role == "dj"
        assert all(s.role != "admin" for s in seen)

    def test_overlapping_refresh_drops_older_result(self):
        """A refresh superseded by a newer one does not overwrite it."""
        async def scenario():
            identity = ManualIdentity()
            roles = GatedRoles({"a": "producer"})
            async with SessionResolver(identity, roles) as resolver:
                identity.push(principal("a"))
                await _spin()
                roles.release_all()
                await resolver.wait_settled(1)

                roles.roles["a"] = "dj"
                older = asyncio.ensure_future(resolver.refresh())
                await _spin()
                roles.roles["a"] = "admin"
                newer = asyncio.ensure_future(resolver.refresh())
                await _spin()
                roles.gates[2].set()
                await newer
                roles.gates[1].set()
                older_state = await older
                return older_state, resolver.state

        older_state, state = asyncio.run(scenario())
        assert state.role == "admin"
        assert older_state.role == "dj"

    def test_overlapping_refresh_judges_each_caller_on_its_own_read(self):
        """A demotion seen by an older refresh is not masked by the shared state."""
        async def scenario():
            identity = ManualIdentity()
            roles = GatedRoles({"a": "admin"})
            async with SessionResolver(identity, roles) as resolver:
                identity.push(principal("a"))
                await _spin()
                roles.release_all()
                await resolver.wait_settled(1)

                del roles.roles["a"]
                first = asyncio.ensure_future(resolver.refresh())
                await _spin()
                second = asyncio.ensure_future(resolver.refresh())
                await _spin()
                roles.gates[1].set()
                first_state = await first
                roles.gates[2].set()
                second_state = await second
                return first_state, second_state, resolver.state

        first_state, second_state, shared = asyncio.run(scenario())
        assert first_state.role is None
        assert second_state.role is None
        assert shared.role is None

    def test_refresh_after_close_is_anonymous(self):
        async def scenario():
            identity = ManualIdentity()
            roles = GatedRoles({"a": "admin"})
            resolver = SessionResolver(identity, roles)
            resolver.start()
            identity.push(principal("a"))
            await _spin()
            roles.release_all()
            await resolver.wait_settled(1)
            await resolver.close()
            return await resolver.refresh()

        state = asyncio.run(scenario())
        assert state.principal is None
        assert state.loading is False

    def test_close_during_pending_read(self):
        """A read finishing after close is a no-op."""
        async def scenario():
            identity = ManualIdentity()
            roles = GatedRoles({"a": "admin"})
            seen = []
            resolver = SessionResolver(identity, roles)
            resolver.start()
            resolver.observe(seen.append)
            identity.push(principal("a"))
            await _spin()
            await resolver.close()
            roles.release_all()
            await _spin()
            return resolver, seen, identity

        resolver, seen, identity = asyncio.run(scenario())
        assert resolver.state.role is None
        assert resolver.state.loading is True
        assert not any(s.role == "admin" for s in seen)
        assert identity.listeners == []

    def test_observer_errors_do_not_break_publishing(self):
        async def scenario():
            identity = ManualIdentity()
            roles = GatedRoles({"a": "dj"})
            seen = []

            def broken(state):
                raise RuntimeError("boom")

            async with SessionResolver(identity, roles) as resolver:
                resolver.observe(seen.append)
                resolver.observe(lambda s: broken(s) if s.principal else None)
                identity.push(principal("a"))
                await _spin()
                roles.release_all()
                await resolver.wait_settled(1)
            return seen

        seen = asyncio.run(scenario())
        assert seen[-1].role == "dj"

    def test_wait_settled_times_out(self):
        async def scenario():
            identity = ManualIdentity()
            async with SessionResolver(identity, GatedRoles({"a": "dj"})) as resolver:
                identity.push(principal("a"))
                return await resolver.wait_settled(0.01)

        state = asyncio.run(scenario())
        assert state.loading is True


class TestSessionRegistry:
    """Cookie id to resolver mapping."""

    def test_open_and_get(self):
        async def scenario():
            registry = SessionRegistry(ManualIdentity, GatedRoles(), idle_minutes=1)
            sid, resolver = registry.open()
            other, _ = registry.open()
            found = registry.get(sid)
            missing = registry.get("nope")
            none = registry.get(None)
            await registry.close_all()
            return sid, other, resolver, found, missing, none, len(registry)

        sid, other, resolver, found, missing, none, remaining = asyncio.run(scenario())
        assert sid != other
        assert found is resolver
        assert missing is None and none is None
        assert remaining == 0
        assert resolver.closed

    def test_sweep_closes_idle_sessions(self):
        async def scenario():
            registry = SessionRegistry(ManualIdentity, GatedRoles(), idle_minutes=1)
            old_sid, old = registry.open()
            new_sid, new = registry.open()
            old.last_seen = time.monotonic() - 120
            closed = await registry.sweep()
            return closed, registry.get(old_sid), registry.get(new_sid), old, new

        closed, old_lookup, new_lookup, old, new = asyncio.run(scenario())
        assert closed == 1
        assert old_lookup is None
        assert new_lookup is new
        assert old.closed and not new.closed

    def test_closed_session_is_not_returned(self):
        async def scenario():
            registry = SessionRegistry(ManualIdentity, GatedRoles())
            sid, resolver = registry.open()
            await resolver.close()
            return registry.get(sid)

        assert asyncio.run(scenario()) is None

    def test_closed_session_is_dropped_on_lookup(self):
        async def scenario():
            registry = SessionRegistry(ManualIdentity, GatedRoles())
            sid, resolver = registry.open()
            await resolver.close()
            registry.get(sid)
            return len(registry)

        assert asyncio.run(scenario()) == 0

    def test_open_prunes_without_sweep(self):
        """Idle and closed sessions are dropped when a new one opens."""
        async def scenario():
            registry = SessionRegistry(ManualIdentity, GatedRoles(), idle_minutes=1)
            idle_sid, idle = registry.open()
            closed_sid, closed = registry.open()
            live_sid, live = registry.open()
            idle.last_seen = time.monotonic() - 120
            await closed.close()
            new_sid, _ = registry.open()
            return registry, idle, (idle_sid, closed_sid, live_sid, new_sid)

        registry, idle, (idle_sid, closed_sid, live_sid, new_sid) = asyncio.run(scenario())
        assert len(registry) == 2
        assert idle.closed
        assert registry.get(idle_sid) is None
        assert registry.get(closed_sid) is None
        assert registry.get(live_sid) is not None
        assert registry.get(new_sid) is not None

    def test_idle_session_is_closed_on_lookup(self):
        async def scenario():
            registry = SessionRegistry(ManualIdentity, GatedRoles(), idle_minutes=1)
            sid, resolver = registry.open()
            resolver.last_seen = time.monotonic() - 120
            return registry.get(sid), resolver, len(registry)

        found, resolver, remaining = asyncio.run(scenario())
        assert found is None
        assert resolver.closed
        assert remaining == 0
