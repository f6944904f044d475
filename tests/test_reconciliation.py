"""
Tests for the reconciliation driver and the auth event channel.
"""

import pytest

from taqvo_community.auth import AuthState, AuthStateChannel, SessionAuthProvider
from taqvo_community.community import CommunityModel
from taqvo_community.models import JoinWrite
from taqvo_community.reconciliation import ReconciliationDriver

from conftest import CHALLENGE_1, USER_A, USER_B


class TestAuthStateChannel:
    """Test subscription handling."""

    @pytest.mark.asyncio
    async def test_publish_in_subscription_order(self):
        channel = AuthStateChannel()
        seen = []

        async def first(state):
            seen.append(("first", state.user_id))

        async def second(state):
            seen.append(("second", state.user_id))

        channel.subscribe(first)
        channel.subscribe(second)
        await channel.publish(AuthState(user_id=USER_A, is_authenticated=True))

        assert seen == [("first", USER_A), ("second", USER_A)]

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_delivery(self):
        channel = AuthStateChannel()
        seen = []

        async def handler(state):
            seen.append(state)

        unsubscribe = channel.subscribe(handler)
        unsubscribe()
        unsubscribe()
        await channel.publish(AuthState())

        assert seen == []
        assert channel.subscriber_count == 0

    def test_session_state(self):
        assert SessionAuthProvider(USER_A).state == AuthState(user_id=USER_A, is_authenticated=True)
        assert SessionAuthProvider().state.is_authenticated is False


class TestReconciliationDriver:
    """Test auth-driven reload and queue flush."""

    @pytest.mark.asyncio
    async def test_subscribes_on_construction(self, model, auth):
        driver = ReconciliationDriver(model, auth)
        assert driver.is_subscribed
        assert auth.events.subscriber_count == 1

        driver.close()
        assert not driver.is_subscribed
        assert auth.events.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_context_manager_unsubscribes(self, model, auth):
        async with ReconciliationDriver(model, auth) as driver:
            assert driver.is_subscribed
        assert auth.events.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_reconcile_loads_and_flushes(self, model, gateway, auth):
        model.queue.enqueue(JoinWrite(challenge_id=CHALLENGE_1, is_joined=True))
        driver = ReconciliationDriver(model, auth)

        result = await driver.reconcile()

        assert result.succeeded == 1
        assert driver.passes == 1
        assert driver.last_result is result
        assert len(model.challenges) == 2
        assert (CHALLENGE_1, USER_A) in gateway.participants

    @pytest.mark.asyncio
    async def test_sign_in_as_other_user_switches_scope(self, model, gateway, auth):
        driver = ReconciliationDriver(model, auth)
        await driver.reconcile()
        gateway.online = False
        await model.toggle_join(CHALLENGE_1)
        gateway.online = True

        await auth.sign_in(USER_B, "token-b")

        assert model.user_id == USER_B
        assert driver.passes == 2
        assert model.pending_writes == []
        assert model.find_challenge(CHALLENGE_1).is_joined is False
        # user A's queued write stays in A's scope, untouched
        assert (CHALLENGE_1, USER_A) not in gateway.participants

        await auth.sign_in(USER_A, "token-a")
        assert model.find_challenge(CHALLENGE_1).is_joined is True
        assert (CHALLENGE_1, USER_A) in gateway.participants
        assert model.pending_writes == []

    @pytest.mark.asyncio
    async def test_sign_out_moves_to_anonymous_scope(self, model, auth):
        driver = ReconciliationDriver(model, auth)
        await driver.reconcile()
        model.challenge_overrides.set(CHALLENGE_1, True)

        await auth.sign_out()

        assert model.user_id is None
        assert model.challenge_overrides.get() == {}
        assert driver.passes == 2

    @pytest.mark.asyncio
    async def test_token_refresh_reloads_same_user(self, model, auth):
        driver = ReconciliationDriver(model, auth)
        await driver.reconcile()
        model.challenge_overrides.set(CHALLENGE_1, True)

        await auth.update_token("token-a2")

        assert driver.passes == 2
        assert model.user_id == USER_A
        assert model.find_challenge(CHALLENGE_1).is_joined is True

    @pytest.mark.asyncio
    async def test_closed_driver_ignores_events(self, model, auth):
        driver = ReconciliationDriver(model, auth)
        driver.close()

        await auth.sign_in(USER_B)

        assert driver.passes == 0
        assert model.user_id == USER_A

    @pytest.mark.asyncio
    async def test_anonymous_writes_replay_in_anonymous_scope(self, gateway, kv):
        session = SessionAuthProvider()
        gateway.auth = session
        gateway.require_auth = False
        model = CommunityModel(gateway, kv)
        driver = ReconciliationDriver(model, session)
        await driver.reconcile()

        gateway.online = False
        await model.toggle_join(CHALLENGE_1)
        gateway.online = True
        await driver.reconcile()

        assert model.pending_writes == []
        assert (CHALLENGE_1, "anonymous") in gateway.participants
