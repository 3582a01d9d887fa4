"""Tests for AssistantSession: routing, history, learning and persistence."""

import asyncio

import pytest

from zynthra.assistant.engine import (
    CONTACTS_KEY,
    CONTEXT_KEY,
    LEARNING_KEY,
    PROFILE_KEY,
    AssistantSession,
)
from zynthra.assistant.responses import CLARIFICATION, RESPONSES
from zynthra.config import AssistantConfig
from zynthra.core.errors import NotInitializedError, UnknownPlatformError, ValidationError
from zynthra.core.types import ActionType, Role


class TestInitialize:
    """Test loading session state."""

    @pytest.mark.asyncio
    async def test_fresh_user(self, make_session, repo):
        session = await make_session()

        assert session.initialized
        assert session.profile.name == "User"
        assert session.profile.usage_stats.sessions_started == 1
        assert len(session.history) == 0
        assert await repo.load("u1", PROFILE_KEY) is not None

    @pytest.mark.asyncio
    async def test_seed_applies_to_new_user(self, make_session, seed):
        session = await make_session(seed=seed)

        assert session.profile.name == "Sam"
        assert session.addresses.home.text == "1 Main St"
        assert session.addresses.work.text == "9 Office Park"
        assert [c.name for c in session.contacts] == ["Alex"]

    @pytest.mark.asyncio
    async def test_seed_ignored_for_existing_user(self, make_session, seed):
        first = await make_session()
        await first.set_name("Robin")

        second = await make_session(seed=seed)

        assert second.profile.name == "Robin"
        assert second.contacts == []

    @pytest.mark.asyncio
    async def test_corrupt_document_fails_initialize(self, make_session, repo):
        await repo.save("u1", CONTACTS_KEY, [{"bogus": True}])

        session = await make_session(initialize=False)

        assert await session.initialize() is False
        assert not session.initialized

    @pytest.mark.asyncio
    async def test_uninitialized_session_refuses_input(self, make_session, repo):
        session = await make_session(initialize=False)

        reply = await session.process_input("hello")

        assert not reply.success
        assert reply.response == "System not initialized"
        assert reply.action is None
        assert len(session.history) == 0
        assert await repo.list_keys("u1") == []

    @pytest.mark.asyncio
    async def test_uninitialized_session_refuses_account_changes(self, make_session):
        session = await make_session(initialize=False)

        with pytest.raises(NotInitializedError):
            await session.set_name("Robin")


class TestProcessInput:
    """Test the classify, dispatch and learn pipeline."""

    @pytest.mark.asyncio
    async def test_general_reply_has_no_action(self, make_session):
        session = await make_session()

        reply = await session.process_input("hello there")

        assert reply.success
        assert reply.response in RESPONSES["greeting"]
        assert reply.action is None
        assert session.learning == {}

    @pytest.mark.asyncio
    async def test_order_end_to_end(self, make_session, seed, commerce):
        session = await make_session(seed=seed)

        reply = await session.process_input("Order a new phone from Amazon")

        assert reply.success
        assert reply.action.type == ActionType.ORDER_PLACED
        assert "new phone" in reply.response
        assert commerce.orders[0].address == "1 Main St"

    @pytest.mark.asyncio
    async def test_handler_failure_is_still_a_reply(self, make_session):
        """Test a failed business action keeps success=True on the reply."""
        session = await make_session()

        reply = await session.process_input("order emergency help")

        assert reply.success
        assert reply.response.startswith("I need to know what product")
        assert reply.action is None

    @pytest.mark.asyncio
    async def test_sos_without_contacts(self, make_session, messaging):
        session = await make_session()

        reply = await session.process_input("help me emergency")

        assert reply.action.type == ActionType.PROMPT_EMERGENCY_CONTACTS
        assert messaging.texts == []

    @pytest.mark.asyncio
    async def test_low_confidence_asks_to_rephrase(self, make_session, commerce):
        session = await make_session(config=AssistantConfig(confidence_threshold=0.85))

        reply = await session.process_input("order a phone")

        assert reply.response == CLARIFICATION
        assert commerce.orders == []
        assert session.learning == {}

    @pytest.mark.asyncio
    async def test_usage_stats(self, make_session):
        session = await make_session()

        await session.process_input("hi")
        await session.process_input("thanks")

        assert session.profile.usage_stats.commands_issued == 2

    @pytest.mark.asyncio
    async def test_voice_flag_accepted(self, make_session):
        session = await make_session()

        reply = await session.process_input("hello", is_voice=True)

        assert reply.success


class TestHistory:
    """Test the conversation window."""

    @pytest.mark.asyncio
    async def test_turns_alternate(self, make_session):
        session = await make_session()

        await session.process_input("hello")

        assert [t.role for t in session.history] == [Role.USER, Role.ASSISTANT]
        assert session.history[0].content == "hello"

    @pytest.mark.asyncio
    async def test_window_keeps_newest_twenty(self, make_session, repo):
        session = await make_session()

        for i in range(15):
            await session.process_input(f"hello {i}")

        assert len(session.history) == 20
        assert session.history[0].content == "hello 5"
        assert session.history[-2].content == "hello 14"
        assert len(await repo.load("u1", CONTEXT_KEY)) == 20

    @pytest.mark.asyncio
    async def test_window_size_is_configurable(self, make_session):
        session = await make_session(config=AssistantConfig(history_limit=4))

        for i in range(5):
            await session.process_input(f"hello {i}")

        assert [t.content for t in session.history][0] == "hello 3"

    @pytest.mark.asyncio
    async def test_clear_history(self, make_session, repo):
        session = await make_session()
        await session.process_input("hello")

        await session.clear_history()

        assert len(session.history) == 0
        assert await repo.load("u1", CONTEXT_KEY) == []

    @pytest.mark.asyncio
    async def test_concurrent_calls_are_serialized(self, make_session, seed, commerce):
        """Test each user turn is immediately followed by its own reply."""
        commerce.delay = 0.01
        session = await make_session(seed=seed)

        await asyncio.gather(
            *(session.process_input(f"search for item{i}") for i in range(10))
        )

        turns = list(session.history)
        assert len(turns) == 20
        for user_turn, reply_turn in zip(turns[::2], turns[1::2]):
            assert user_turn.role == Role.USER
            assert reply_turn.role == Role.ASSISTANT
            query = user_turn.content.removeprefix("search for ")
            assert f"for {query} on" in reply_turn.content


class TestLearning:
    """Test per-intent learning records."""

    @pytest.mark.asyncio
    async def test_counts_match_dispatches(self, make_session, seed):
        session = await make_session(seed=seed)

        await session.process_input("order a phone from amazon")
        await session.process_input("order emergency help")
        await session.process_input("order something")
        await session.process_input("hello")

        record = session.learning["order"]
        assert record.success_count == 1
        assert record.failure_count == 2
        assert record.dispatch_count == 3
        assert "general" not in session.learning

    @pytest.mark.asyncio
    async def test_entity_frequency(self, make_session, seed):
        session = await make_session(seed=seed)

        await session.process_input("order a new phone from amazon")
        await session.process_input("order a new phone from amazon")

        freq = session.learning["order"].entity_frequency
        assert freq["product"] == {"new phone": 2}
        assert freq["platform"] == {"amazon": 2}
        assert freq["quantity"] == {"1": 2}
        assert freq["payment_method"] == {"COD": 2}

    @pytest.mark.asyncio
    async def test_learning_survives_reload(self, make_session, seed):
        session = await make_session(seed=seed)
        await session.process_input("search for lamps")

        reloaded = await make_session()

        assert reloaded.learning["search"].success_count == 1
        assert reloaded.learning["search"].last_used is not None
        assert reloaded.profile.usage_stats.sessions_started == 2
        assert len(reloaded.history) == 2


class TestPersistence:
    """Test write-through and retry of failed writes."""

    @pytest.mark.asyncio
    async def test_failed_write_is_retried(self, make_session, repo, flaky_store):
        session = await make_session(store=flaky_store)

        flaky_store.failing = True
        reply = await session.process_input("hello")

        assert reply.success
        assert session.pending_writes == {PROFILE_KEY, CONTEXT_KEY}
        assert len(session.history) == 2

        flaky_store.failing = False
        await session.process_input("hello again")

        assert session.pending_writes == frozenset()
        assert len(await repo.load("u1", CONTEXT_KEY)) == 4

    @pytest.mark.asyncio
    async def test_learning_written_after_dispatch(self, make_session, repo):
        session = await make_session()

        await session.process_input("search for lamps")

        stored = await repo.load("u1", LEARNING_KEY)
        assert stored["search"]["success_count"] == 1


class TestAccount:
    """Test account management on the session."""

    @pytest.mark.asyncio
    async def test_contacts_round_trip(self, make_session, repo):
        session = await make_session()

        first = await session.add_emergency_contact("Alex", "+1555000001")
        second = await session.add_emergency_contact("Jo", "+1555000002")

        assert (first.priority, second.priority) == (1, 2)
        assert await session.remove_emergency_contact(first.id)
        assert await session.remove_emergency_contact("missing") is False
        stored = await repo.load("u1", CONTACTS_KEY)
        assert [(c["name"], c["priority"]) for c in stored] == [("Jo", 1)]

    @pytest.mark.asyncio
    async def test_contact_priority(self, make_session):
        session = await make_session()
        a = await session.add_emergency_contact("Alex", "+1555000001")
        await session.add_emergency_contact("Jo", "+1555000002")

        assert await session.update_contact_priority(a.id, 2)
        assert [c.name for c in session.contacts] == ["Jo", "Alex"]

    @pytest.mark.asyncio
    async def test_address_enables_order(self, make_session, commerce):
        session = await make_session()

        first = await session.process_input("order a lamp to work")
        await session.set_address("work", "9 Office Park")
        second = await session.process_input("order a lamp to work")

        assert first.action.type == ActionType.PROMPT_ADDRESS
        assert second.action.type == ActionType.ORDER_PLACED
        assert commerce.orders[0].address == "9 Office Park"

    @pytest.mark.asyncio
    async def test_remove_address(self, make_session):
        session = await make_session()
        await session.set_address("home", "1 Main St")

        assert await session.remove_address("home")
        assert await session.remove_address("home") is False
        assert session.addresses.home is None

    @pytest.mark.asyncio
    async def test_preferred_platform(self, make_session, seed, commerce):
        session = await make_session(seed=seed)

        await session.set_preferred_platform("Flipkart")
        await session.process_input("order a kettle")

        assert commerce.orders[0].platform == "flipkart"
        with pytest.raises(UnknownPlatformError):
            await session.set_preferred_platform("ebay")

    @pytest.mark.asyncio
    async def test_payment_method(self, make_session, seed):
        session = await make_session(seed=seed)

        await session.set_payment_method("upi")
        reply = await session.process_input("order a phone from amazon")

        assert "with UPI payment" in reply.response
        with pytest.raises(ValidationError):
            await session.set_payment_method("bitcoin")

    @pytest.mark.asyncio
    async def test_stats(self, make_session):
        session = await make_session()
        await session.process_input("search for lamps")

        stats = session.stats()

        assert stats["user_id"] == "u1"
        assert stats["history_length"] == 2
        assert stats["usage"]["commands_issued"] == 1
        assert stats["learning"]["search"]["success_count"] == 1


@pytest.mark.asyncio
async def test_session_defaults_without_config(repo, handlers):
    session = AssistantSession("u2", repo.for_user("u2"), handlers)

    assert not session.initialized
    assert session.preferred_platform == "amazon"
    assert session.preferred_payment_method == "COD"
