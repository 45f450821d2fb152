"""Tests for the in-memory session registry."""

import httpx

from app.services.gemini_client import GeminiClient
from app.services.sessions import SessionRegistry
from conftest import MONDAY, ScriptedGemini, gemini_reply, weekly_plan_payload


def _registry(config, store, sleep) -> SessionRegistry:
    handler = ScriptedGemini(gemini_reply(weekly_plan_payload()))
    return SessionRegistry(
        config,
        store,
        GeminiClient(config, transport=httpx.MockTransport(handler)),
        today=lambda: MONDAY,
        sleep=sleep,
    )


async def test_open_registers_controller(config, store, sleep):
    registry = _registry(config, store, sleep)

    controller = await registry.open()

    assert len(registry) == 1
    assert registry.get(controller.session.user_id) is controller
    assert registry.get("nobody") is None


async def test_oldest_session_is_dropped_past_the_cap(config, store, sleep):
    config.auto_generate = False
    config.max_sessions = 2
    registry = _registry(config, store, sleep)

    first = await registry.open()
    second = await registry.open()
    third = await registry.open()

    assert len(registry) == 2
    assert registry.get(first.session.user_id) is None
    assert registry.get(second.session.user_id) is second
    assert registry.get(third.session.user_id) is third


async def test_recently_used_session_survives_eviction(config, store, sleep):
    config.auto_generate = False
    config.max_sessions = 2
    registry = _registry(config, store, sleep)

    first = await registry.open()
    second = await registry.open()
    registry.get(first.session.user_id)
    await registry.open()

    assert registry.get(first.session.user_id) is first
    assert registry.get(second.session.user_id) is None
