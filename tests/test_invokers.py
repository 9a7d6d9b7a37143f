import asyncio

import pytest

from cineprompt.core.exceptions import OperationInProgressError, TranslationError
from cineprompt.engine.catalog import STATIC_LOCKED, ShotType
from cineprompt.engine.invokers import EnhancementInvoker, TranslationInvoker
from cineprompt.engine.synchronizer import DraftSynchronizer
from cineprompt.services.enhancement import ReferenceImage

FALLBACK_FOR_A_CAR = (
    "Medium Shot, Waist-up using a 35mm or 50mm Prime Lens at f/4.0 or f/5.6 featuring a car, "
    "Cinematic lighting with professional color grading. "
    "Static, locked-off camera shot with no movement."
)


@pytest.fixture()
async def sync(translator):
    synchronizer = DraftSynchronizer(translator, debounce_seconds=0.02)
    yield synchronizer
    await synchronizer.aclose()


class TestTranslationInvoker:
    @pytest.mark.anyio
    async def test_blank_text_is_a_no_op(self, sync, translator):
        invoker = TranslationInvoker(sync, translator)
        assert await invoker.translate_manual() is None
        assert translator.calls == []

    @pytest.mark.anyio
    async def test_replaces_raw_text_and_draft(self, sync, translator):
        translator.responses["мужчина идёт"] = "A protagonist walks"
        sync.set_raw_content("мужчина идёт")
        invoker = TranslationInvoker(sync, translator)

        assert await invoker.translate_manual() == "A protagonist walks"

        assert sync.raw_content == "A protagonist walks"
        assert sync.translated_draft == "A protagonist walks"
        assert not invoker.in_progress
        assert "featuring A protagonist walks." in sync.assembled_prompt

    @pytest.mark.anyio
    async def test_failure_leaves_state_untouched(self, sync, translator):
        sync.set_raw_content("привет")
        translator.fail = True
        invoker = TranslationInvoker(sync, translator)

        with pytest.raises(TranslationError):
            await invoker.translate_manual()

        assert sync.raw_content == "привет"
        assert not invoker.in_progress

    @pytest.mark.anyio
    async def test_second_call_while_running_is_rejected(self, sync, translator):
        sync.set_raw_content("a car")
        translator.gates["a car"] = asyncio.Event()
        invoker = TranslationInvoker(sync, translator)

        first = asyncio.ensure_future(invoker.translate_manual())
        await asyncio.sleep(0)
        assert invoker.in_progress

        with pytest.raises(OperationInProgressError):
            await invoker.translate_manual()

        translator.gates["a car"].set()
        assert await first == "EN:a car"
        assert translator.calls == ["a car"]


class TestEnhancementInvoker:
    @pytest.mark.anyio
    async def test_nothing_to_enhance(self, sync, enhancer):
        invoker = EnhancementInvoker(sync, enhancer)
        assert not invoker.can_enhance(None)
        assert await invoker.enhance() is None
        assert enhancer.requests == []

    @pytest.mark.anyio
    async def test_image_alone_is_enough(self, sync, enhancer):
        invoker = EnhancementInvoker(sync, enhancer)
        image = ReferenceImage(data=b"\x89PNG", mime_type="image/png")

        outcome = await invoker.enhance(image)

        assert outcome.enhanced
        assert enhancer.requests[0].reference_image is image

    @pytest.mark.anyio
    async def test_success_strips_quotes_and_overrides(self, sync, enhancer):
        sync.set_raw_content("a car")
        enhancer.result = '"A cinematic frame."'
        invoker = EnhancementInvoker(sync, enhancer)

        outcome = await invoker.enhance()

        assert outcome.enhanced
        assert outcome.prompt == "A cinematic frame."
        assert sync.assembled_prompt == "A cinematic frame."
        assert sync.is_ai_generated

        sync.set_shot_type(ShotType.MEDIUM)
        assert not sync.is_ai_generated
        assert sync.assembled_prompt.startswith("Medium Shot, Waist-up using a 35mm or 50mm Prime Lens featuring a car.")

    @pytest.mark.anyio
    async def test_request_carries_current_inputs(self, sync, enhancer):
        sync.set_raw_content("a car")
        sync.set_shot_type(ShotType.FULLBODY)
        sync.toggle_movement("CRANE")
        invoker = EnhancementInvoker(sync, enhancer)

        await invoker.enhance()

        request = enhancer.requests[0]
        assert request.content == "a car"
        assert request.shot_specs == "Wide Shot, Full Body, Establishing Shot using a 24mm or 16mm Wide Angle at f/11 or f/16."
        assert request.movement_description == "Jib/Crane shot, high sweeping movement over the scene."

    @pytest.mark.anyio
    async def test_failure_delivers_fallback(self, sync, enhancer):
        sync.set_raw_content("a car")
        enhancer.fail = True
        invoker = EnhancementInvoker(sync, enhancer)

        outcome = await invoker.enhance()

        assert not outcome.enhanced
        assert outcome.error == "enhancement backend down"
        assert outcome.prompt == FALLBACK_FOR_A_CAR
        assert sync.assembled_prompt == FALLBACK_FOR_A_CAR
        assert not sync.is_ai_generated
        assert sync.movement_ids == (STATIC_LOCKED,)

    @pytest.mark.anyio
    async def test_second_call_while_running_is_rejected(self, sync, enhancer):
        sync.set_raw_content("a car")
        enhancer.gate = asyncio.Event()
        invoker = EnhancementInvoker(sync, enhancer)

        first = asyncio.ensure_future(invoker.enhance())
        await asyncio.sleep(0)
        assert invoker.in_progress

        with pytest.raises(OperationInProgressError):
            await invoker.enhance()

        enhancer.gate.set()
        outcome = await first
        assert outcome.enhanced
        assert len(enhancer.requests) == 1
        assert not invoker.in_progress
