import asyncio
from datetime import date

import pytest
from langchain_core.exceptions import OutputParserException

from conftest import FakeProvider, make_action_item, make_event, make_extraction
from src.agents.extraction.agent import ExtractionEngine
from src.agents.extraction.normalizer import EvidenceSummary, NarrativeNormalizer
from src.agents.extraction.schemas import ExtractionResult
from src.llm.provider import StructuredLLMProvider
from src.shared.exceptions import ExtractionProviderError, ExtractionSchemaError


def _context(narrative="Co-parent picked up child at 3:30pm as scheduled, no issues."):
    return NarrativeNormalizer().normalize(
        narrative,
        reference_date=date(2024, 11, 20),
        timezone_name="America/Chicago",
        speaker_name="Alex",
        evidence=[EvidenceSummary(annotation="text thread", summary="Sam confirms pickup time.")],
    )


@pytest.mark.asyncio
async def test_single_positive_event():
    provider = FakeProvider([make_extraction()])
    result = await ExtractionEngine(provider).extract(_context())

    assert isinstance(result, ExtractionResult)
    assert len(result.events) == 1
    assert result.events[0].type in {"positive", "communication"}
    assert result.events[0].custody_relevance.welfare_impact in {"positive", "none"}
    assert provider.call_count == 1
    assert provider.calls[0]["schema"] is ExtractionResult


@pytest.mark.asyncio
async def test_prompt_carries_context_and_narrative():
    provider = FakeProvider([make_extraction()])
    await ExtractionEngine(provider).extract(_context("Late pickup again."))

    system, user = provider.calls[0]["messages"]
    assert "2024-11-20 (Wednesday)" in system.content
    assert "The speaker is Alex." in system.content
    assert "Sam confirms pickup time." in system.content
    assert user.content == "Late pickup again."


@pytest.mark.asyncio
async def test_one_narrative_many_events():
    payload = make_extraction(
        events=[
            make_event(type="incident", title="Late pickup", custody_relevance={
                "agreement_violation": True, "safety_concern": False, "welfare_impact": "minor"}),
            make_event(type="school", title="Teacher noticed fatigue", primary_timestamp=None,
                       timestamp_precision="unknown"),
            make_event(type="communication", title="Insurance card withheld",
                       evidence_mentioned=[{"type": "text", "description": "Texts asking for card",
                                            "status": "have"}]),
        ],
        action_items=[make_action_item()],
    )
    result = await ExtractionEngine(FakeProvider([payload])).extract(_context())

    assert [e.type for e in result.events] == ["incident", "school", "communication"]
    assert result.action_items[0].description == "Obtain insurance card"


@pytest.mark.asyncio
async def test_zero_events_is_valid():
    result = await ExtractionEngine(FakeProvider([make_extraction(events=[])])).extract(_context())
    assert result.events == []


def _broken(mutate):
    payload = make_extraction()
    mutate(payload)
    return payload


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    _broken(lambda p: p["events"][0].pop("custody_relevance")),
    _broken(lambda p: p["events"][0].update(type="argument")),
    _broken(lambda p: p["events"][0].update(duration_minutes="30")),
    _broken(lambda p: p["events"][0].update(primary_timestamp="yesterday afternoon")),
    _broken(lambda p: p["events"][0].update(primary_timestamp=None, timestamp_precision="exact")),
    _broken(lambda p: p["events"][0].update(mood="tense")),
    _broken(lambda p: p["metadata"].update(extraction_confidence=1.5)),
    _broken(lambda p: p.pop("action_items")),
    {"events": "none"},
])
async def test_contract_violations_are_schema_errors(payload):
    with pytest.raises(ExtractionSchemaError):
        await ExtractionEngine(FakeProvider([payload])).extract(_context())


@pytest.mark.asyncio
async def test_provider_errors_pass_through_classified():
    provider = FakeProvider(error=ExtractionProviderError())
    with pytest.raises(ExtractionProviderError):
        await ExtractionEngine(provider).extract(_context())


@pytest.mark.asyncio
async def test_null_allowed_where_unknown():
    event = make_event(primary_timestamp=None, timestamp_precision="unknown", location=None, custody_relevance={
        "agreement_violation": None, "safety_concern": None, "welfare_impact": "unknown"})
    result = await ExtractionEngine(FakeProvider([make_extraction(events=[event], confidence=None)])).extract(_context())
    assert result.events[0].custody_relevance.agreement_violation is None
    assert result.metadata.extraction_confidence is None


# ---------------------------------------------------------------------------
# StructuredLLMProvider against a stand-in chat model
# ---------------------------------------------------------------------------

class _Runnable:
    def __init__(self, behaviour):
        self.behaviour = behaviour

    async def ainvoke(self, messages):
        return await self.behaviour()


class _StubChatModel:
    def __init__(self, behaviour):
        self.behaviour = behaviour
        self.structured_calls = []

    def with_structured_output(self, schema, include_raw=False):
        self.structured_calls.append((schema, include_raw))
        return _Runnable(self.behaviour)


def _provider(behaviour, timeout=5.0):
    model = _StubChatModel(behaviour)
    return StructuredLLMProvider(lambda: model, timeout=timeout), model


@pytest.mark.asyncio
async def test_llm_provider_returns_plain_dict():
    async def ok():
        return {"raw": None, "parsed": ExtractionResult.model_validate(make_extraction()), "parsing_error": None}

    provider, model = _provider(ok)
    result = await provider.call([], ExtractionResult)

    assert result == make_extraction()
    assert model.structured_calls == [(ExtractionResult, True)]


@pytest.mark.asyncio
async def test_llm_provider_parsing_error_is_schema_error():
    async def bad():
        return {"raw": None, "parsed": None, "parsing_error": ValueError("not json")}

    provider, _ = _provider(bad)
    with pytest.raises(ExtractionSchemaError):
        await provider.call([], ExtractionResult)


@pytest.mark.asyncio
async def test_llm_provider_output_parser_exception_is_schema_error():
    async def bad():
        raise OutputParserException("garbled")

    provider, _ = _provider(bad)
    with pytest.raises(ExtractionSchemaError):
        await provider.call([], ExtractionResult)


@pytest.mark.asyncio
async def test_llm_provider_timeout_is_provider_error():
    async def slow():
        await asyncio.sleep(1)

    provider, _ = _provider(slow, timeout=0.01)
    with pytest.raises(ExtractionProviderError):
        await provider.call([], ExtractionResult)


@pytest.mark.asyncio
async def test_llm_provider_other_failures_are_provider_errors():
    async def rate_limited():
        raise RuntimeError("429 Too Many Requests: secret-request-id")

    provider, _ = _provider(rate_limited)
    with pytest.raises(ExtractionProviderError) as exc:
        await provider.call([], ExtractionResult)
    assert "secret-request-id" not in exc.value.detail
