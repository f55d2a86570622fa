import itertools

import pytest

from src.capture.models import CaptureStatus
from src.capture.state import ALLOWED_TRANSITIONS, TERMINAL_STATES, can_transition, ensure_transition
from src.shared.exceptions import InvalidStateTransition, ValidationError

LEGAL_EDGES = {
    (CaptureStatus.DRAFT, CaptureStatus.PROCESSING),
    (CaptureStatus.DRAFT, CaptureStatus.CANCELLED),
    (CaptureStatus.PROCESSING, CaptureStatus.REVIEW),
    (CaptureStatus.PROCESSING, CaptureStatus.DRAFT),
    (CaptureStatus.PROCESSING, CaptureStatus.CANCELLED),
    (CaptureStatus.REVIEW, CaptureStatus.COMPLETED),
    (CaptureStatus.REVIEW, CaptureStatus.DRAFT),
    (CaptureStatus.REVIEW, CaptureStatus.CANCELLED),
}


def test_transition_table_matches_lifecycle():
    for current, target in itertools.product(CaptureStatus, repeat=2):
        assert can_transition(current, target) == ((current, target) in LEGAL_EDGES), (current, target)


def test_terminal_states():
    assert TERMINAL_STATES == {CaptureStatus.COMPLETED, CaptureStatus.CANCELLED}
    assert set(ALLOWED_TRANSITIONS) == set(CaptureStatus)


@pytest.mark.parametrize("current,target", [
    (CaptureStatus.DRAFT, CaptureStatus.COMPLETED),
    (CaptureStatus.DRAFT, CaptureStatus.REVIEW),
    (CaptureStatus.COMPLETED, CaptureStatus.DRAFT),
    (CaptureStatus.CANCELLED, CaptureStatus.PROCESSING),
    (CaptureStatus.REVIEW, CaptureStatus.PROCESSING),
])
def test_illegal_transition_raises(current, target):
    with pytest.raises(InvalidStateTransition) as exc:
        ensure_transition(current, target)
    assert exc.value.current == current.value
    assert exc.value.target == target.value
    assert exc.value.status_code == 409


@pytest.mark.asyncio
async def test_confirming_a_draft_leaves_it_untouched(make_service, user_a, extraction_provider):
    service = make_service(user_a)
    capture = await service.create_capture("Pickup was on time.")

    with pytest.raises(InvalidStateTransition):
        await service.confirm_capture(capture.id)

    reloaded = await service.get_capture(capture.id)
    assert reloaded.status == CaptureStatus.DRAFT
    assert extraction_provider.call_count == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("text", [None, "", "   \n "])
async def test_submit_requires_narrative(make_service, user_a, extraction_provider, text):
    service = make_service(user_a)
    capture = await service.create_capture(text)

    with pytest.raises(ValidationError):
        await service.submit_capture(capture.id)

    reloaded = await service.get_capture(capture.id)
    assert reloaded.status == CaptureStatus.DRAFT
    assert reloaded.processing_error is None
    assert extraction_provider.call_count == 0


@pytest.mark.asyncio
async def test_cancel_from_draft_and_then_nothing_else(make_service, user_a):
    service = make_service(user_a)
    capture = await service.create_capture("Something happened.")

    cancelled = await service.cancel_capture(capture.id)
    assert cancelled.status == CaptureStatus.CANCELLED

    with pytest.raises(InvalidStateTransition):
        await service.cancel_capture(capture.id)
    with pytest.raises(InvalidStateTransition):
        await service.submit_capture(capture.id)


@pytest.mark.asyncio
async def test_only_drafts_are_editable(make_service, user_a):
    service = make_service(user_a)
    capture = await service.create_capture("Co-parent was late.")
    await service.submit_capture(capture.id)

    with pytest.raises(InvalidStateTransition):
        await service.update_capture(capture.id, event_text="Changed my mind.")
    with pytest.raises(InvalidStateTransition):
        await service.attach_evidence(capture.id, content=b"x", filename="a.txt", mime_type="text/plain")

    reloaded = await service.get_capture(capture.id)
    assert reloaded.event_text == "Co-parent was late."
    assert reloaded.status == CaptureStatus.REVIEW


@pytest.mark.asyncio
async def test_discard_returns_review_to_draft(make_service, user_a):
    service = make_service(user_a)
    capture = await service.create_capture("Co-parent was late.")
    await service.submit_capture(capture.id)

    draft = await service.discard_extraction(capture.id)
    assert draft.status == CaptureStatus.DRAFT
    assert draft.extraction_raw is None

    updated = await service.update_capture(capture.id, event_text="Co-parent was 40 minutes late.")
    assert updated.event_text == "Co-parent was 40 minutes late."

    with pytest.raises(InvalidStateTransition):
        await service.discard_extraction(capture.id)
