from datetime import date, datetime, timezone
from types import SimpleNamespace

from src.agents.extraction.normalizer import (
    DEFAULT_CASE_CONTEXT,
    EvidenceSummary,
    NarrativeNormalizer,
    resolve_timezone,
)


def _case(**overrides):
    fields = dict(
        title="Rivera v. Rivera", case_number="FC-2024-118", jurisdiction_state="TX",
        jurisdiction_county="Travis", court_name=None, case_type="custody", stage=None,
        your_role="petitioner", opposing_party_name="Sam", opposing_party_role="respondent",
        children_count=2, children_summary=None, parenting_schedule="Alternate weekends",
        goals_summary=None, risk_flags=["missed pickups"], next_court_date=date(2025, 1, 15),
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def test_explicit_reference_date_wins_over_clock():
    normalizer = NarrativeNormalizer(clock=lambda: datetime(2030, 1, 1, tzinfo=timezone.utc))
    ctx = normalizer.normalize("Pickup at 3:30pm.", reference_date=date(2024, 11, 20), timezone_name="UTC")

    assert ctx.reference_date == date(2024, 11, 20)
    assert ctx.temporal_guidance.splitlines()[0] == (
        "The reference date for these events is: 2024-11-20 (Wednesday), timezone UTC."
    )
    assert ctx.narrative == "Pickup at 3:30pm."


def test_missing_reference_date_is_today_in_user_timezone():
    # 03:00 UTC on the 21st is still the evening of the 20th in Chicago.
    normalizer = NarrativeNormalizer(clock=lambda: datetime(2024, 11, 21, 3, 0, tzinfo=timezone.utc))

    chicago = normalizer.normalize("x", timezone_name="America/Chicago")
    utc = normalizer.normalize("x", timezone_name="UTC")

    assert chicago.reference_date == date(2024, 11, 20)
    assert utc.reference_date == date(2024, 11, 21)


def test_unknown_timezone_falls_back():
    assert resolve_timezone("Mars/Olympus_Mons").key == "UTC"
    assert resolve_timezone(None).key == "UTC"


def test_time_description_is_included():
    ctx = NarrativeNormalizer().normalize(
        "x", reference_date=date(2024, 11, 20), reference_time_description="right after school"
    )
    assert "The speaker describes the time as: right after school" in ctx.temporal_guidance


def test_same_inputs_same_context():
    normalizer = NarrativeNormalizer(clock=lambda: datetime(2024, 11, 20, tzinfo=timezone.utc))
    kwargs = dict(
        timezone_name="America/Chicago",
        speaker_name="Alex",
        case=_case(),
        evidence=[EvidenceSummary(annotation="text from Sam", summary="Sam says he will be late.")],
    )
    assert normalizer.normalize("Late again.", **kwargs) == normalizer.normalize("Late again.", **kwargs)


def test_speaker_line():
    assert "The speaker is Alex." in NarrativeNormalizer.speaker_line("Alex")
    assert "The speaker is the user." in NarrativeNormalizer.speaker_line(None)


def test_case_context_lists_known_fields_only():
    text = NarrativeNormalizer.case_context(_case())
    assert text.startswith("CASE CONTEXT:")
    assert "- Case number: FC-2024-118" in text
    assert "- Jurisdiction: Travis, TX" in text
    assert "- Opposing party: Sam (respondent)" in text
    assert "- Next court date: 2025-01-15" in text
    assert "Court:" not in text


def test_case_context_defaults():
    assert NarrativeNormalizer.case_context(None) == DEFAULT_CASE_CONTEXT
    empty = _case(**{k: None for k in vars(_case())})
    assert NarrativeNormalizer.case_context(empty) == DEFAULT_CASE_CONTEXT


def test_evidence_block_numbers_usable_items_in_order():
    ctx = NarrativeNormalizer().normalize(
        "x",
        reference_date=date(2024, 11, 20),
        evidence=[
            EvidenceSummary(annotation="first", summary="Summary one."),
            EvidenceSummary(),
            EvidenceSummary(summary="Summary three."),
        ],
    )
    assert ctx.evidence_count == 2
    assert ctx.evidence_context.startswith("## Attached Evidence")
    assert 'Evidence 1:\n  User\'s note: "first"\n  Analysis: Summary one.' in ctx.evidence_context
    assert "Evidence 2:\n  Analysis: Summary three." in ctx.evidence_context
    assert "Evidence 3" not in ctx.evidence_context


def test_no_evidence_no_block():
    ctx = NarrativeNormalizer().normalize("x", reference_date=date(2024, 11, 20))
    assert ctx.evidence_context == ""
    assert ctx.evidence_count == 0
