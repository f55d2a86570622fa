"""Narrative Normalizer: deterministic prompt context for the extraction call.

Pure: given the same inputs (and the same clock reading when no reference
date is supplied) it always yields the same ``ExtractionContext``. It never
touches the database or the provider.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from src.config import settings

logger = logging.getLogger(__name__)

DEFAULT_CASE_CONTEXT = "The speaker is involved in a family court / custody / divorce matter."


@dataclass(frozen=True)
class EvidenceSummary:
    annotation: str = ""
    summary: str = ""


@dataclass(frozen=True)
class ExtractionContext:
    narrative: str
    reference_date: date
    speaker_line: str
    case_context: str
    temporal_guidance: str
    evidence_context: str
    evidence_count: int = 0


def resolve_timezone(name: Optional[str]) -> ZoneInfo:
    for candidate in (name, settings.DEFAULT_TIMEZONE, "UTC"):
        if not candidate:
            continue
        try:
            return ZoneInfo(candidate)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, falling back", candidate)
    return ZoneInfo("UTC")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class NarrativeNormalizer:
    def __init__(self, clock: Callable[[], datetime] = _utc_now):
        self.clock = clock

    def normalize(
        self,
        narrative: str,
        *,
        reference_date: Optional[date] = None,
        reference_time_description: Optional[str] = None,
        timezone_name: Optional[str] = None,
        speaker_name: Optional[str] = None,
        case: Any = None,
        evidence: Sequence[EvidenceSummary] = (),
    ) -> ExtractionContext:
        tz = resolve_timezone(timezone_name)
        if reference_date is None:
            reference_date = self.clock().astimezone(tz).date()

        usable = [e for e in evidence if e.annotation or e.summary]
        return ExtractionContext(
            narrative=narrative,
            reference_date=reference_date,
            speaker_line=self.speaker_line(speaker_name),
            case_context=self.case_context(case),
            temporal_guidance=self.temporal_guidance(reference_date, tz, reference_time_description),
            evidence_context=self.evidence_context(usable),
            evidence_count=len(usable),
        )

    @staticmethod
    def speaker_line(speaker_name: Optional[str]) -> str:
        if speaker_name:
            return f'The speaker is {speaker_name}. When they say "I" or "me", they refer to {speaker_name}.'
        return 'The speaker is the user. References to "I" or "me" refer to the same person.'

    @staticmethod
    def temporal_guidance(
        reference_date: date, tz: ZoneInfo, reference_time_description: Optional[str] = None
    ) -> str:
        lines = [
            f"The reference date for these events is: {reference_date.isoformat()} "
            f"({reference_date.strftime('%A')}), timezone {tz.key}.",
        ]
        if reference_time_description:
            lines.append(f"The speaker describes the time as: {reference_time_description.strip()}")
        lines += [
            'Resolve relative time references (like "yesterday", "this morning") based on this date.',
            f"Write timestamps as ISO-8601 with the UTC offset for {tz.key}.",
            'If you cannot determine a specific time, set timestamp_precision to "approximate" or "unknown".',
        ]
        return "\n".join(lines)

    @staticmethod
    def case_context(case: Any) -> str:
        if case is None:
            return DEFAULT_CASE_CONTEXT

        lines = ["CASE CONTEXT:"]
        if case.title:
            lines.append(f"- Case title: {case.title}")
        if case.case_number:
            lines.append(f"- Case number: {case.case_number}")
        jurisdiction = [p for p in (case.jurisdiction_county, case.jurisdiction_state) if p]
        if jurisdiction:
            lines.append(f"- Jurisdiction: {', '.join(jurisdiction)}")
        if case.court_name:
            lines.append(f"- Court: {case.court_name}")
        if case.case_type:
            lines.append(f"- Case type: {case.case_type}")
        if case.stage:
            lines.append(f"- Case stage: {case.stage}")
        if case.your_role:
            lines.append(f"- Speaker role: {case.your_role}")
        if case.opposing_party_name:
            suffix = f" ({case.opposing_party_role})" if case.opposing_party_role else ""
            lines.append(f"- Opposing party: {case.opposing_party_name}{suffix}")
        if case.children_count is not None:
            lines.append(f"- Number of children: {case.children_count}")
        if case.children_summary:
            lines.append(f"- Children summary: {case.children_summary}")
        if case.parenting_schedule:
            lines.append(f"- Parenting schedule: {case.parenting_schedule}")
        if case.goals_summary:
            lines.append(f"- Parent goals: {case.goals_summary}")
        if case.risk_flags:
            lines.append(f"- Risk flags: {', '.join(case.risk_flags)}")
        if case.next_court_date:
            lines.append(f"- Next court date: {case.next_court_date.isoformat()}")

        return "\n".join(lines) if len(lines) > 1 else DEFAULT_CASE_CONTEXT

    @staticmethod
    def evidence_context(evidence: Sequence[EvidenceSummary]) -> str:
        if not evidence:
            return ""
        entries = []
        for i, item in enumerate(evidence, start=1):
            entry = f"Evidence {i}:"
            if item.annotation:
                entry += f'\n  User\'s note: "{item.annotation}"'
            if item.summary:
                entry += f"\n  Analysis: {item.summary}"
            entries.append(entry)
        return "\n".join([
            "## Attached Evidence",
            "The user has attached the following evidence to support their description:",
            "",
            *entries,
            "",
            "Use information from this evidence to enhance the accuracy of extracted events.",
            "Reference specific details (timestamps, quotes, facts) from the evidence when relevant.",
        ])
