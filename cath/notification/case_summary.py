"""Case summaries for subscription emails.

Some list types carry enough structure in their JSON payload to list the
cases they contain in the notification email.  ``SUMMARY_BUILDERS`` maps a
list type name to the pair of functions that pull the cases out of the
payload and format them as Notify markdown.  List types without an entry
get the plain email.
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

CaseFields = list[tuple[str, str]]

NO_CASES = "No cases scheduled."

_APPLICANT_ROLE = "APPLICANT_PETITIONER"


@dataclass(frozen=True)
class SummaryBuilder:
    extract: Callable[[Any], list[CaseFields]]
    format: Callable[[list[CaseFields]], str]

    def build(self, json_data: Any) -> str:
        return self.format(self.extract(json_data))


def format_case_summary(cases: list[CaseFields]) -> str:
    """One ``---`` separated block per case, one ``Label - value`` line per field."""
    if not cases:
        return NO_CASES
    blocks = [
        "---\n\n" + "\n".join(f"{label} - {value}" for label, value in fields)
        for fields in cases
    ]
    return "\n\n".join(blocks)


# ---------------------------------------------------------------------------
# Civil and Family Daily Cause List
# ---------------------------------------------------------------------------

def _applicant_name(parties: list[dict]) -> str | None:
    for party in parties:
        if party.get("partyRole") != _APPLICANT_ROLE:
            continue
        individual = party.get("individualDetails")
        if individual:
            name = " ".join(
                part for part in (individual.get("individualForenames"), individual.get("individualSurname")) if part
            )
            if name:
                return name
        organisation = party.get("organisationDetails")
        if organisation and organisation.get("organisationName"):
            return organisation["organisationName"]
    return None


def extract_cause_list_cases(json_data: dict) -> list[CaseFields]:
    """Walk ``courtLists -> courtHouse -> courtRoom -> session -> sittings -> hearing -> case``."""
    cases: list[CaseFields] = []
    for court_list in json_data["courtLists"]:
        for room in court_list.get("courtHouse", {}).get("courtRoom", []):
            for session in room.get("session", []):
                for sitting in session.get("sittings", []):
                    for hearing in sitting.get("hearing", []):
                        for case in hearing.get("case", []):
                            fields: CaseFields = []
                            applicant = _applicant_name(case.get("party") or [])
                            if applicant:
                                fields.append(("Applicant", applicant))
                            fields.extend([
                                ("Case reference", case.get("caseNumber") or ""),
                                ("Case name", case.get("caseName") or ""),
                                ("Case type", case.get("caseType") or ""),
                                ("Hearing type", hearing.get("hearingType") or ""),
                            ])
                            cases.append(fields)
    return cases


# ---------------------------------------------------------------------------
# Care Standards Tribunal Weekly Hearing List
# ---------------------------------------------------------------------------

def extract_weekly_hearing_cases(json_data: list[dict]) -> list[CaseFields]:
    """One entry per uploaded hearing row; blank cells read ``N/A``."""
    return [
        [
            ("Date", row.get("date") or "N/A"),
            ("Case name", row.get("caseName") or "N/A"),
            ("Hearing type", row.get("hearingType") or "N/A"),
        ]
        for row in json_data
    ]


SUMMARY_BUILDERS: dict[str, SummaryBuilder] = {
    "CIVIL_AND_FAMILY_DAILY_CAUSE_LIST": SummaryBuilder(extract_cause_list_cases, format_case_summary),
    "CARE_STANDARDS_TRIBUNAL_WEEKLY_HEARING_LIST": SummaryBuilder(extract_weekly_hearing_cases, format_case_summary),
}


def get_summary_builder(list_type_name: str | None) -> SummaryBuilder | None:
    if not list_type_name:
        return None
    return SUMMARY_BUILDERS.get(list_type_name)
