"""Static list type registry.

List types are reference data shared with the ingest path.  Each entry
carries the provenance that is allowed to publish it and the friendly
names shown to users and in notification emails.
"""
from __future__ import annotations

from dataclasses import dataclass

from cath.core.constants import Provenance


@dataclass(slots=True, frozen=True)
class ListType:
    id: int
    name: str
    english_friendly_name: str
    welsh_friendly_name: str
    provenance: Provenance


LIST_TYPES: tuple[ListType, ...] = (
    ListType(1, "CIVIL_DAILY_CAUSE_LIST", "Civil Daily Cause List", "Rhestr Achosion Dyddiol Sifil", Provenance.CFT_IDAM),
    ListType(2, "FAMILY_DAILY_CAUSE_LIST", "Family Daily Cause List", "Rhestr Achosion Dyddiol Teulu", Provenance.CFT_IDAM),
    ListType(3, "CRIME_DAILY_LIST", "Crime Daily List", "Rhestr Ddyddiol Troseddau", Provenance.CRIME_IDAM),
    ListType(4, "MAGISTRATES_PUBLIC_LIST", "Magistrates Public List", "Rhestr Gyhoeddus y Llys Ynadon", Provenance.CRIME_IDAM),
    ListType(5, "CROWN_WARNED_LIST", "Crown Warned List", "Rhestr Rybuddio Llys y Goron", Provenance.CRIME_IDAM),
    ListType(6, "CROWN_DAILY_LIST", "Crown Daily List", "Rhestr Ddyddiol Llys y Goron", Provenance.CRIME_IDAM),
    ListType(7, "CROWN_FIRM_LIST", "Crown Firm List", "Rhestr Bendant Llys y Goron", Provenance.CRIME_IDAM),
    ListType(
        8,
        "CIVIL_AND_FAMILY_DAILY_CAUSE_LIST",
        "Civil and Family Daily Cause List",
        "Rhestr Achosion Dyddiol Sifil a Theulu",
        Provenance.CFT_IDAM,
    ),
    ListType(
        9,
        "CARE_STANDARDS_TRIBUNAL_WEEKLY_HEARING_LIST",
        "Care Standards Tribunal Weekly Hearing List",
        "Rhestr Wrandawiadau Wythnosol y Tribiwnlys Safonau Gofal",
        Provenance.MANUAL_UPLOAD,
    ),
)

_BY_ID: dict[int, ListType] = {lt.id: lt for lt in LIST_TYPES}


def get_list_type(list_type_id: int) -> ListType | None:
    return _BY_ID.get(list_type_id)


def get_list_type_name(list_type_id: int) -> str | None:
    """Return the canonical ``UPPER_SNAKE`` name for *list_type_id*."""
    list_type = _BY_ID.get(list_type_id)
    return list_type.name if list_type else None


def get_list_type_display_name(list_type_id: int) -> str:
    """Return the English friendly name, or ``LIST_TYPE_<id>`` when unknown."""
    list_type = _BY_ID.get(list_type_id)
    if list_type is None:
        return f"LIST_TYPE_{list_type_id}"
    return list_type.english_friendly_name
