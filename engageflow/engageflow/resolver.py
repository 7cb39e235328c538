from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Sequence

from pydantic import BaseModel, Field

from .recipients import strip_group_keyword
from .schema import CATEGORIES, Category, Destination, FacilityRef, InputRecord, UnitEntry


logger = logging.getLogger(__name__)


class Resolution(BaseModel):
    facility: str = ""
    unit: str = ""
    no_caregiver_group: str = ""
    units: List[FacilityRef] = Field(default_factory=list)

    @property
    def found(self) -> bool:
        return bool(self.facility)

    model_config = {"extra": "forbid"}


class FacilityResolver:
    """Configuration-group lookup built once per compilation run.

    Several entries may share a configuration group; the first in input
    order supplies facility, unit and no-caregiver group, while ``units``
    lists every unit of every matching entry.
    """

    def __init__(self, entries: Iterable[UnitEntry]):
        self._entries: List[UnitEntry] = list(entries)
        self._tables: Dict[str, Dict[str, List[UnitEntry]]] = {}
        for category in CATEGORIES:
            table: Dict[str, List[UnitEntry]] = {}
            for entry in self._entries:
                group = entry.group_for(category)
                if group.strip():
                    table.setdefault(group, []).append(entry)
            self._tables[category] = table
        self._no_caregiver_by_facility: Dict[str, str] = {}
        for entry in self._entries:
            value = strip_group_keyword(entry.no_caregiver_group)
            if value and entry.facility not in self._no_caregiver_by_facility:
                self._no_caregiver_by_facility[entry.facility] = value

    def resolve(self, config_group: str, category: Category) -> Resolution:
        matches = self._tables[category].get(config_group or "", [])
        if not matches:
            logger.debug("no unit mapping for config group %r in %s", config_group, category)
            return Resolution()
        first = matches[0]
        names = first.names()
        no_care = strip_group_keyword(first.no_caregiver_group) or self._no_caregiver_by_facility.get(first.facility, "")
        units: List[FacilityRef] = []
        for entry in matches:
            for name in entry.names():
                ref = FacilityRef(facility_name=entry.facility, name=name)
                if ref not in units:
                    units.append(ref)
        return Resolution(
            facility=first.facility,
            unit=names[0] if names else "",
            no_caregiver_group=no_care,
            units=units,
        )

    def resolve_first(self, config_group: str, categories: Sequence[Category]) -> Resolution:
        """Try each category column in turn and return the first hit."""
        for category in categories:
            res = self.resolve(config_group, category)
            if res.found:
                return res
        return Resolution()

    def facility_of_unit(self, unit_name: str) -> str:
        for entry in self._entries:
            if unit_name in entry.names():
                return entry.facility
        return ""

    def for_record(self, record: InputRecord) -> Resolution:
        """Resolve a record's context.

        Moved records look up their new category's column first and fall
        back to the column of the category they came from. A record's own
        explicit unit list replaces the group's units and its own
        no-caregiver group wins over the mapped one.
        """
        categories: List[Category] = [record.category]
        if record.reclassified_from and record.reclassified_from != record.category:
            categories.append(record.reclassified_from)
        res = self.resolve_first(record.config_group, categories)
        facility = res.facility or record.facility

        units = list(res.units)
        if record.units:
            units = []
            for raw in record.units:
                name = raw.strip()
                if not name:
                    continue
                ref = FacilityRef(facility_name=self.facility_of_unit(name) or facility, name=name)
                if ref not in units:
                    units.append(ref)

        no_care = strip_group_keyword(record.no_caregiver_group) or res.no_caregiver_group
        if not no_care and facility:
            no_care = self._no_caregiver_by_facility.get(facility, "")
        return Resolution(
            facility=facility,
            unit=units[0].name if units else res.unit,
            no_caregiver_group=no_care,
            units=units,
        )

    def attach(self, destinations: Iterable[Destination], facility: str) -> List[Destination]:
        """Copies of ``destinations`` carrying ``facility`` where they have none."""
        out: List[Destination] = []
        for dest in destinations:
            if facility and not dest.facility_name:
                dest = dest.model_copy(update={"facility_name": facility})
            out.append(dest)
        return out
