from __future__ import annotations

import json
import logging
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel

from .assembler import assemble
from .merge import merge
from .reclassify import Reclassifier
from .recipients import parse_directives
from .resolver import FacilityResolver
from .schema import (
    CATEGORIES,
    AlarmDefinition,
    AlarmValue,
    Category,
    CategoryDocument,
    CompileSettings,
    Destination,
    InputRecord,
    UnitEntry,
)


logger = logging.getLogger(__name__)


class CompileResult(BaseModel):
    documents: Dict[Category, CategoryDocument]
    reclassified: int = 0
    excluded: int = 0

    def flow_count(self) -> int:
        return sum(len(d.delivery_flows) for d in self.documents.values())

    model_config = {"extra": "forbid"}


def hop_destinations(
    record: InputRecord,
    resolver: FacilityResolver,
    settings: CompileSettings,
    facility: str,
) -> List[List[Destination]]:
    out: List[List[Destination]] = []
    for hop in record.hops:
        parsed = parse_directives(hop.recipient, settings.known_roles, settings.known_groups)
        out.append(resolver.attach(parsed, facility))
    return out


def alarm_definitions(records: Iterable[InputRecord], category: Category) -> List[AlarmDefinition]:
    seen: Dict[str, AlarmDefinition] = {}
    for r in records:
        name = r.display_name
        if not name or name in seen:
            continue
        value = r.sending_name.strip() or name
        seen[name] = AlarmDefinition(name=name, type=category, values=[AlarmValue(category="", value=value)])
    return list(seen.values())


def compile_category(
    category: Category,
    records: List[InputRecord],
    resolver: FacilityResolver,
    settings: CompileSettings,
) -> CategoryDocument:
    groups = merge(records, settings.merge_mode, resolver)
    flows = []
    for g in groups:
        dests = hop_destinations(g.representative, resolver, settings, g.facility)
        flows.append(assemble(g, dests, settings))
    return CategoryDocument(
        category=category,
        alarm_alert_definitions=alarm_definitions(records, category),
        delivery_flows=flows,
    )


def compile_records(
    records: Iterable[InputRecord],
    units: Iterable[UnitEntry],
    settings: Optional[CompileSettings] = None,
) -> CompileResult:
    """Reclassify, merge and assemble ``records`` into one document per category."""
    settings = settings or CompileSettings()
    resolver = FacilityResolver(units)
    all_records = list(records)
    in_scope = [r for r in all_records if r.in_scope]
    excluded = len(all_records) - len(in_scope)
    if excluded:
        logger.info("skipping %d out-of-scope record(s)", excluded)

    reclassifier = Reclassifier(resolver)
    rows = reclassifier.reclassify(in_scope)

    documents: Dict[Category, CategoryDocument] = {}
    for category in CATEGORIES:
        subset = [r for r in rows if r.category == category]
        documents[category] = compile_category(category, subset, resolver, settings)
        logger.info("%s: %d record(s) -> %d flow(s)", category, len(subset), len(documents[category].delivery_flows))
    return CompileResult(documents=documents, reclassified=reclassifier.moved_count, excluded=excluded)


def to_json(document: CategoryDocument) -> str:
    return json.dumps(document.to_json_dict(), indent=2, ensure_ascii=False)
