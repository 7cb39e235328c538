from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from .resolver import FacilityResolver
from .schema import Category, InputRecord


logger = logging.getLogger(__name__)

# origin category -> category that records with the compliance flag move to
EMDAN_ROUTES: Dict[Category, Category] = {"NurseCalls": "Clinicals"}

_FLAG_YES = {"y", "yes"}


def is_flagged(record: InputRecord) -> bool:
    return (record.emdan or "").strip().lower() in _FLAG_YES


class Reclassifier:
    def __init__(self, resolver: Optional[FacilityResolver] = None, routes: Optional[Dict[Category, Category]] = None):
        self.resolver = resolver
        self.routes = dict(EMDAN_ROUTES if routes is None else routes)
        self.moved_count = 0

    def _annotate(self, record: InputRecord) -> InputRecord:
        if self.resolver is None or record.facility:
            return record
        facility = self.resolver.for_record(record).facility
        if not facility:
            return record
        return record.model_copy(update={"facility": facility})

    def reclassify_one(self, record: InputRecord) -> InputRecord:
        target = self.routes.get(record.category)
        if record.reclassified_from is None and target is not None and is_flagged(record):
            moved = record.model_copy(update={"category": target, "reclassified_from": record.category})
            self.moved_count += 1
            logger.debug("moved %r (%s) from %s to %s", record.display_name, record.config_group, record.category, target)
            return self._annotate(moved)
        return self._annotate(record)

    def reclassify(self, records: Iterable[InputRecord]) -> List[InputRecord]:
        out = [self.reclassify_one(r) for r in records]
        logger.info("reclassified %d record(s) by compliance flag", self.moved_count)
        return out


def reclassify(records: Iterable[InputRecord], resolver: Optional[FacilityResolver] = None) -> List[InputRecord]:
    return Reclassifier(resolver).reclassify(records)
