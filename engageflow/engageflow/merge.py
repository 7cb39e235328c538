from __future__ import annotations

import logging
from typing import Dict, Hashable, Iterable, List, Mapping, Optional, Tuple

from .recipients import strip_group_keyword
from .resolver import FacilityResolver
from .schema import Category, FacilityRef, FlowGroup, InputRecord, MergeMode


logger = logging.getLogger(__name__)

CATEGORY_PREFIX: Dict[Category, str] = {
    "NurseCalls": "SEND NURSECALL",
    "Clinicals": "SEND CLINICAL",
    "Orders": "SEND ORDER",
}

MERGE_MODES: Tuple[MergeMode, ...] = ("NONE", "MERGE_BY_CONFIG_GROUP", "MERGE_ACROSS_CONFIG_GROUP")

# Positional labels for merge_key(); five (delay, recipient) pairs sit in the middle.
MERGE_KEY_FIELDS: Tuple[str, ...] = (
    ("priority", "device_a", "device_b", "ringtone", "response_options")
    + tuple(f"{part}_{i}" for i in range(1, 6) for part in ("delay", "recipient"))
    + ("emdan", "no_caregiver_group", "break_through_dnd", "enunciate", "escalate_after", "ttl")
)


def normalize_response_options(text: str) -> str:
    return ",".join(t.strip().lower() for t in (text or "").split(",") if t.strip())


def effective_no_caregiver_group(record: InputRecord, resolver: Optional[FacilityResolver] = None) -> str:
    if resolver is not None:
        return resolver.for_record(record).no_caregiver_group
    return strip_group_keyword(record.no_caregiver_group)


def merge_key(record: InputRecord, resolver: Optional[FacilityResolver] = None) -> Tuple[str, ...]:
    """Every delivery-relevant field except alarm name, sending name and config group."""
    fields: List[str] = [
        record.priority.strip(),
        record.device_a.strip(),
        record.device_b.strip(),
        record.ringtone.strip(),
        normalize_response_options(record.response_options),
    ]
    for hop in record.padded_hops():
        fields.append(hop.delay.strip())
        fields.append(hop.recipient.strip())
    fields.extend(
        [
            record.emdan.strip().lower(),
            effective_no_caregiver_group(record, resolver),
            record.break_through_dnd.strip(),
            record.enunciate.strip(),
            record.escalate_after.strip(),
            record.ttl.strip(),
        ]
    )
    return tuple(fields)


def _bucket(index: int, record: InputRecord, key: Tuple[str, ...], policy: MergeMode) -> Hashable:
    if policy == "NONE":
        return (record.category, index)
    if policy == "MERGE_BY_CONFIG_GROUP":
        return (record.category, key, record.config_group)
    if policy == "MERGE_ACROSS_CONFIG_GROUP":
        return (record.category, key)
    raise ValueError(f"unknown merge mode: {policy}")


def merge(
    records: Iterable[InputRecord],
    policy: MergeMode = "MERGE_BY_CONFIG_GROUP",
    resolver: Optional[FacilityResolver] = None,
) -> List[FlowGroup]:
    """Group records into flows; emission and alarm order follow first appearance."""
    buckets: Dict[Hashable, List[Tuple[Tuple[str, ...], InputRecord]]] = {}
    for index, record in enumerate(records):
        key = merge_key(record, resolver)
        buckets.setdefault(_bucket(index, record, key, policy), []).append((key, record))

    groups: List[FlowGroup] = []
    for members in buckets.values():
        key = members[0][0]
        alarm_names: List[str] = []
        config_groups: List[str] = []
        units: List[FacilityRef] = []
        facility = ""
        for _key, record in members:
            name = record.display_name
            if name and name not in alarm_names:
                alarm_names.append(name)
            group = record.config_group.strip()
            if group and group not in config_groups:
                config_groups.append(group)
            if resolver is not None:
                res = resolver.for_record(record)
                facility = facility or res.facility
                for ref in res.units:
                    if ref not in units:
                        units.append(ref)
            facility = facility or record.facility
        groups.append(
            FlowGroup(
                category=members[0][1].category,
                key=key,
                records=[r for _k, r in members],
                alarm_names=alarm_names,
                config_groups=config_groups,
                units=units,
                facility=facility,
                no_caregiver_group=key[MERGE_KEY_FIELDS.index("no_caregiver_group")],
            )
        )
    logger.info("merged %d record(s) into %d flow(s) with %s", sum(len(g.records) for g in groups), len(groups), policy)
    return groups


def transform_alert_name(name: str, transformations: Optional[Mapping[str, str]] = None) -> str:
    """Shorten an alarm name by exact match first, then case-insensitively."""
    if not transformations or not name or not name.strip():
        return name
    if name in transformations:
        return transformations[name]
    lowered = name.lower()
    for original, short in transformations.items():
        if original.lower() == lowered:
            return short
    return name


def flow_name(group: FlowGroup, priority: str, transformations: Optional[Mapping[str, str]] = None) -> str:
    alarms = [transform_alert_name(a, transformations) for a in group.alarm_names]
    unit_names: List[str] = []
    for ref in group.units:
        if ref.name and ref.name not in unit_names:
            unit_names.append(ref.name)
    parts = [
        CATEGORY_PREFIX[group.category],
        priority.upper(),
        " / ".join(alarms),
        " / ".join(group.config_groups),
        " / ".join(unit_names) if unit_names else group.facility,
    ]
    return " | ".join(p for p in parts if p)
