from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from .devices import XMPP, infer_interfaces, map_priority, priority_family, sound_values
from .merge import flow_name
from .responses import parse_response_options
from .schema import (
    Category,
    CompileSettings,
    ConditionFilter,
    Destination,
    DestinationEntry,
    FacilityRef,
    FlowCondition,
    FlowDocument,
    FlowGroup,
    InputRecord,
    ParameterAttribute,
)


logger = logging.getLogger(__name__)

DEFAULT_TTL = 10
NO_CAREGIVER_DESTINATION = "NoCaregivers"

MESSAGE_TEMPLATES: Dict[Category, Dict[str, str]] = {
    "NurseCalls": {
        "message": "Patient: #{bed.patient.last_name}, #{bed.patient.first_name}\nRoom/Bed: #{bed.room.name} - #{bed.bed_number}",
        "patientMRN": "#{bed.patient.mrn}:#{bed.patient.visit_number}",
        "placeUid": "#{bed.uid}",
        "patientName": "#{bed.patient.first_name} #{bed.patient.middle_name} #{bed.patient.last_name}",
        "shortMessage": "#{alert_type} #{bed.room.name}",
        "subject": "#{alert_type} #{bed.room.name}",
    },
    "Clinicals": {
        "message": "Clinical Alert ${destinationName}\nRoom: #{bed.room.name} - #{bed.bed_number}\nAlert Type: #{alert_type}\nAlarm Time: #{alarm_time.as_time}",
        "patientMRN": "#{clinical_patient.mrn}:#{clinical_patient.visit_number}",
        "placeUid": "#{bed.uid}",
        "patientName": "#{clinical_patient.first_name} #{clinical_patient.middle_name} #{clinical_patient.last_name}",
        "shortMessage": "#{alert_type} #{bed.room.name} Bed #{bed.bed_number}",
        "subject": "#{alert_type} #{bed.room.name} Bed #{bed.bed_number}",
    },
    "Orders": {
        "message": "Patient: #{patient.last_name}, #{patient.first_name}\nCategory: #{category}\nOrder: #{description}\nRoom/Bed: #{bed.room.name} - #{bed.bed_number}",
        "patientMRN": "#{patient.mrn}:#{patient.visit_number}",
        "placeUid": "#{bed.uid}",
        "patientName": "#{patient.first_name} #{patient.middle_name} #{patient.last_name}",
        "shortMessage": "#{alert_type} #{bed.room.name} Bed #{bed.bed_number}",
        "subject": "#{alert_type} #{bed.room.name} Bed #{bed.bed_number}",
    },
}

_NO_CAREGIVER_LABEL: Dict[Category, str] = {
    "NurseCalls": "A Nurse Call",
    "Clinicals": "A Clinical Alert",
    "Orders": "An Order",
}

_YES = {"yes", "y"}
_NO = {"no", "n"}
_ENUNCIATE_ON = {"yes", "y", "true", "enunciate", "enunciation"}
_ENUNCIATE_OFF = {"no", "n", "false"}


def encode(value: Any) -> str:
    """Parameter values are JSON literals carried as strings."""
    return json.dumps(value, ensure_ascii=False)


def pa(name: str, value: Any, order: Optional[int] = None) -> ParameterAttribute:
    return ParameterAttribute(name=name, value=encode(value), destination_order=order)


def parse_delay(text: str) -> int:
    digits = re.sub(r"[^0-9]", "", text or "")
    return int(digits) if digits else 0


def parse_ttl(text: str) -> int:
    digits = re.sub(r"[^0-9]", "", text or "")
    return int(digits) if digits else DEFAULT_TTL


def break_through(dnd: str, priority: str) -> str:
    value = (dnd or "").strip()
    if value.lower() in _YES:
        return "voceraAndDevice"
    if value.lower() in _NO:
        return "none"
    if value:
        return value
    return "voceraAndDevice" if priority == "urgent" else "none"


def enunciate(text: str) -> bool:
    value = (text or "").strip().lower()
    if value in _ENUNCIATE_OFF:
        return False
    if value and value not in _ENUNCIATE_ON:
        logger.debug("unrecognized enunciate value %r, using true", text)
    return True


def nurse_conditions() -> List[FlowCondition]:
    return [
        FlowCondition(
            name="NurseCallsCondition",
            filters=[
                ConditionFilter(attribute_path="bed", operator="not_null"),
                ConditionFilter(attribute_path="to.type", operator="not_equal", value="TargetGroups"),
            ],
        )
    ]


def response_parameters(record: InputRecord) -> List[ParameterAttribute]:
    grammar = parse_response_options(record.response_options)
    params = [pa("responseType", grammar.response_type)]
    if grammar.response_type == "None":
        return params
    if grammar.call_back:
        params.append(pa("callbackNumber", "#{bed.pillow_number}"))
    if grammar.accept_phrase:
        params.append(pa("accept", "Accepted"))
    if grammar.call_back:
        params.append(pa("acceptAndCall", "Call Back"))
    if grammar.accept_phrase:
        params.append(pa("acceptBadgePhrases", [grammar.accept_phrase]))
        params.append(pa("respondingLine", "responses.line.number"))
        params.append(pa("respondingUser", "responses.usr.login"))
        params.append(pa("responsePath", "responses.action"))
    if grammar.decline_phrase:
        params.append(pa("decline", "Decline Primary"))
        params.append(pa("declineBadgePhrases", [grammar.decline_phrase]))
    if "all" in (record.escalate_after or "").lower():
        params.append(pa("declineCount", "All Recipients"))
    return params


def build_destinations(
    hops: Sequence[Sequence[Destination]],
    delays: Sequence[str],
    facility: str,
    no_caregiver_group: str,
) -> List[DestinationEntry]:
    entries: List[DestinationEntry] = []
    for order, dests in enumerate(hops):
        delay = parse_delay(delays[order] if order < len(delays) else "")
        groups = [FacilityRef(facility_name=d.facility_name, name=d.name) for d in dests if not d.is_role]
        roles = [FacilityRef(facility_name=d.facility_name, name=d.name) for d in dests if d.is_role]
        if groups:
            entries.append(DestinationEntry(order=order, delay_time=delay, groups=groups))
        if roles:
            entries.append(
                DestinationEntry(
                    order=order,
                    delay_time=delay,
                    functional_roles=roles,
                    presence_config="user_and_device",
                    recipient_type="functional_role",
                )
            )
    if no_caregiver_group:
        entries.append(
            DestinationEntry(
                order=entries[-1].order + 1 if entries else 0,
                destination_type="NoDeliveries",
                groups=[FacilityRef(facility_name=facility, name=no_caregiver_group)],
            )
        )
    return entries


def destination_name_parameters(hops: Sequence[Sequence[Destination]]) -> List[ParameterAttribute]:
    params: List[ParameterAttribute] = []
    for order, dests in enumerate(hops):
        if not dests:
            continue
        if any(not d.is_role for d in dests):
            params.append(pa("destinationName", "Group", order))
        else:
            params.append(pa("destinationName", dests[0].name, order))
    return params


def no_caregiver_parameters(category: Category, order: int) -> List[ParameterAttribute]:
    label = _NO_CAREGIVER_LABEL[category]
    return [
        pa("destinationName", NO_CAREGIVER_DESTINATION, order),
        pa(
            "message",
            f"#{{alert_type}}\nIssue: {label} has been received without any caregivers assigned to room.\n"
            "Room/Bed: #{bed.room.name} - #{bed.bed_number}\nAlarm Time: #{alarm_time.as_time}",
            order,
        ),
        pa("shortMessage", "NoCaregiver Assigned for #{alert_type} in #{bed.room.name} Bed #{bed.bed_number}", order),
        pa("subject", "NoCaregiver assigned for #{alert_type} #{bed.room.name} Bed #{bed.bed_number}", order),
    ]


def assemble(
    group: FlowGroup,
    destinations: Sequence[Sequence[Destination]],
    settings: Optional[CompileSettings] = None,
    facility: Optional[str] = None,
) -> FlowDocument:
    """Build the delivery flow for one merged group.

    ``destinations`` holds the parsed directives of each hop, in hop order,
    already carrying their facility names.
    """
    settings = settings or CompileSettings()
    facility = group.facility if facility is None else facility
    rec = group.representative

    priority = map_priority(rec.priority, priority_family(rec.device_a, rec.device_b))
    interfaces = infer_interfaces(rec.device_a, rec.device_b, settings)
    components = [i.component_name for i in interfaces]
    templates = MESSAGE_TEMPLATES[rec.reclassified_from or group.category]

    params: List[ParameterAttribute] = [pa("eventIdentification", f"{group.category}:#{{id}}")]
    for name in ("message", "patientMRN", "placeUid", "patientName", "shortMessage", "subject"):
        params.append(pa(name, templates[name]))
    for name, sound in sound_values(rec.ringtone, components):
        params.append(pa(name, sound))
    params.extend(response_parameters(rec))
    params.append(pa("breakThrough", break_through(rec.break_through_dnd, priority)))
    params.append(pa("enunciate", enunciate(rec.enunciate)))
    params.append(pa("popup", True))
    params.append(pa("retractRules", ["ttlHasElapsed"]))
    params.append(pa("ttl", parse_ttl(rec.ttl)))
    params.append(pa("vibrate", "short"))
    if XMPP in components:
        params.append(pa("additionalContent", templates["message"]))
        params.append(pa("audible", True))
        params.append(pa("realert", False))
        params.append(pa("multipleAccepts", False))
        params.append(pa("delayedResponses", False))

    entries = build_destinations(destinations, [h.delay for h in rec.hops], facility, group.no_caregiver_group)
    params.extend(destination_name_parameters(destinations))
    for entry in entries:
        if entry.destination_type == "NoDeliveries":
            params.extend(no_caregiver_parameters(group.category, entry.order))

    return FlowDocument(
        name=flow_name(group, priority, settings.alert_name_transformations),
        priority=priority,
        alarms_alerts=list(group.alarm_names),
        conditions=nurse_conditions() if group.category == "NurseCalls" else [],
        destinations=entries,
        interfaces=interfaces,
        parameter_attributes=params,
        units=list(group.units),
    )
