import json

import pytest

from engageflow.assembler import assemble, break_through, enunciate, parse_delay
from engageflow.engine import compile_records
from engageflow.merge import merge
from engageflow.schema import CompileSettings, FlowDocument, Hop, InputRecord, UnitEntry


def _flow(units=(), settings=None, **kw) -> FlowDocument:
    base = dict(category="NurseCalls", config_group="G", alarm_name="Bed Exit", priority="High", device_a="iPhone-Edge")
    base.update(kw)
    rec = InputRecord(**base)
    result = compile_records([rec], list(units), settings)
    flows = [f for doc in result.documents.values() for f in doc.delivery_flows]
    assert len(flows) == 1
    return flows[0]


def test_accept_only_emits_accept_side():
    flow = _flow(response_options="Accept")
    names = flow.param_names()
    for name in ("accept", "acceptBadgePhrases", "respondingLine", "respondingUser", "responsePath"):
        assert name in names
    assert "decline" not in names
    assert "declineBadgePhrases" not in names
    assert flow.param("responseType") == '"Accept/Decline"'
    assert flow.param("accept") == '"Accepted"'
    assert flow.param("acceptBadgePhrases") == '["Accept"]'


@pytest.mark.parametrize(
    "options,phrase",
    [
        ("Decline, Reject, Escalate", '["Decline"]'),
        ("Escalate, Reject, Decline", '["Decline"]'),
        ("Escalate, Decline", '["Decline"]'),
        ("Reject, Decline", '["Decline"]'),
        ("Accept, Declined", '["Decline"]'),
        ("Reject, Escalate", '["Reject"]'),
        ("Escalate, Reject", '["Reject"]'),
        ("Accept, Escalate", '["Escalate"]'),
    ],
)
def test_decline_badge_phrase_priority(options, phrase):
    flow = _flow(response_options=options)
    assert flow.param("declineBadgePhrases") == phrase
    assert flow.param("decline") == '"Decline Primary"'


@pytest.mark.parametrize("options", ["No Response", "", "Call Back", "Snooze"])
def test_no_synonym_means_no_response_family(options):
    flow = _flow(response_options=options)
    assert flow.param("responseType") == '"None"'
    for name in ("accept", "acceptBadgePhrases", "decline", "respondingLine", "callbackNumber", "acceptAndCall"):
        assert name not in flow.param_names()


def test_call_back_precedes_accept():
    flow = _flow(response_options="Accept, Decline, Call Back")
    names = flow.param_names()
    assert names.index("responseType") < names.index("callbackNumber") < names.index("accept")
    assert flow.param("callbackNumber") == '"#{bed.pillow_number}"'
    assert flow.param("acceptAndCall") == '"Call Back"'


def test_acknowledge_synonym():
    flow = _flow(response_options="Acknowledged")
    assert flow.param("acceptBadgePhrases") == '["Acknowledge"]'
    assert flow.param("responseType") == '"Accept/Decline"'


def test_decline_count_when_escalating_to_all():
    flow = _flow(response_options="Accept, Decline", escalate_after="ALL recipients")
    assert flow.param("declineCount") == '"All Recipients"'
    assert _flow(response_options="Accept, Decline", escalate_after="1 decline").param("declineCount") is None


def test_parameter_order_starts_with_identification_and_templates():
    flow = _flow(response_options="Accept", ringtone="Tone 1")
    names = flow.param_names()
    assert names[:7] == ["eventIdentification", "message", "patientMRN", "placeUid", "patientName", "shortMessage", "subject"]
    assert names.index("subject") < names.index("alertSound") < names.index("responseType") < names.index("breakThrough")
    assert flow.param("eventIdentification") == '"NurseCalls:#{id}"'


def test_values_are_json_literals():
    flow = _flow(response_options="Accept, Decline", ringtone="Tone 1", device_a="XMPP")
    for p in flow.parameter_attributes:
        json.loads(p.value)
    assert flow.param("popup") == "true"
    assert flow.param("ttl") == "10"
    assert flow.param("retractRules") == '["ttlHasElapsed"]'
    assert flow.param("vibrate") == '"short"'


def test_priority_mapping_depends_on_device():
    assert _flow(device_a="Vocera VCS", priority="High").priority == "high"
    assert _flow(device_a="iPhone-Edge", priority="High").priority == "urgent"


def test_vmp_device_gets_badge_sound_only():
    flow = _flow(device_a="VMP", ringtone="list_pagers")
    assert flow.param("badgeAlertSound") == '"list_pagers.wav"'
    assert flow.param("alertSound") is None


def test_global_setting_ringtone_has_no_sound():
    flow = _flow(device_a="Vocera", ringtone="Global Setting")
    assert flow.param("alertSound") is None
    assert flow.param("badgeAlertSound") is None


def test_xmpp_extras():
    flow = _flow(device_a="XMPP")
    for name in ("additionalContent", "audible", "realert", "multipleAccepts", "delayedResponses"):
        assert name in flow.param_names()
    assert [i.component_name for i in flow.interfaces] == ["XMPP"]


def test_default_interface_from_settings():
    flow = _flow(device_a="", settings=CompileSettings(default_vmp=True))
    assert [(i.reference_name, i.component_name) for i in flow.interfaces] == [("VMP", "VMP")]


def test_clinical_templates():
    flow = _flow(category="Clinicals", device_a="VCS")
    assert flow.param("shortMessage") == '"#{alert_type} #{bed.room.name} Bed #{bed.bed_number}"'
    assert flow.param("subject") == '"#{alert_type} #{bed.room.name} Bed #{bed.bed_number}"'
    assert "clinical_patient.mrn" in flow.param("patientMRN")
    assert flow.param("eventIdentification") == '"Clinicals:#{id}"'
    assert flow.conditions == []


def test_order_templates():
    flow = _flow(category="Orders")
    message = flow.param("message")
    for placeholder in ("#{patient.last_name}", "#{patient.first_name}", "#{category}", "#{description}"):
        assert placeholder in message
    assert flow.param("patientMRN") == '"#{patient.mrn}:#{patient.visit_number}"'
    assert flow.name.startswith("SEND ORDER")


def test_nurse_call_conditions():
    flow = _flow()
    assert [c.name for c in flow.conditions] == ["NurseCallsCondition"]
    assert [(f.attribute_path, f.operator, f.value) for f in flow.conditions[0].filters] == [
        ("bed", "not_null", None),
        ("to.type", "not_equal", "TargetGroups"),
    ]


def test_moved_record_keeps_nurse_short_message():
    flow = _flow(emdan="Yes")
    assert flow.name.startswith("SEND CLINICAL")
    assert flow.param("shortMessage") == '"#{alert_type} #{bed.room.name}"'
    assert flow.param("eventIdentification") == '"Clinicals:#{id}"'


def test_destinations_aggregate_per_hop():
    units = [UnitEntry(facility="BCH", unit_names="MedSurg", nurse_group="G")]
    flow = _flow(
        units=units,
        hops=[
            Hop(delay="0", recipient="VAssign: [Room] CNA, VGroup: Charge Nurses, g-code_blue1"),
            Hop(delay="60 sec", recipient="VAssign: Room RN"),
            Hop(delay="", recipient="N/A"),
        ],
    )
    d = flow.destinations
    assert [(e.order, e.recipient_type) for e in d] == [(0, "group"), (0, "functional_role"), (1, "functional_role")]
    assert [g.name for g in d[0].groups] == ["Charge Nurses", "g-code_blue1"]
    assert d[0].presence_config == "device"
    assert [(r.name, r.facility_name) for r in d[1].functional_roles] == [("CNA", "BCH")]
    assert d[1].presence_config == "user_and_device"
    assert d[2].delay_time == 60
    assert all(e.destination_type == "Normal" for e in d)
    assert flow.param("destinationName", 0) == '"Group"'
    assert flow.param("destinationName", 1) == '"RN"'
    assert flow.param("destinationName", 2) is None


def test_no_caregiver_destination_appended():
    units = [UnitEntry(facility="BCH", unit_names="MedSurg", clinical_group="G", no_caregiver_group="VGroup: BCH NoCare")]
    flow = _flow(units=units, category="Clinicals", device_a="VCS", hops=[Hop(delay="0", recipient="VAssign: Room RN")])
    last = flow.destinations[-1]
    assert last.destination_type == "NoDeliveries"
    assert last.order == len(flow.destinations) - 1
    assert [(g.name, g.facility_name) for g in last.groups] == [("BCH NoCare", "BCH")]
    assert flow.param("destinationName", last.order) == '"NoCaregivers"'
    assert "without any caregivers" in flow.param("message", last.order)
    assert "NoCaregiver Assigned" in flow.param("shortMessage", last.order)
    assert "NoCaregiver assigned" in flow.param("subject", last.order)


def test_no_caregiver_destination_absent_without_group():
    flow = _flow(hops=[Hop(delay="0", recipient="VAssign: RN")])
    assert all(d.destination_type == "Normal" for d in flow.destinations)


def test_delivery_behavior_values():
    assert break_through("", "urgent") == "voceraAndDevice"
    assert break_through("", "high") == "none"
    assert break_through("No", "urgent") == "none"
    assert break_through("Y", "normal") == "voceraAndDevice"
    assert break_through("device", "normal") == "device"
    assert enunciate("") is True
    assert enunciate("No") is False
    assert enunciate("Enunciate") is True
    assert parse_delay("") == 0
    assert parse_delay("2 min") == 2


def test_ttl_and_enunciate_parameters():
    flow = _flow(ttl="30 min", enunciate="false")
    assert flow.param("ttl") == "30"
    assert flow.param("enunciate") == "false"


def test_assemble_directly_from_group():
    rec = InputRecord(category="NurseCalls", config_group="G", alarm_name="A", priority="Urgent(VCS)", device_a="VCS")
    [group] = merge([rec], "NONE")
    flow = assemble(group, [])
    assert flow.priority == "urgent"
    assert flow.name == "SEND NURSECALL | URGENT | A | G"
    assert flow.destinations == []


def test_facility_qualified_directive_keeps_its_facility():
    units = [UnitEntry(facility="BCH", unit_names="MedSurg", nurse_group="G")]
    flow = _flow(units=units, hops=[Hop(delay="0", recipient="North Tower:: VAssign: RN, VGroup: Charge Nurses")])
    groups, roles = flow.destinations
    assert [(g.name, g.facility_name) for g in groups.groups] == [("Charge Nurses", "BCH")]
    assert roles.groups == []
    assert [(r.name, r.facility_name) for r in roles.functional_roles] == [("RN", "North Tower")]


def test_call_back_without_accept_still_adds_accept_and_call():
    flow = _flow(response_options="Decline, Call Back")
    names = flow.param_names()
    assert flow.param("acceptAndCall") == '"Call Back"'
    assert names.index("callbackNumber") < names.index("acceptAndCall") < names.index("decline")
    assert "accept" not in names
