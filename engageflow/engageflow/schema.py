from __future__ import annotations

import re
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, model_validator


Category = Literal["NurseCalls", "Clinicals", "Orders"]
MergeMode = Literal["NONE", "MERGE_BY_CONFIG_GROUP", "MERGE_ACROSS_CONFIG_GROUP"]
MappedPriority = Literal["normal", "high", "urgent"]
DestinationKind = Literal["role", "group", "raw_group", "literal"]
SegmentStatus = Literal["plain", "valid", "invalid"]

CATEGORIES: Tuple[Category, ...] = ("NurseCalls", "Clinicals", "Orders")
MAX_HOPS = 5

_UNIT_SPLIT = re.compile(r"[,;/\n]")


class Hop(BaseModel):
    delay: str = ""
    recipient: str = ""

    model_config = {"extra": "forbid"}


class InputRecord(BaseModel):
    category: Category
    config_group: str = ""
    alarm_name: str = ""
    sending_name: str = ""
    priority: str = ""
    device_a: str = ""
    device_b: str = ""
    ringtone: str = ""
    response_options: str = ""
    emdan: str = ""
    hops: List[Hop] = Field(default_factory=list)
    in_scope: bool = True
    no_caregiver_group: str = ""
    units: List[str] = Field(default_factory=list)
    break_through_dnd: str = ""
    escalate_after: str = ""
    ttl: str = ""
    enunciate: str = ""
    facility: str = ""
    reclassified_from: Optional[Category] = None

    @model_validator(mode="after")
    def validate_hops(self) -> "InputRecord":
        if len(self.hops) > MAX_HOPS:
            raise ValueError(f"a record carries at most {MAX_HOPS} hops, got {len(self.hops)}")
        return self

    @property
    def display_name(self) -> str:
        return self.alarm_name.strip() or self.sending_name.strip()

    def padded_hops(self) -> List[Hop]:
        return list(self.hops) + [Hop() for _ in range(MAX_HOPS - len(self.hops))]

    model_config = {"extra": "forbid"}


class UnitEntry(BaseModel):
    facility: str
    unit_names: str = ""
    nurse_group: str = ""
    clinical_group: str = ""
    orders_group: str = ""
    no_caregiver_group: str = ""

    def group_for(self, category: Category) -> str:
        if category == "NurseCalls":
            return self.nurse_group
        if category == "Clinicals":
            return self.clinical_group
        return self.orders_group

    def names(self) -> List[str]:
        out: List[str] = []
        for part in _UNIT_SPLIT.split(self.unit_names or ""):
            name = part.strip()
            if name and name not in out:
                out.append(name)
        return out

    model_config = {"extra": "forbid"}


class FacilityRef(BaseModel):
    facility_name: str = Field(default="", serialization_alias="facilityName")
    name: str

    model_config = {"extra": "forbid", "frozen": True}


class Destination(BaseModel):
    """One parsed recipient directive."""

    kind: DestinationKind
    name: str
    raw: str
    facility_name: str = ""
    valid: Optional[bool] = None

    @property
    def is_role(self) -> bool:
        return self.kind == "role"

    model_config = {"extra": "forbid"}


class Segment(BaseModel):
    text: str
    status: SegmentStatus = "plain"

    model_config = {"extra": "forbid"}


class FlowGroup(BaseModel):
    category: Category
    key: Tuple[str, ...]
    records: List[InputRecord]
    alarm_names: List[str] = Field(default_factory=list)
    config_groups: List[str] = Field(default_factory=list)
    units: List[FacilityRef] = Field(default_factory=list)
    facility: str = ""
    no_caregiver_group: str = ""

    @model_validator(mode="after")
    def validate_nonempty(self) -> "FlowGroup":
        if not self.records:
            raise ValueError("a flow group needs at least one record")
        return self

    @property
    def representative(self) -> InputRecord:
        return self.records[0]

    model_config = {"extra": "forbid"}


class ParameterAttribute(BaseModel):
    name: str
    value: str
    destination_order: Optional[int] = Field(default=None, serialization_alias="destinationOrder")

    model_config = {"extra": "forbid"}


class InterfaceRef(BaseModel):
    reference_name: str = Field(serialization_alias="referenceName")
    component_name: str = Field(serialization_alias="componentName")

    model_config = {"extra": "forbid"}


class DestinationEntry(BaseModel):
    order: int
    delay_time: int = Field(default=0, serialization_alias="delayTime")
    destination_type: Literal["Normal", "NoDeliveries"] = Field(default="Normal", serialization_alias="destinationType")
    users: List[str] = Field(default_factory=list)
    functional_roles: List[FacilityRef] = Field(default_factory=list, serialization_alias="functionalRoles")
    groups: List[FacilityRef] = Field(default_factory=list)
    presence_config: Literal["device", "user_and_device"] = Field(default="device", serialization_alias="presenceConfig")
    recipient_type: Literal["group", "functional_role"] = Field(default="group", serialization_alias="recipientType")

    model_config = {"extra": "forbid"}


class ConditionFilter(BaseModel):
    attribute_path: str = Field(serialization_alias="attributePath")
    operator: str
    value: Optional[str] = None

    model_config = {"extra": "forbid"}


class FlowCondition(BaseModel):
    name: str
    filters: List[ConditionFilter] = Field(default_factory=list)

    model_config = {"extra": "forbid"}


class FlowDocument(BaseModel):
    name: str
    priority: MappedPriority
    status: str = "Active"
    alarms_alerts: List[str] = Field(default_factory=list, serialization_alias="alarmsAlerts")
    conditions: List[FlowCondition] = Field(default_factory=list)
    destinations: List[DestinationEntry] = Field(default_factory=list)
    interfaces: List[InterfaceRef] = Field(default_factory=list)
    parameter_attributes: List[ParameterAttribute] = Field(default_factory=list, serialization_alias="parameterAttributes")
    units: List[FacilityRef] = Field(default_factory=list)

    def param(self, name: str, order: Optional[int] = None) -> Optional[str]:
        for p in self.parameter_attributes:
            if p.name == name and p.destination_order == order:
                return p.value
        return None

    def param_names(self) -> List[str]:
        return [p.name for p in self.parameter_attributes]

    model_config = {"extra": "forbid"}


class AlarmValue(BaseModel):
    category: str = ""
    value: str

    model_config = {"extra": "forbid"}


class AlarmDefinition(BaseModel):
    name: str
    type: Category
    values: List[AlarmValue] = Field(default_factory=list)

    model_config = {"extra": "forbid"}


class CategoryDocument(BaseModel):
    category: Category = Field(exclude=True)
    version: str = "1.1.0"
    alarm_alert_definitions: List[AlarmDefinition] = Field(default_factory=list, serialization_alias="alarmAlertDefinitions")
    delivery_flows: List[FlowDocument] = Field(default_factory=list, serialization_alias="deliveryFlows")

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)

    model_config = {"extra": "forbid"}


class InterfaceReferences(BaseModel):
    edge: str = "OutgoingWCTP"
    vmp: str = "VMP"
    vocera: str = "Vocera"
    xmpp: str = "XMPP"

    @model_validator(mode="after")
    def blank_means_component(self) -> "InterfaceReferences":
        self.edge = self.edge.strip() or "OutgoingWCTP"
        self.vmp = self.vmp.strip() or "VMP"
        self.vocera = self.vocera.strip() or "Vocera"
        self.xmpp = self.xmpp.strip() or "XMPP"
        return self

    model_config = {"extra": "forbid"}


class CompileSettings(BaseModel):
    merge_mode: MergeMode = "MERGE_BY_CONFIG_GROUP"
    default_edge: bool = False
    default_vmp: bool = False
    default_vocera: bool = False
    default_xmpp: bool = False
    interface_references: InterfaceReferences = Field(default_factory=InterfaceReferences)
    alert_name_transformations: Dict[str, str] = Field(default_factory=dict)
    known_roles: List[str] = Field(default_factory=list)
    known_groups: List[str] = Field(default_factory=list)

    model_config = {"extra": "forbid"}
