from __future__ import annotations

import csv
import json
from typing import Any, Dict, Iterable, List, Mapping


CSV_HEADERS = [
    "category",
    "name",
    "priority",
    "alarms",
    "units",
    "interfaces",
    "recipients",
    "response_type",
    "no_caregiver_group",
    "parameter_count",
]


def _param(flow: Dict[str, Any], name: str) -> Any:
    for p in flow.get("parameterAttributes", []):
        if p.get("name") == name and "destinationOrder" not in p:
            return json.loads(p.get("value", "null"))
    return None


def _recipients(flow: Dict[str, Any]) -> List[str]:
    out: List[str] = []
    for d in flow.get("destinations", []):
        if d.get("destinationType") == "NoDeliveries":
            continue
        for ref in d.get("groups", []) + d.get("functionalRoles", []):
            out.append(f"{d.get('order')}:{ref.get('name')}")
    return out


def _row(category: str, flow: Dict[str, Any]) -> Dict[str, Any]:
    no_care = [
        ref.get("name")
        for d in flow.get("destinations", [])
        if d.get("destinationType") == "NoDeliveries"
        for ref in d.get("groups", [])
    ]
    return {
        "category": category,
        "name": flow.get("name"),
        "priority": flow.get("priority"),
        "alarms": "|".join(flow.get("alarmsAlerts", [])),
        "units": "|".join(u.get("name", "") for u in flow.get("units", [])),
        "interfaces": "|".join(i.get("componentName", "") for i in flow.get("interfaces", [])),
        "recipients": "|".join(_recipients(flow)),
        "response_type": _param(flow, "responseType"),
        "no_caregiver_group": "|".join(no_care),
        "parameter_count": len(flow.get("parameterAttributes", [])),
    }


def rows(documents: Mapping[str, Dict[str, Any]]) -> Iterable[Dict[str, Any]]:
    for category, doc in documents.items():
        for flow in doc.get("deliveryFlows", []):
            yield _row(category, flow)


def to_csv(documents: Mapping[str, Dict[str, Any]], out_path: str) -> int:
    count = 0
    with open(out_path, "w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=CSV_HEADERS)
        w.writeheader()
        for row in rows(documents):
            w.writerow(row)
            count += 1
    return count
