from __future__ import annotations

import logging
from typing import Any, Dict, List, Tuple

from graphviz import Digraph


logger = logging.getLogger(__name__)

shapes = {
    "alarm": "box",
    "step": "rectangle",
    "no_caregiver": "octagon",
}


def sanitize(text: Any) -> str:
    """Graphviz labels choke on brackets and quotes; keep the text readable."""
    if text is None:
        return ""
    return str(text).replace("[", "(").replace("]", ")").replace('"', "'").strip()


def _steps(flow: Dict[str, Any]) -> List[Tuple[int, str, List[str], int]]:
    """(order, destination type, recipient names, delay) per destination order."""
    by_order: Dict[Tuple[int, str], Tuple[List[str], int]] = {}
    for d in flow.get("destinations", []):
        key = (int(d.get("order", 0)), d.get("destinationType", "Normal"))
        names, delay = by_order.setdefault(key, ([], int(d.get("delayTime", 0))))
        for ref in d.get("groups", []) + d.get("functionalRoles", []):
            names.append(sanitize(ref.get("name")))
    return [(order, kind, names, delay) for (order, kind), (names, delay) in sorted(by_order.items())]


def alarm_label(flow: Dict[str, Any]) -> str:
    devices = ", ".join(i.get("componentName", "") for i in flow.get("interfaces", [])) or "none"
    alarms = " / ".join(sanitize(a) for a in flow.get("alarmsAlerts", []))
    return f"{alarms}\\nPriority: {sanitize(flow.get('priority'))}\\nDevice: {sanitize(devices)}"


def build_callflow(flow: Dict[str, Any]) -> Digraph:
    dot = Digraph("Callflow", comment=sanitize(flow.get("name")))
    dot.attr("graph", rankdir="TB")
    dot.node("alarm", alarm_label(flow), shape=shapes["alarm"])
    previous = "alarm"
    for order, kind, names, delay in _steps(flow):
        node_id = f"step_{order}_{kind}"
        if kind == "NoDeliveries":
            label = f"No caregiver\\n{', '.join(names)}"
            dot.node(node_id, label, shape=shapes["no_caregiver"])
        else:
            label = f"Recipient {order + 1}\\n{', '.join(names)}"
            dot.node(node_id, label, shape=shapes["step"])
        dot.edge(previous, node_id, label=f"{delay}s" if delay else "")
        previous = node_id
    return dot


def render_callflow(flow: Dict[str, Any], out_path: str) -> str:
    """Write the diagram; the file extension picks the graphviz format."""
    fmt = out_path.rsplit(".", 1)[-1] if "." in out_path else "svg"
    dot = build_callflow(flow)
    dot.format = fmt
    stem = out_path[: -(len(fmt) + 1)] if out_path.endswith("." + fmt) else out_path
    rendered = dot.render(filename=stem, cleanup=True)
    logger.debug("rendered %s", rendered)
    return rendered


def save_dot(flow: Dict[str, Any], out_path: str) -> str:
    dot = build_callflow(flow)
    return dot.save(filename=out_path)
