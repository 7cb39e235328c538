from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Pattern, Tuple

from .schema import CompileSettings, InterfaceRef, MappedPriority


logger = logging.getLogger(__name__)

EDGE = "OutgoingWCTP"
VMP = "VMP"
VOCERA = "Vocera"
XMPP = "XMPP"

# Fixed emission order for the interfaces array.
COMPONENT_ORDER: Tuple[str, ...] = (EDGE, VMP, VOCERA, XMPP)

DEVICE_KEYWORDS = re.compile(r"VCS|Edge|XMPP|Vocera|VMP|OutgoingWCTP", re.IGNORECASE)

_FAMILIES: List[Tuple[str, Pattern[str]]] = [
    (EDGE, re.compile(r"edge|outgoingwctp", re.IGNORECASE)),
    (VMP, re.compile(r"vcs|vmp", re.IGNORECASE)),
    (VOCERA, re.compile(r"vocera(?!\s*vcs)|vmi", re.IGNORECASE)),
    (XMPP, re.compile(r"xmpp", re.IGNORECASE)),
]

VMP_PRIORITIES: Dict[str, MappedPriority] = {
    "": "normal",
    "normal": "normal",
    "normal(vcs)": "normal",
    "high": "high",
    "high(vcs)": "high",
    "urgent": "urgent",
    "urgent(vcs)": "urgent",
}

DEFAULT_PRIORITIES: Dict[str, MappedPriority] = {
    "": "normal",
    "0": "normal",
    "l": "normal",
    "low": "normal",
    "low(edge)": "normal",
    "normal": "normal",
    "1": "high",
    "m": "high",
    "med": "high",
    "medium": "high",
    "medium(edge)": "high",
    "2": "urgent",
    "h": "urgent",
    "high": "urgent",
    "high(edge)": "urgent",
    "urgent": "urgent",
}

GLOBAL_SETTING = "global setting"


def device_components(device: str) -> List[str]:
    text = (device or "").strip()
    if not text:
        return []
    return [component for component, pattern in _FAMILIES if pattern.search(text)]


def reference_name(component: str, settings: CompileSettings) -> str:
    refs = settings.interface_references
    return {EDGE: refs.edge, VMP: refs.vmp, VOCERA: refs.vocera, XMPP: refs.xmpp}[component]


def default_components(settings: CompileSettings) -> List[str]:
    flags = {
        EDGE: settings.default_edge,
        VMP: settings.default_vmp,
        VOCERA: settings.default_vocera,
        XMPP: settings.default_xmpp,
    }
    return [c for c in COMPONENT_ORDER if flags[c]]


def infer_interfaces(device_a: str, device_b: str, settings: CompileSettings) -> List[InterfaceRef]:
    found = set(device_components(device_a)) | set(device_components(device_b))
    a_blank = not (device_a or "").strip()
    b_blank = not (device_b or "").strip()
    # Defaults only fill in when no keyword matched, and never for a keyword-less A with an empty B.
    if not found and (a_blank or not b_blank):
        found = set(default_components(settings))
        if found:
            logger.debug("devices %r/%r: using default interfaces %s", device_a, device_b, sorted(found))
    return [
        InterfaceRef(reference_name=reference_name(c, settings), component_name=c)
        for c in COMPONENT_ORDER
        if c in found
    ]


def priority_family(device_a: str, device_b: str) -> str:
    """``"edge"`` or ``"vmp"``; the first device that names a keyword decides."""
    for device in (device_a, device_b):
        components = device_components(device)
        if components:
            return "edge" if EDGE in components else "vmp"
    return "edge"


def map_priority(raw: str, family: str = "edge") -> MappedPriority:
    key = re.sub(r"\s+", "", raw or "").lower()
    if family == "vmp" and key in VMP_PRIORITIES:
        return VMP_PRIORITIES[key]
    if key not in DEFAULT_PRIORITIES:
        logger.debug("unrecognized priority %r, using normal", raw)
    return DEFAULT_PRIORITIES.get(key, "normal")


def sound_values(ringtone: str, components: List[str]) -> List[Tuple[str, str]]:
    """Return ``(parameter, sound)`` pairs for the ringtone on the given interfaces."""
    tone = (ringtone or "").strip()
    if not tone or tone.lower() == GLOBAL_SETTING:
        return []
    base = tone[:-4] if tone.lower().endswith(".wav") else tone
    wav = base + ".wav"

    alert: Optional[str] = None
    badge: Optional[str] = None
    if VOCERA in components:
        alert, badge = base, wav
    if VMP in components:
        badge = wav
    if alert is None and (EDGE in components or XMPP in components or not components):
        alert = tone

    out: List[Tuple[str, str]] = []
    if alert is not None:
        out.append(("alertSound", alert))
    if badge is not None:
        out.append(("badgeAlertSound", badge))
    return out
