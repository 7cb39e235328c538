from __future__ import annotations

import logging
import re
from typing import Collection, Iterable, List, NamedTuple, Optional, Pattern, Tuple

from .devices import DEVICE_KEYWORDS
from .schema import Destination, DestinationKind, Segment


logger = logging.getLogger(__name__)

RAW_GROUP_MARKER = "g-"
MIN_CANDIDATE_LEN = 2
IGNORED_TOKENS = {"n/a", "na"}

_TOKEN_SPLIT = re.compile(r"[,;\n]")
_BRACKETED = re.compile(r"\[[^\]]*\]")
_TRAILING_JUNK = re.compile(r"[^a-zA-Z0-9_\-\s]+$")
_EDGE_CHARS = " \t:;,.-)]["
_CONTEXT_WORD = re.compile(r"(?:^|[\s\[(:\-])\[?room\b\s*[\]):\-]*\s*(?P<rest>\S.*)$", re.IGNORECASE)
_KEYWORD_SEGMENT = re.compile(r"((?:VAssign|VGroup|Group):\s*)([^,;\n]{%d,})?" % MIN_CANDIDATE_LEN, re.IGNORECASE)
_FACILITY_PREFIX = re.compile(r"^(?P<facility>[^:]*\S)\s*::\s*(?P<rest>\S.*)$")
_KEYWORD_NAMES = {"vgroup", "vassign", "group", "assign", "assigned"}


class DirectiveRule(NamedTuple):
    name: str
    pattern: Pattern[str]
    kind: DestinationKind
    keyword: bool


# Evaluated in order; the first matching rule decides the destination kind.
RULES: List[DirectiveRule] = [
    DirectiveRule("assignment", re.compile(r"^v?assign(?:ed)?[: ]+", re.IGNORECASE), "role", True),
    DirectiveRule("group", re.compile(r"^(?:vgroup[: ]+|group\s*:\s*)", re.IGNORECASE), "group", True),
    DirectiveRule("raw_group", re.compile(r"^%s" % re.escape(RAW_GROUP_MARKER), re.IGNORECASE), "raw_group", False),
    DirectiveRule("context_word", _CONTEXT_WORD, "role", False),
]


def split_directives(text: str) -> List[str]:
    """Split hop text on ``,``/``;``/newline, dropping blanks and N/A markers."""
    tokens: List[str] = []
    for part in _TOKEN_SPLIT.split(text or ""):
        token = part.strip()
        if token and token.lower() not in IGNORED_TOKENS:
            tokens.append(token)
    return tokens


def strip_brackets(text: str) -> str:
    cleaned = _BRACKETED.sub(" ", text)
    cleaned = re.sub(r"\s+", " ", cleaned)
    return cleaned.strip(_EDGE_CHARS)


def strip_group_keyword(text: str) -> str:
    """``VGroup: Nurses`` -> ``Nurses``; text without a keyword is returned trimmed."""
    value = (text or "").strip()
    for rule in RULES:
        if rule.keyword and rule.pattern.search(value):
            return strip_brackets(rule.pattern.sub("", value, count=1))
    return value


def after_context_word(text: str) -> Optional[str]:
    m = _CONTEXT_WORD.search(text)
    if not m:
        return None
    rest = m.group("rest").strip(_EDGE_CHARS)
    return rest or None


def split_facility(text: str) -> Tuple[str, str]:
    """``North Tower:: VAssign: RN`` -> ``("North Tower", "VAssign: RN")``; otherwise ``("", text)``."""
    m = _FACILITY_PREFIX.match(text)
    if not m or m.group("facility").strip().lower() in _KEYWORD_NAMES:
        return "", text
    return m.group("facility").strip(), m.group("rest")


def match_rule(text: str) -> Optional[DirectiveRule]:
    for rule in RULES:
        if rule.pattern.search(text):
            return rule
    return None


def _validation_name(name: str) -> str:
    return _TRAILING_JUNK.sub("", name).strip()


def _is_known(name: str, known: Iterable[str]) -> bool:
    target = _validation_name(name).lower()
    if not target:
        return False
    return any(target == k.strip().lower() for k in known)


def parse(directive: str, known_roles: Collection[str] = (), known_groups: Collection[str] = ()) -> Destination:
    text = (directive or "").strip()
    facility, text = split_facility(text)
    if facility:
        dest = parse(text, known_roles, known_groups)
        return dest.model_copy(update={"raw": directive, "facility_name": facility})

    rule = match_rule(text)

    if rule is None:
        return Destination(kind="literal", name=text, raw=directive)

    if rule.name == "raw_group":
        return Destination(kind="raw_group", name=text, raw=directive)

    if rule.name == "context_word":
        name = after_context_word(text) or ""
        return Destination(kind="role", name=name, raw=directive, valid=_is_known(name, known_roles))

    # keyword rules: everything after the keyword up to the end of the token is the candidate
    candidate = strip_brackets(text[rule.pattern.search(text).end():])
    if candidate.lower().startswith(RAW_GROUP_MARKER):
        return Destination(kind="raw_group", name=candidate, raw=directive)
    context = after_context_word(candidate)
    if context:
        candidate = context
    if len(candidate) < MIN_CANDIDATE_LEN:
        logger.debug("directive %r has no usable candidate after keyword", directive)
        candidate = ""
    known = known_roles if rule.kind == "role" else known_groups
    return Destination(kind=rule.kind, name=candidate, raw=directive, valid=_is_known(candidate, known))


def parse_directives(text: str, known_roles: Collection[str] = (), known_groups: Collection[str] = ()) -> List[Destination]:
    """Parse every directive of a hop; blank candidates are dropped."""
    out: List[Destination] = []
    for token in split_directives(text):
        dest = parse(token, known_roles, known_groups)
        if dest.name:
            out.append(dest)
    return out


def segment_line(line: str, known_roles: Collection[str] = (), known_groups: Collection[str] = ()) -> List[Segment]:
    segments: List[Segment] = []
    if not line:
        return segments
    last_end = 0
    for m in _KEYWORD_SEGMENT.finditer(line):
        if m.start() > last_end:
            segments.append(Segment(text=line[last_end:m.start()]))
        prefix = m.group(1)
        segments.append(Segment(text=prefix))
        raw = m.group(2)
        if raw is not None:
            candidate = raw.strip()
            if not candidate:
                segments.append(Segment(text=raw))
            else:
                # whitespace around the name stays as plain text so segments rejoin to the line
                lead = raw[: len(raw) - len(raw.lstrip())]
                trail = raw[len(raw.rstrip()):]
                if lead:
                    segments.append(Segment(text=lead))
                known = known_roles if prefix.lower().startswith("vassign") else known_groups
                status = "valid" if _is_known(candidate, known) else "invalid"
                segments.append(Segment(text=candidate, status=status))
                if trail:
                    segments.append(Segment(text=trail))
        last_end = m.end()
    if last_end < len(line):
        segments.append(Segment(text=line[last_end:]))
    return segments


def segment_text(text: str, known_roles: Collection[str] = (), known_groups: Collection[str] = ()) -> List[List[Segment]]:
    if text is None:
        return []
    return [segment_line(line, known_roles, known_groups) for line in text.split("\n")]


def has_valid_recipient_keyword(text: str) -> bool:
    """Blank text is accepted; anything else must name a delivery device."""
    if not text or not text.strip():
        return True
    return DEVICE_KEYWORDS.search(text) is not None
