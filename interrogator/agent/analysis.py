"""
Answer analysis: structured-section parser, absence sentinel, heuristic fallback.

Grammar of a structured analysis (labels of every locale are accepted):

    analysis := { line }
    section  := label-line { bullet-line | other-line }
    label    := FINDINGS: | FOLLOW-UP: | ERKENNTNISSE: | NACHFRAGEN: | CURIOSITY:
    bullet   := ("-" | "*" | "•") text

A section runs until the next label line or the end of text; non-bullet lines
inside a section are ignored. Text with no label line at all is malformed.
"""

import logging
import re

from interrogator.agent.prompts import LOCALES, locale

logger = logging.getLogger(__name__)

_FINDINGS = "findings"
_FOLLOW_UPS = "follow_ups"

# label (upper-cased, colon stripped) -> section
_LABELS: dict[str, str] = {"CURIOSITY": _FOLLOW_UPS}
for _table in LOCALES.values():
    _LABELS[_table["findings_label"].rstrip(":").upper()] = _FINDINGS
    _LABELS[_table["follow_up_label"].rstrip(":").upper()] = _FOLLOW_UPS

_LABEL_RE = re.compile(
    r"^\s*(?:#+\s*|\*\*)?(" + "|".join(re.escape(k) for k in _LABELS) + r")(?:\*\*)?\s*:(?:\*\*)?\s*(.*)$",
    re.IGNORECASE,
)
_BULLET_RE = re.compile(r"^\s*[-*•]\s+(.*\S)\s*$")

_ABSENCE_PHRASES: tuple[str, ...] = tuple(
    phrase for table in LOCALES.values() for phrase in table["absence_phrases"]
) + tuple(table["absence_finding"].lower() for table in LOCALES.values())


def parse_analysis(text: str) -> tuple[list[str], list[str]] | None:
    """Return (findings, follow_ups), or None when no section label is present."""
    if not text or not text.strip():
        return None
    sections: dict[str, list[str]] = {_FINDINGS: [], _FOLLOW_UPS: []}
    current: str | None = None
    seen_label = False
    for line in text.splitlines():
        label_match = _LABEL_RE.match(line)
        if label_match:
            current = _LABELS[label_match.group(1).upper()]
            seen_label = True
            # Tolerate "FINDINGS: - fact" on the label line itself
            inline = _BULLET_RE.match(label_match.group(2) or "")
            if inline:
                sections[current].append(inline.group(1))
            continue
        if current is None:
            continue
        bullet = _BULLET_RE.match(line)
        if bullet:
            sections[current].append(bullet.group(1))
    if not seen_label:
        return None
    return sections[_FINDINGS], sections[_FOLLOW_UPS]


def is_absent(text: str) -> bool:
    """True when the text says the requested information is not in the source, in any supported locale."""
    lowered = (text or "").lower()
    return any(phrase in lowered for phrase in _ABSENCE_PHRASES)


_SENTINEL_FINDINGS: frozenset[str] = frozenset(
    table["absence_finding"].lower() for table in LOCALES.values()
)


def reports_absence(answer: str, findings: tuple[str, ...] | list[str] = ()) -> bool:
    """A turn reports absence if its answer says so, or analysis produced the sentinel finding."""
    if is_absent(answer):
        return True
    return any(f.strip().lower() in _SENTINEL_FINDINGS for f in findings)


def heuristic_analysis(answer: str, language: str = "en") -> tuple[list[str], list[str]]:
    """Keyword fallback. Never raises; always returns two lists."""
    findings: list[str] = []
    follow_ups: list[str] = []
    try:
        table = locale(language)
        lowered = (answer or "").lower()
        if is_absent(lowered):
            findings.append(table["absence_finding"])
            return findings, follow_ups
        for keywords, finding, follow_up in table["heuristics"]:
            if any(k in lowered for k in keywords):
                findings.append(finding)
                follow_ups.append(follow_up)
    except Exception:
        logger.exception("[analysis:heuristic] failed; returning partial result")
    return findings, follow_ups


def build_analysis_prompt(question: str, answer: str, language: str = "en") -> str:
    table = locale(language)
    return table["analysis_prompt"].format(
        question=question,
        answer=answer,
        findings_label=table["findings_label"],
        follow_up_label=table["follow_up_label"],
    )
