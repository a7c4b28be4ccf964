"""
Pattern Detectors
=================

Five independent detectors. Each is a pure function of the entries in
its own window (or, for suspicious content, of a single message) plus a
threshold, and returns a DetectorResult.
"""

from collections import Counter
from typing import List, NamedTuple, Optional, Sequence
from urllib.parse import urlsplit

from .constants import (
    CAPS_MIN_LENGTH,
    CAPS_RATIO,
    CAPS_WEIGHT,
    CHAR_REPEAT_PATTERN,
    CHAR_REPEAT_WEIGHT,
    EMOJI_LIMIT,
    EMOJI_PATTERN,
    EMOJI_WEIGHT,
    INVITE_PATTERN,
    INVITE_WEIGHT,
    MASS_MENTION_BONUS,
    SUSPICIOUS_CONTENT_THREAT,
    SUSPICIOUS_DOMAIN_WEIGHT,
    SUSPICIOUS_TLDS,
    UNKNOWN_DOMAIN,
    UPPERCASE_PATTERN,
    URL_PATTERN,
    URL_SHORTENERS,
)
from .models import DetectorResult, DetectorType, Event, WindowEntry


# =============================================================================
# Payloads
# =============================================================================

class MentionPayload(NamedTuple):
    """Mention activity carried by one message."""
    count: int
    everyone: bool


# =============================================================================
# Content Helpers
# =============================================================================

def normalize_content(content: Optional[str]) -> str:
    """Lowercase and trim for identical-content comparison."""
    return (content or "").lower().strip()


def extract_urls(content: Optional[str]) -> List[str]:
    return URL_PATTERN.findall(content or "")


def extract_domain(url: str) -> str:
    """Hostname of a URL, or "unknown" when it cannot be parsed."""
    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return UNKNOWN_DOMAIN
    return hostname or UNKNOWN_DOMAIN


def count_suspicious_domains(domains: Sequence[str]) -> int:
    """
    Count abusive-TLD and shortener hits.

    A domain can count twice when it matches both lists.
    """
    count = 0
    for domain in domains:
        if domain.endswith(SUSPICIOUS_TLDS):
            count += 1
        if any(shortener in domain for shortener in URL_SHORTENERS):
            count += 1
    return count


def count_emojis(content: str) -> int:
    return len(EMOJI_PATTERN.findall(content))


# =============================================================================
# Window Entries
# =============================================================================

def entries_for(detector: DetectorType, event: Event) -> List[WindowEntry]:
    """
    Window entries a message contributes to a detector's window.

    Every message counts toward rapid messages. The other windows only
    grow when the message carries text, links or mentions, so
    attachment-only posts never repeat as identical content.
    """
    ts = event.timestamp

    if detector is DetectorType.RAPID_MESSAGES:
        return [WindowEntry(ts, (event.message_id, event.channel_id))]

    if detector is DetectorType.IDENTICAL_CONTENT:
        text = normalize_content(event.content)
        return [WindowEntry(ts, text)] if text else []

    if detector is DetectorType.LINK_SPAM:
        domains = [extract_domain(url) for url in extract_urls(event.content)]
        if event.link_count is not None and event.link_count > len(domains):
            domains.extend([UNKNOWN_DOMAIN] * (event.link_count - len(domains)))
        return [WindowEntry(ts, domain) for domain in domains]

    if detector is DetectorType.MENTION_SPAM:
        if event.mention_count <= 0 and not event.mentions_everyone:
            return []
        return [WindowEntry(ts, MentionPayload(event.mention_count, event.mentions_everyone))]

    return []


def empty_result(detector: DetectorType) -> DetectorResult:
    return DetectorResult(type=detector, score=0.0, is_threat=False)


# =============================================================================
# Detectors
# =============================================================================

def detect_rapid_messages(
    entries: Sequence[WindowEntry],
    threshold: int,
    window_ms: int,
) -> DetectorResult:
    """Message count in the window against the threshold."""
    count = len(entries)
    return DetectorResult(
        type=DetectorType.RAPID_MESSAGES,
        score=min(count / threshold, 1.0),
        is_threat=count >= threshold,
        details={
            "messageCount": count,
            "threshold": threshold,
            "timeWindow": window_ms,
        },
    )


def detect_identical_content(
    entries: Sequence[WindowEntry],
    threshold: int,
) -> DetectorResult:
    """Highest repeat count of any normalized message text in the window."""
    counts = Counter(entry.payload for entry in entries)
    max_repeats = max(counts.values(), default=0)
    return DetectorResult(
        type=DetectorType.IDENTICAL_CONTENT,
        score=min(max_repeats / threshold, 1.0),
        is_threat=max_repeats >= threshold,
        details={
            "maxRepeats": max_repeats,
            "threshold": threshold,
            "uniqueMessages": len(counts),
        },
    )


def detect_link_spam(
    entries: Sequence[WindowEntry],
    threshold: int,
) -> DetectorResult:
    """
    Link count in the window, plus a bonus per suspicious domain.

    The bonus lets the score exceed 1 to signal severity.
    """
    if not entries:
        return empty_result(DetectorType.LINK_SPAM)

    domains = [entry.payload for entry in entries]
    suspicious = count_suspicious_domains(domains)
    count = len(domains)

    return DetectorResult(
        type=DetectorType.LINK_SPAM,
        score=min(count / threshold, 1.0) + SUSPICIOUS_DOMAIN_WEIGHT * suspicious,
        is_threat=count >= threshold or suspicious > 0,
        details={
            "linkCount": count,
            "uniqueDomains": len(set(domains)),
            "suspiciousDomains": suspicious,
            "threshold": threshold,
        },
    )


def detect_mention_spam(
    entries: Sequence[WindowEntry],
    threshold: int,
) -> DetectorResult:
    """Total mentions in the window; @everyone/@here always counts as a threat."""
    if not entries:
        return empty_result(DetectorType.MENTION_SPAM)

    total = sum(entry.payload.count for entry in entries)
    mass_mention = any(entry.payload.everyone for entry in entries)

    score = min(total / threshold, 1.0)
    if mass_mention:
        score += MASS_MENTION_BONUS

    return DetectorResult(
        type=DetectorType.MENTION_SPAM,
        score=score,
        is_threat=total >= threshold or mass_mention,
        details={
            "totalMentions": total,
            "threshold": threshold,
            "hasEveryoneMention": mass_mention,
            "mentionEvents": len(entries),
        },
    )


def detect_suspicious_content(content: Optional[str]) -> DetectorResult:
    """Stateless heuristics over a single message."""
    content = content or ""
    score = 0.0
    patterns: List[str] = []

    if INVITE_PATTERN.search(content):
        score += INVITE_WEIGHT
        patterns.append("discord_invite")

    emoji_count = count_emojis(content)
    if emoji_count > EMOJI_LIMIT:
        score += EMOJI_WEIGHT
        patterns.append("emoji_spam")

    upper_ratio = len(UPPERCASE_PATTERN.findall(content)) / len(content) if content else 0.0
    if upper_ratio > CAPS_RATIO and len(content) > CAPS_MIN_LENGTH:
        score += CAPS_WEIGHT
        patterns.append("caps_spam")

    if CHAR_REPEAT_PATTERN.search(content):
        score += CHAR_REPEAT_WEIGHT
        patterns.append("char_repeat")

    return DetectorResult(
        type=DetectorType.SUSPICIOUS_CONTENT,
        score=score,
        is_threat=score > SUSPICIOUS_CONTENT_THREAT,
        details={
            "patterns": patterns,
            "emojiCount": emoji_count,
            "upperCaseRatio": round(upper_ratio, 3),
        },
    )


__all__ = [
    "MentionPayload",
    "normalize_content",
    "extract_urls",
    "extract_domain",
    "count_suspicious_domains",
    "count_emojis",
    "entries_for",
    "empty_result",
    "detect_rapid_messages",
    "detect_identical_content",
    "detect_link_spam",
    "detect_mention_spam",
    "detect_suspicious_content",
]
