"""
Program guide resolution and description rendering.

Deutsch:
    Ermittelt laufende und kommende Sendungen und rendert den Beschreibungstext.
"""

from __future__ import annotations

import base64
import binascii
import logging
import math
import unicodedata
from dataclasses import replace
from datetime import datetime, tzinfo
from typing import List, Optional, Sequence

from .errors import MalformedPayload, UpstreamUnavailable
from .models import CanonicalChannel, GuideResult, ProgramEntry

log = logging.getLogger(__name__)

DEFAULT_UPCOMING_LIMIT = 4
PROGRESS_SLOTS = 10
SEPARATOR = "─" * 26


class GuideResolver:
    """
    Resolve the current and upcoming programs for one source.

    Failures never reach the caller; they produce an unavailable result.

    Deutsch:
        Liefert laufende und kommende Sendungen; Fehler ergeben "nicht verfügbar".
    """

    def __init__(
        self,
        guide_client,
        *,
        upcoming_limit: int = DEFAULT_UPCOMING_LIMIT,
        decode_base64: Optional[bool] = None,
    ) -> None:
        self.guide_client = guide_client
        self.upcoming_limit = upcoming_limit
        if decode_base64 is None:
            decode_base64 = bool(getattr(guide_client, "guide_text_base64", False))
        self.decode_base64 = decode_base64

    def resolve(self, source_id: str, now: datetime) -> GuideResult:
        try:
            programs = self.guide_client.fetch_short_epg(source_id)
        except (UpstreamUnavailable, MalformedPayload) as exc:
            log.warning("guide unavailable for source %s: %s", source_id, exc)
            return GuideResult.unavailable()
        if not programs:
            return GuideResult.unavailable()
        if self.decode_base64:
            programs = [_decode_program(program) for program in programs]
        return build_guide(programs, now, upcoming_limit=self.upcoming_limit)


def build_guide(programs: Sequence[ProgramEntry], now: datetime, *, upcoming_limit: int = DEFAULT_UPCOMING_LIMIT) -> GuideResult:
    """
    Derive the guide windows from an already decoded program list.

    When no program contains ``now`` the first listed program is reported as
    current; it is treated as the next known program rather than as missing.
    """

    if not programs:
        return GuideResult.unavailable()
    current = next((program for program in programs if program.start <= now <= program.end), programs[0])
    upcoming = [program for program in programs if program.start > now][: max(upcoming_limit, 0)]
    return GuideResult(
        available=True,
        current=current,
        upcoming=tuple(upcoming),
        progress_percent=progress_percent(current.start, current.end, now),
    )


def progress_percent(start: datetime, end: datetime, now: datetime) -> int:
    if now < start:
        return 0
    if now > end:
        return 100
    duration = (end - start).total_seconds()
    if duration <= 0:
        return 0
    ratio = (now - start).total_seconds() / duration * 100
    return max(0, min(100, int(math.floor(ratio + 0.5))))


def progress_bar(percent: int) -> str:
    filled = int(math.floor(percent / 10 + 0.5))
    filled = max(0, min(PROGRESS_SLOTS, filled))
    return f"{'🟢' * filled}{'⚪' * (PROGRESS_SLOTS - filled)} {percent}%"


def decode_guide_text(value: str) -> str:
    if not value:
        return value
    try:
        decoded = base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, ValueError, UnicodeDecodeError):
        return value
    # Plain titles such as "Film" are valid base64 too; their decoding is binary noise.
    if any(unicodedata.category(char) == "Cc" and char not in "\n\r\t" for char in decoded):
        return value
    return decoded


def _decode_program(program: ProgramEntry) -> ProgramEntry:
    return replace(
        program,
        title=decode_guide_text(program.title),
        description=decode_guide_text(program.description),
    )


def render_description(channel: CanonicalChannel, guide: GuideResult, now: datetime, tz: tzinfo) -> str:
    """
    Render the multi-line description shown on the channel detail page.

    Deutsch:
        Rendert den mehrzeiligen Beschreibungstext der Senderdetailseite.
    """

    lines: List[str] = [
        f"🕒 Local time: {_clock(now, tz)}",
        f"📺 Channel: {channel.display_name}",
        f"📂 Group: {channel.category or 'Generic'}",
        SEPARATOR,
    ]
    current = guide.current
    if not guide.available or current is None:
        lines.append("📡 Guide currently unavailable.")
        return "\n".join(lines)

    lines.append(f"🔴 NOW: {current.title}")
    lines.append(f"⏰ {_clock(current.start, tz)} - {_clock(current.end, tz)}")
    lines.append(f"📊 {progress_bar(guide.progress_percent)}")
    if current.description:
        lines.append("")
        lines.append(f"📝 {current.description}")
    if guide.upcoming:
        lines.append(SEPARATOR)
        lines.append("📅 UP NEXT:")
        for program in guide.upcoming:
            lines.append(f"• {_clock(program.start, tz)} - {program.title}")
    return "\n".join(lines)


def _clock(value: datetime, tz: tzinfo) -> str:
    return value.astimezone(tz).strftime("%H:%M")
