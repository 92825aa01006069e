from __future__ import annotations

"""Weekly report model and text rendering.

The report is built from the grouped rows returned by
``ViolationStore.aggregate_in_window`` and kept independent of Discord so it
can be rendered as an embed by the bot or as plain text by the CLI.
"""

from dataclasses import dataclass, field
from datetime import datetime

from .db import WeeklyCount
from .week import WeekWindow


REPORT_TITLE = "Weekly Rule Break Report"
EMPTY_REPORT_TEXT = "No rule breaks this week 🎉"


@dataclass
class GuildSection:
    """All report lines for one guild tag."""
    guild_tag: str
    lines: list[WeeklyCount] = field(default_factory=list)


@dataclass
class WeeklyReport:
    """Presentation-neutral weekly summary.

    Attributes
    ----------
    title : str
        Report heading.
    generated_at : datetime
        Instant the report was built.
    window : WeekWindow
        Week the counts cover.
    sections : list of GuildSection
        One section per guild tag, in ascending tag order.
    """
    title: str
    generated_at: datetime
    window: WeekWindow
    sections: list[GuildSection]

    @property
    def is_empty(self) -> bool:
        return not self.sections


def build_report(rows: list[WeeklyCount], generated_at: datetime, window: WeekWindow) -> WeeklyReport:
    """Group sorted rows into per-guild sections.

    Parameters
    ----------
    rows : list of WeeklyCount
        Rows ordered by guild tag, then count descending.
    generated_at : datetime
        Timestamp shown on the report.
    window : WeekWindow
        Week covered by ``rows``.

    Returns
    -------
    WeeklyReport
        Report whose sections follow the order of ``rows``.
    """
    sections: list[GuildSection] = []
    by_tag: dict[str, GuildSection] = {}
    for row in rows:
        section = by_tag.get(row.guild_tag)
        if section is None:
            section = GuildSection(guild_tag=row.guild_tag)
            by_tag[row.guild_tag] = section
            sections.append(section)
        section.lines.append(row)
    return WeeklyReport(title=REPORT_TITLE, generated_at=generated_at, window=window, sections=sections)


def section_title(section: GuildSection) -> str:
    return f"Guild: {section.guild_tag}"


def format_report_lines(section: GuildSection) -> list[str]:
    return [f"• **{row.count}x** {row.name} (UID: `{row.user_id}`)" for row in section.lines]


def format_report_text(report: WeeklyReport) -> str:
    """Render a report as plain text for terminals and logs."""
    out = [report.title, report.generated_at.strftime("%Y-%m-%d %H:%M %Z").strip()]
    if report.is_empty:
        out.append(EMPTY_REPORT_TEXT)
        return "\n".join(out)
    for section in report.sections:
        out.append("")
        out.append(section_title(section))
        for row in section.lines:
            out.append(f"  {row.count}x {row.name} (UID: {row.user_id})")
    return "\n".join(out)
