from __future__ import annotations

"""Discord bot: track violations posted in the log channel.

Run this module to start a Discord bot that reads every message posted in
the configured log channel, stores the violation lines it contains, warns
the report channel when a player reaches their second violation of the
week, and posts a weekly summary on a cron schedule.

Usage
-----
- Ensure environment variables are set (can be via .env):
  - ``DISCORD_TOKEN``: bot token
  - ``LOG_CHANNEL_ID`` / ``REPORT_CHANNEL_ID``: channel IDs
  - ``MYSQL_*``: database connection settings
  - Optional ``TIMEZONE`` and ``REPORT_CRON``

- Start the bot:
  ``python -m violation_reporter.bot``
"""

import asyncio
import logging
import sys
from typing import Callable

import discord
from discord.ext import tasks

from .config import load_config
from .db import ViolationStore, get_conn, init_schema
from .logs import configure_logging
from .report import EMPTY_REPORT_TEXT, WeeklyReport, format_report_lines, section_title
from .schedule import CronSchedule, ReportTrigger
from .tracker import IngestResult, ThresholdWarning, ViolationTracker
from .week import get_timezone, now_in


logger = logging.getLogger(__name__)

ACK_REACTION = "✅"
EMBED_FIELD_LIMIT = 1024
EMBED_FIELD_NAME_LIMIT = 256
EMBED_MAX_FIELDS = 25
EMBED_TOTAL_LIMIT = 6000


def _should_handle_message(msg: discord.Message, log_channel_id: int | None) -> bool:
    # Ignore bot/self messages
    if msg.author.bot:
        return False
    return log_channel_id is not None and msg.channel.id == log_channel_id


def format_warning(warning: ThresholdWarning) -> str:
    return (
        f"⚠️ **Second rule break this week**: **{warning.name}** "
        f"(UID: `{warning.user_id}`) | Guild: **{warning.guild_tag}**"
    )


def _chunk_lines(lines: list[str], limit: int = EMBED_FIELD_LIMIT) -> list[str]:
    """Join lines into blocks no longer than ``limit`` characters."""
    chunks: list[str] = []
    current = ""
    for line in lines:
        line = line[:limit]
        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > limit:
            chunks.append(current)
            current = line
        else:
            current = candidate
    if current:
        chunks.append(current)
    return chunks


def build_report_embeds(report: WeeklyReport) -> list[discord.Embed]:
    """Render a weekly report as one or more Discord embeds.

    Each guild becomes one field; a guild whose lines exceed the field
    value limit continues in further fields. A new embed is started
    whenever the next field would break the per-embed field count or
    total length limits.
    """
    embed = discord.Embed(title=report.title, timestamp=report.generated_at)
    if report.is_empty:
        embed.description = EMPTY_REPORT_TEXT
        return [embed]
    embeds = [embed]
    for section in report.sections:
        title = section_title(section)
        for i, value in enumerate(_chunk_lines(format_report_lines(section))):
            name = title if i == 0 else f"{title} (cont.)"
            name = name[:EMBED_FIELD_NAME_LIMIT]
            if embed.fields and (
                len(embed.fields) >= EMBED_MAX_FIELDS or len(embed) + len(name) + len(value) > EMBED_TOTAL_LIMIT
            ):
                embed = discord.Embed(title=f"{report.title} (cont.)", timestamp=report.generated_at)
                embeds.append(embed)
            embed.add_field(name=name, value=value, inline=False)
    return embeds


async def _resolve_channel(client: discord.Client, channel_id: int):
    channel = client.get_channel(channel_id)
    if channel is None:
        # deferred fetch if not cached
        channel = await client.fetch_channel(channel_id)
    return channel


class WarningNotifier:
    """Send threshold warnings without blocking message handling.

    Each warning is delivered by its own task. Delivery failures are logged
    and do not affect the ingest that produced the warning.
    """

    def __init__(self, client: discord.Client, channel_id: int):
        self.client = client
        self.channel_id = channel_id
        self._tasks: set[asyncio.Task] = set()

    async def _send(self, text: str) -> None:
        channel = await _resolve_channel(self.client, self.channel_id)
        await channel.send(text)

    def _done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Failed to deliver threshold warning", exc_info=exc)

    def __call__(self, text: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._send(text))
        self._tasks.add(task)
        task.add_done_callback(self._done)
        return task


async def handle_message(
    message: discord.Message,
    tracker: ViolationTracker,
    notify: Callable[[str], object],
) -> IngestResult:
    """Ingest a log-channel message, dispatch warnings and acknowledge it."""
    result = tracker.ingest_message(
        message.content or "",
        message.id,
        notify=lambda warning: notify(format_warning(warning)),
    )
    if result.records:
        await message.react(ACK_REACTION)
    return result


async def send_weekly_report(client: discord.Client, tracker: ViolationTracker, channel_id: int) -> WeeklyReport:
    """Build this week's report and post it to ``channel_id``.

    Each embed goes in its own message, since the total length limit
    applies to all embeds of a message together.
    """
    report = tracker.weekly_report()
    channel = await _resolve_channel(client, channel_id)
    for embed in build_report_embeds(report):
        await channel.send(embed=embed)
    logger.info("Posted weekly report with %d guild section(s)", len(report.sections))
    return report


async def run_scheduled_report(client, tracker, trigger: ReportTrigger, tz, channel_id: int) -> bool:
    """Post the weekly report if ``trigger`` fires now; return whether it ran.

    Failures are logged and swallowed: an exception escaping a
    ``tasks.loop`` iteration stops the loop for good.
    """
    if not trigger.should_fire(now_in(tz)):
        return False
    try:
        await send_weekly_report(client, tracker, channel_id)
    except Exception:
        logger.exception("Weekly report failed")
    return True


async def _run_bot() -> None:
    cfg = load_config()
    missing = cfg.missing_required()
    if missing:
        print(f"Missing {', '.join(missing)} in environment/.env", file=sys.stderr)
        sys.exit(1)
    try:
        tz = get_timezone(cfg.report.timezone)
        trigger = ReportTrigger(CronSchedule.parse(cfg.report.cron), tz)
    except ValueError as e:
        print(f"Invalid report settings: {e}", file=sys.stderr)
        sys.exit(1)

    configure_logging(cfg.log_level, cfg.log_file)

    conn = get_conn(cfg.db)
    init_schema(conn)
    tracker = ViolationTracker(ViolationStore(conn), tz)
    log_channel_id = cfg.discord.log_channel_id
    report_channel_id: int = cfg.discord.report_channel_id  # type: ignore[assignment]

    intents = discord.Intents.default()
    intents.message_content = True
    client = discord.Client(intents=intents)
    notify = WarningNotifier(client, report_channel_id)

    @tasks.loop(minutes=1)
    async def report_loop():
        await run_scheduled_report(client, tracker, trigger, tz, report_channel_id)

    @client.event
    async def on_ready():
        user = client.user
        logger.info("Logged in as %s (id=%s)", user, user.id if user else "n/a")
        if not report_loop.is_running():
            report_loop.start()
            logger.info("Weekly report scheduled: %r (%s)", cfg.report.cron, cfg.report.timezone)

    @client.event
    async def on_message(message: discord.Message):
        if not _should_handle_message(message, log_channel_id):
            return
        await handle_message(message, tracker, notify)

    try:
        await client.start(cfg.discord.token)  # type: ignore[arg-type]
    finally:
        conn.close()


def main() -> None:
    try:
        asyncio.run(_run_bot())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
