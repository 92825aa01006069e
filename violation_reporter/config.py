"""Configuration utilities for the Violation Reporter.

This module loads application configuration from environment variables
and an optional ``.env`` file. It centralizes settings for the MySQL
database connection, Discord API access, and the weekly report schedule.

Examples
--------
>>> from violation_reporter.config import load_config
>>> cfg = load_config()
>>> cfg.report.cron
'0 9 * * 1'
"""

import os
from dataclasses import dataclass
from dotenv import load_dotenv


DEFAULT_TIMEZONE = "Europe/Amsterdam"
DEFAULT_REPORT_CRON = "0 9 * * 1"


@dataclass
class DBConfig:
    """Database configuration.

    Attributes
    ----------
    host : str
        MySQL server hostname or IP address.
    port : int
        MySQL server port, typically ``3306``.
    user : str
        Username for authentication.
    password : str
        Password for authentication.
    database : str
        Default schema/database name to use.
    """
    host: str
    port: int
    user: str
    password: str
    database: str


@dataclass
class DiscordConfig:
    """Discord API configuration.

    Attributes
    ----------
    token : str | None
        Bot token used to authenticate with Discord's API.
    log_channel_id : int | None
        Channel whose messages are parsed for violation lines.
    report_channel_id : int | None
        Channel receiving threshold warnings and weekly reports.
    """
    token: str | None
    log_channel_id: int | None
    report_channel_id: int | None


@dataclass
class ReportConfig:
    """Weekly report settings.

    Attributes
    ----------
    timezone : str
        IANA zone name used for week boundaries and the schedule.
    cron : str
        Five-field cron expression for the weekly report.
    """
    timezone: str
    cron: str


@dataclass
class AppConfig:
    """Aggregate application configuration.

    Attributes
    ----------
    db : DBConfig
        Database settings.
    discord : DiscordConfig
        Discord settings.
    report : ReportConfig
        Report schedule and time zone.
    log_level : str
        Root logging level name.
    log_file : str or None
        Optional path of a rotating log file.
    """
    db: DBConfig
    discord: DiscordConfig
    report: ReportConfig
    log_level: str
    log_file: str | None

    def missing_required(self) -> list[str]:
        """Return the names of required settings that are not set."""
        missing = []
        if not self.discord.token:
            missing.append("DISCORD_TOKEN")
        if self.discord.log_channel_id is None:
            missing.append("LOG_CHANNEL_ID")
        if self.discord.report_channel_id is None:
            missing.append("REPORT_CHANNEL_ID")
        return missing


def _channel_id(name: str) -> int | None:
    value = (os.getenv(name) or "").strip()
    return int(value) if value.isdigit() else None


def load_config() -> AppConfig:
    """Load configuration from environment variables and ``.env``.

    Returns
    -------
    AppConfig
        Fully populated configuration object.

    Notes
    -----
    Environment variables take precedence. If a ``.env`` file is present
    in the working directory, it will be loaded prior to reading the
    variables.
    """
    # Load .env if present
    load_dotenv()

    db_password = os.getenv("MYSQL_PASSWORD") or os.getenv("MYSQL_ROOT_PASSWORD", "")
    db = DBConfig(
        host=os.getenv("MYSQL_HOST", "127.0.0.1"),
        port=int(os.getenv("MYSQL_PORT", "3306")),
        user=os.getenv("MYSQL_USER", "root"),
        password=db_password,
        database=os.getenv("MYSQL_DATABASE", "violations"),
    )

    discord = DiscordConfig(
        token=os.getenv("DISCORD_TOKEN") or None,
        log_channel_id=_channel_id("LOG_CHANNEL_ID"),
        report_channel_id=_channel_id("REPORT_CHANNEL_ID"),
    )

    report = ReportConfig(
        timezone=os.getenv("TIMEZONE") or DEFAULT_TIMEZONE,
        cron=os.getenv("REPORT_CRON") or DEFAULT_REPORT_CRON,
    )

    return AppConfig(
        db=db,
        discord=discord,
        report=report,
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        log_file=os.getenv("LOG_FILE") or None,
    )
