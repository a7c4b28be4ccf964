#!/usr/bin/env python3
"""
RaidGuard - Entry Point
=======================

Runs the detection engine behind a Discord client, with the optional
query API alongside.

Startup:
1. Load .env and validate configuration
2. Build the settings manager, sinks and engine
3. Start the Discord client (which starts the engine and API)
4. Shut down gracefully on Ctrl+C
"""

import asyncio
import sys
from pathlib import Path
from typing import List

from dotenv import load_dotenv

from raidguard.core.logger import logger
from raidguard.core.config import (
    Config,
    ConfigValidationError,
    require_discord_token,
    validate_and_log_config,
)
from raidguard.services.detection import (
    CompositeAlertSink,
    DetectionEngine,
    JsonDetectionSink,
    JsonSettingsStore,
    LoggingAlertSink,
    SettingsManager,
    WebhookAlertSink,
)
from raidguard.services.detection.alerts import AlertSink


def build_engine(config: Config) -> DetectionEngine:
    """Wire the engine from configuration. The actuator is attached by the bot."""
    settings = SettingsManager(JsonSettingsStore(Path(config.settings_file)))

    sinks: List[AlertSink] = [LoggingAlertSink()]
    if config.alert_webhook_url:
        sinks.append(WebhookAlertSink(config.alert_webhook_url))

    detection_sink = JsonDetectionSink(Path(config.detections_file)) if config.detections_file else None

    return DetectionEngine(
        settings,
        alert_sink=CompositeAlertSink(sinks),
        detection_sink=detection_sink,
        decay_interval=config.decay_interval,
        decay_step=config.decay_step,
        cleanup_interval=config.cleanup_interval,
        action_timeout=config.action_timeout,
        raid_kick_cap=config.raid_kick_cap,
    )


async def main() -> None:
    """
    Main entry point.

    Raises:
        ConfigValidationError: If DISCORD_TOKEN is missing.
    """
    load_dotenv()

    config = validate_and_log_config()
    token = require_discord_token(config)

    if config.error_webhook_url:
        logger.set_webhook(config.error_webhook_url)

    from raidguard.api import APIService, get_api_config
    from raidguard.bot import DiscordActuator, RaidGuardBot

    engine = build_engine(config)
    api_service = APIService(engine) if get_api_config().enabled else None

    bot = RaidGuardBot(engine, api_service=api_service, config=config)
    engine.dispatcher.actuator = DiscordActuator(bot)

    logger.tree("RAIDGUARD STARTING", [
        ("Settings", config.settings_file),
        ("API", "Enabled" if api_service else "Disabled"),
    ], emoji="🛡️")

    async with bot:
        await bot.start(token)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped by user (Ctrl+C)")
    except ConfigValidationError as e:
        logger.critical("Configuration Invalid", [("Error", str(e))])
        sys.exit(1)
    except Exception as e:
        logger.critical("Fatal Error", [
            ("Error Type", type(e).__name__),
            ("Error", str(e)[:200]),
        ])
        sys.exit(1)
