"""
RaidGuard - Source Package
==========================

Abuse and raid detection for Discord communities.

Package Structure:
- bot.py: Discord client that feeds events to the engine
- core/: Config, logging, constants and clock
- services/detection/: The detection engine
- api/: Read/update query API (FastAPI)
- utils/: Async helpers and metrics

Version: v1.0.0
"""

__version__ = "1.0.0"
