"""
Logging setup for dualcache, dood!

Everything is driven by a ``[logging]`` table:

    [logging]
    level = "INFO"
    console = true
    file = "logs/dualcache.log"
    rotate = "time"          # or "size", or false
    rotate-when = "midnight"
    backup-count = 7
    trace = false            # show per-key tier lookups of caches with loggingEnabled
    quiet = ["diskcache"]    # loggers capped at WARNING below that level

    [logging.logger."dualcache.orchestrator"]
    level = "DEBUG"
"""

import logging
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
PACKAGE_LOGGER = "dualcache"
DEFAULT_QUIET_LOGGERS = ["diskcache"]
DEFAULT_MAX_BYTES = 10 * 1024 * 1024


def getLogLevelByStr(levelStr: str, default: Optional[int] = None) -> Optional[int]:
    """Get log level by name, or ``default`` for unknown names."""
    level = logging.getLevelNamesMapping().get(str(levelStr).upper())
    if level is None:
        logger.error(f"Invalid log level '{levelStr}'")
        return default
    return level


def _handlerLevel(config: Dict[str, Any], key: str, fallback: int) -> int:
    if key not in config:
        return fallback
    level = getLogLevelByStr(config[key], fallback)
    return fallback if level is None else level


def makeConsoleHandler(config: Dict[str, Any], fallbackLevel: int) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(_handlerLevel(config, "console-level", fallbackLevel))
    return handler


def makeFileHandler(config: Dict[str, Any], fallbackLevel: int) -> logging.Handler:
    """
    Build file handler for ``config["file"]``, dood!

    ``rotate`` picks the rotation: ``true`` or ``"time"`` rotates by
    ``rotate-when``/``rotate-interval``, ``"size"`` rotates after ``max-bytes``.
    Raises OSError if the log file can't be created.
    """
    logFile = Path(config["file"])
    logFile.parent.mkdir(parents=True, exist_ok=True)

    rotate = config.get("rotate", False)
    backupCount = int(config.get("backup-count", 7))
    handler: logging.Handler
    if rotate is True or rotate == "time":
        handler = TimedRotatingFileHandler(
            filename=logFile,
            when=str(config.get("rotate-when", "midnight")),
            interval=int(config.get("rotate-interval", 1)),
            backupCount=backupCount,
            encoding="utf-8",
        )
    elif rotate == "size":
        handler = RotatingFileHandler(
            filename=logFile,
            maxBytes=int(config.get("max-bytes", DEFAULT_MAX_BYTES)),
            backupCount=backupCount,
            encoding="utf-8",
        )
    elif rotate is False:
        handler = logging.FileHandler(logFile, encoding="utf-8")
    else:
        raise ValueError(f"Unknown rotate mode '{rotate}'")

    handler.setLevel(_handlerLevel(config, "file-level", fallbackLevel))
    return handler


def configureLogger(localLogger: logging.Logger, config: Dict[str, Any]) -> List[logging.Handler]:
    """
    Apply one logging table to ``localLogger``, replacing its handlers.

    Returns the handlers that were installed. A file handler that can't be
    built is logged and skipped so a bad log path never stops a cache.
    """
    if "propagate" in config:
        localLogger.propagate = bool(config["propagate"])
    if "level" in config:
        level = getLogLevelByStr(config["level"])
        if level is not None:
            localLogger.setLevel(level)

    for handler in localLogger.handlers[:]:
        localLogger.removeHandler(handler)

    effectiveLevel = localLogger.getEffectiveLevel()
    handlers: List[logging.Handler] = []
    if config.get("console", False):
        handlers.append(makeConsoleHandler(config, effectiveLevel))
    if "file" in config:
        try:
            handlers.append(makeFileHandler(config, effectiveLevel))
        except (OSError, ValueError) as e:
            logger.error(f"Failed to setup file logging for {localLogger.name}: {e}")

    formatter = logging.Formatter(config.get("format", DEFAULT_LOG_FORMAT))
    for handler in handlers:
        handler.setFormatter(formatter)
        localLogger.addHandler(handler)
        logger.info(f"Logging {localLogger.name} via {type(handler).__name__}, level: {handler.level}")
    return handlers


def initLogging(config: Dict[str, Any]) -> None:
    """Configure root, package and named loggers from a ``[logging]`` table, dood!"""
    rootLogger = logging.getLogger()
    rootLogger.setLevel(logging.INFO)
    configureLogger(rootLogger, config)
    rootLevel = rootLogger.getEffectiveLevel()

    if rootLevel < logging.WARNING:
        for name in config.get("quiet", DEFAULT_QUIET_LOGGERS):
            logging.getLogger(name).setLevel(logging.WARNING)

    # Per-key traces are emitted at DEBUG, let them through without making the root verbose
    if config.get("trace", False):
        logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG)
        for handler in rootLogger.handlers:
            handler.setLevel(logging.DEBUG)

    for loggerName, loggerConfig in config.get("logger", {}).items():
        logger.debug(f"Configuring logger '{loggerName}' with config {loggerConfig}")
        configureLogger(logging.getLogger(loggerName), loggerConfig)

    logger.info(f"Logging configured: root level={logging.getLevelName(rootLevel)}")
