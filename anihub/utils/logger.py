import logging
import sys

from loguru import logger

# ===========================
# Log Contexts
# ===========================
CONTEXTS = {
    "APP": ("green", "🚀"),
    "API": ("cyan", "🔗"),
    "SCRAPER": ("blue", "🌐"),
    "BROWSER": ("yellow", "🧭"),
    "MEDIA": ("magenta", "🎵"),
    "CACHE": ("white", "💾"),
    "DATABASE": ("yellow", "🗄️"),
}
DEFAULT_CONTEXT = ("white", "📦")

LEVEL_ICONS = {
    "DEBUG": "🔍",
    "INFO": "ℹ️ ",
    "WARNING": "⚠️ ",
    "ERROR": "❌",
    "CRITICAL": "💥",
}

# third-party loggers that are forwarded into loguru, with their context and floor level
FORWARDED_LOGGERS = {
    "uvicorn.error": ("APP", logging.WARNING),
    "httpx": ("MEDIA", logging.WARNING),
    "databases": ("DATABASE", logging.WARNING),
}


def format_log(record) -> str:
    color, icon = CONTEXTS.get(record["extra"]["context"], DEFAULT_CONTEXT)
    level_icon = LEVEL_ICONS.get(record["level"].name, "")

    return (
        "<white>{time:YYYY-MM-DD HH:mm:ss}</white> | "
        f"<level>{level_icon} {{level: <8}}</level> | "
        f"<{color}>{icon} {{extra[context]: <8}}</{color}> | "
        "<level>{message}</level>\n"
    )


# ===========================
# Standard Logging Bridge
# ===========================
class ForwardingHandler(logging.Handler):

    def __init__(self, context: str):
        super().__init__()
        self.context = context

    def emit(self, record: logging.LogRecord):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.bind(context=self.context).opt(exception=record.exc_info).log(level, record.getMessage())


# ===========================
# Setup
# ===========================
def setup_logger(level: str = "INFO"):
    logger.remove()
    logger.configure(extra={"context": "APP"})
    logger.add(sys.stderr, level=level, format=format_log, colorize=True, backtrace=False, diagnose=False)

    logging.getLogger("uvicorn.access").disabled = True
    for name, (context, floor) in FORWARDED_LOGGERS.items():
        forwarded = logging.getLogger(name)
        forwarded.handlers = [ForwardingHandler(context)]
        forwarded.setLevel(floor)
        forwarded.propagate = False


def get_logger(context: str):
    return logger.bind(context=context)


app_logger = get_logger("APP")
api_logger = get_logger("API")
scraper_logger = get_logger("SCRAPER")
browser_logger = get_logger("BROWSER")
media_logger = get_logger("MEDIA")
cache_logger = get_logger("CACHE")
database_logger = get_logger("DATABASE")
