# logger.py - log files for the Flask app (app.log) and the ledger engine (ledger.log)
import os
import logging
from logging.handlers import RotatingFileHandler

FILE_FORMAT = "%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]"
CONSOLE_FORMAT = "%(name)s - %(levelname)s - %(message)s"


def _level(name):
    return getattr(logging, str(name).upper(), logging.INFO)


def _rotating_handler(path, level, max_bytes, backup_count):
    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    handler.setLevel(level)
    return handler


def _replace_handlers(logger, handlers):
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    for handler in handlers:
        logger.addHandler(handler)


def setup_logger(name, log_dir, level="INFO", max_bytes=1048576, backup_count=10, console=False):
    """Point a named logger at <log_dir>/<name>.log; every wallet movement the engine makes lands here."""
    os.makedirs(log_dir, exist_ok=True)
    level = _level(level)

    handlers = [_rotating_handler(os.path.join(log_dir, f"{name}.log"), level, max_bytes, backup_count)]
    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        handlers.append(console_handler)

    logger = logging.getLogger(name)
    _replace_handlers(logger, handlers)
    logger.setLevel(level)
    return logger


def configure_logging(app):
    """app.logger gets app.log; engine modules log under the "ledger" namespace into ledger.log."""
    log_dir = app.config.get("LOG_DIR", "logs")
    level = app.config.get("LOG_LEVEL", "INFO")
    max_bytes = app.config.get("LOG_MAX_BYTES", 1048576)
    backup_count = app.config.get("LOG_BACKUP_COUNT", 10)
    os.makedirs(log_dir, exist_ok=True)

    handlers = [_rotating_handler(os.path.join(log_dir, "app.log"), _level(level), max_bytes, backup_count)]
    if app.debug:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)
        handlers.append(console_handler)
    _replace_handlers(app.logger, handlers)
    app.logger.setLevel(_level(level))
    app.logger.propagate = False  # Prevent duplicate logs

    setup_logger(
        "ledger", log_dir, level, max_bytes, backup_count,
        console=app.config.get("FLASK_ENV") != "production",
    )
