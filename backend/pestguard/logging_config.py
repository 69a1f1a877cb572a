"""
Centralized logging configuration.

Console output only; the process supervisor owns log files and rotation.
"""
import logging


def configure_logging(app) -> logging.Logger:
    """
    Attach a console handler to the root logger at the configured level.

    Args:
        app: Flask application instance
    """
    log_level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    log_format = app.config.get("LOG_FORMAT") or "%(asctime)s %(levelname)s [%(name)s] %(message)s"

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # create_app may run several times in one process (tests)
    if not any(getattr(h, "_pestguard", False) for h in root_logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        console_handler.setFormatter(logging.Formatter(log_format))
        console_handler._pestguard = True
        root_logger.addHandler(console_handler)

    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    app.logger.setLevel(log_level)
    app.logger.debug("Logging initialized at %s level", logging.getLevelName(log_level))
    return root_logger
