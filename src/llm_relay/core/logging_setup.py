"""
Configuration du logging pour LLM Relay.
"""
import logging
import os

LOGGER_NAME = "llm_relay"

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
    "NONE": logging.CRITICAL + 1,  # Désactive le logging
}


def setup_logging(level: str = None) -> logging.Logger:
    """
    Configure le logger racine du package.

    Le niveau vient de l'argument, sinon de LOG_LEVEL, sinon INFO.
    NONE désactive tout.

    Returns:
        Logger `llm_relay`
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper().strip()
    log_level = LOG_LEVELS.get(level_name, logging.INFO)

    logger = logging.getLogger(LOGGER_NAME)
    # Évite les handlers dupliqués en cas de reload uvicorn
    logger.handlers.clear()
    logger.setLevel(log_level)

    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def mask_secret(secret: str, keep_start: int = 6, keep_end: int = 4) -> str:
    """Masque un secret en ne gardant que le début et la fin."""
    secret = (secret or "").strip()
    if not secret:
        return ""
    if len(secret) <= keep_start + keep_end:
        return "*" * len(secret)
    return f"{secret[:keep_start]}...{secret[-keep_end:]}"
