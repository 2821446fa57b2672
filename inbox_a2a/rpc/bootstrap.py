"""Server bootstrap: logging setup and component wiring.

The tool registry, the dispatcher and the authenticator are built here once
per process. Nothing caller-specific is created at this point.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from inbox_a2a.ai.client import LLMClient
from inbox_a2a.ai.email_ai import EmailAI
from inbox_a2a.config.schema import Config
from inbox_a2a.rpc.auth import Authenticator
from inbox_a2a.rpc.dispatcher import A2ADispatcher
from inbox_a2a.tools.builtin.registration import create_default_registry

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_server_logging(
    log_dir: Path,
    level: int = logging.INFO,
    console_level: int = logging.WARNING,
) -> Path:
    """Configure file and console logging for the ``inbox_a2a`` namespace.

    Logs are written to ``{log_dir}/server.log`` with rotation (5MB per file,
    3 backups). Existing handlers are replaced, so calling this again
    reconfigures rather than duplicates output.

    Args:
        log_dir: Directory for server.log. Created if missing.
        level: Logging level for file output.
        console_level: Logging level for stderr output.

    Returns:
        Path to the server.log file.
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "server.log"

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=5 * 1024 * 1024,  # 5MB
        backupCount=3,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))

    package_logger = logging.getLogger("inbox_a2a")
    package_logger.setLevel(min(level, console_level))
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.addHandler(file_handler)
    package_logger.addHandler(console_handler)
    package_logger.propagate = False

    return log_file


def bootstrap_server_components(config: Config) -> tuple[A2ADispatcher, Authenticator]:
    """Build the dispatcher and authenticator for a server process.

    The LLM client is created only when its API key variable is set;
    otherwise the planners use their deterministic fallbacks.
    """
    registry = create_default_registry()
    authenticator = Authenticator(config.auth)

    llm = LLMClient.from_env(config.llm)
    if llm is None:
        logger.info("No %s set, using rule-based planners", config.llm.api_key_env)

    dispatcher = A2ADispatcher(
        registry,
        config,
        ai=EmailAI(llm),
        shared_secret_enabled=authenticator.shared_secret_enabled,
    )
    logger.info("Registered %d tools: %s", len(registry), ", ".join(registry.names))
    return dispatcher, authenticator
