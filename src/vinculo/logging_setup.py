"""
Configuración de logging con structlog.

Usado por los scripts de entrada; los módulos solo hacen
structlog.get_logger().
"""

import logging
from typing import Optional

import structlog

from vinculo.config import get_settings


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configura logging estándar + structlog con salida de consola.

    Args:
        level: Nivel de logging (None = settings.log_level)
    """
    level = level or get_settings().log_level

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
