"""
fireCNC Utilities Package.

Common utility modules shared by the supervisor core, the HTTP service and
the command-line runner.

Key modules:
    - config: YAML configuration loading and Pydantic validation models
    - logging: Structured logging setup with configurable handlers

Example usage:
    >>> from firecnc.utils.config import load_supervisor_config
    >>> from firecnc.utils.logging import setup_logging
    >>>
    >>> setup_logging(log_level="DEBUG")
    >>> cfg = load_supervisor_config("configs/supervisor.yaml")
"""

from firecnc.utils.logging import setup_logging, to_logging_level

__all__ = [
    "setup_logging",
    "to_logging_level",
]
