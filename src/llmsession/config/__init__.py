"""
Configuration module for the LLMSession library.

Configuration files:
    - ``[recovery]`` section: read by LLMSession.create(config_file_path=...)
    - ``[logging]`` section: read by configure_logging(config_file_path=...)

Environment variables:
    - Prefix: LLMSESSION_RECOVERY__
    - Example: LLMSESSION_RECOVERY__MAX_BACKUPS=10
"""

from .recovery_config import RecoveryConfig, load_recovery_config, load_toml

__all__ = ["RecoveryConfig", "load_recovery_config", "load_toml"]
