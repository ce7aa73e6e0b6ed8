"""Configuration loading, validation and redaction."""

from mobicert.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    LoadedConfig,
    dump_effective_config,
    effective_config,
    load_config,
    load_config_with_sources,
)
from mobicert.config.schema import (
    BUILTIN_PROFILE_NAMES,
    DEFAULT_CONFIG,
    ConfigValidationError,
    ConfigValidationIssue,
    MobicertConfig,
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
    validate_config,
)

__all__ = [
    "BUILTIN_PROFILE_NAMES",
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "LoadedConfig",
    "MobicertConfig",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "effective_config",
    "load_config",
    "load_config_with_sources",
    "merge_config",
    "redact_config",
    "validate_config",
]
