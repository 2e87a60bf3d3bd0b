# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Exceptions for the tool's own configuration file.

These are about the YAML file that configures dnprelease (providers,
timeouts, cache), not about a package's manifest or compose file. Those
problems are ConfigurationError in dnprelease.errors.
"""


class ConfigError(Exception):
    """Base for all configuration errors."""


class ConfigLoadError(ConfigError):
    """Raised when a config file cannot be read from disk or parsed as YAML."""


class ConfigValidationError(ConfigError):
    """
    Raised when a config file parses fine but fails schema validation:
    missing required fields, wrong types, out-of-range values, unknown keys.
    """
