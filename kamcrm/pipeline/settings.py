"""
Enrichment settings loader: retry, pacing, freshness and model parameters.

Same pattern as the other YAML configs: file next to this module, in-memory
cache, hardcoded fallback if the file is missing. Environment variables
(ENRICHMENT_MAX_RETRIES, ENRICHMENT_MODEL, ...) override individual keys.
"""
import logging
import os
from dataclasses import dataclass

import yaml

from kamcrm.errors import ConfigurationError

logger = logging.getLogger('pipeline.settings')


_enrichment_config = None


def _default_config():
    """Hardcoded fallback if YAML is missing."""
    return {
        'version': 'default',
        'retry': {'max_retries': 3, 'base_delay_ms': 5000},
        'batch': {'delay_between_entities_ms': 30000, 'freshness_window_hours': 24},
        'model': {'name': 'deepseek/deepseek-r1:free', 'temperature': 0.5, 'max_tokens': 1000},
    }


def load_enrichment_config() -> dict:
    """Load the YAML config once; fall back to defaults on any read error."""
    global _enrichment_config
    if _enrichment_config is not None:
        return _enrichment_config

    config_path = os.path.join(os.path.dirname(__file__), 'enrichment_config.yaml')
    try:
        with open(config_path, 'r') as f:
            _enrichment_config = yaml.safe_load(f) or {}
        logger.info("Config loaded from YAML (version=%s)", _enrichment_config.get('version', '?'))
    except Exception as e:
        logger.warning("YAML config not found (%s), using defaults", e)
        _enrichment_config = _default_config()

    return _enrichment_config


def reset_cache():
    """Reset the in-memory cache (useful for testing)."""
    global _enrichment_config
    _enrichment_config = None


# field → (yaml section, yaml key, env var, type)
_FIELDS = {
    'max_retries':               ('retry', 'max_retries', 'ENRICHMENT_MAX_RETRIES', int),
    'base_delay_ms':             ('retry', 'base_delay_ms', 'ENRICHMENT_BASE_DELAY_MS', int),
    'delay_between_entities_ms': ('batch', 'delay_between_entities_ms', 'ENRICHMENT_DELAY_BETWEEN_ENTITIES_MS', int),
    'freshness_window_hours':    ('batch', 'freshness_window_hours', 'ENRICHMENT_FRESHNESS_WINDOW_HOURS', float),
    'model':                     ('model', 'name', 'ENRICHMENT_MODEL', str),
    'temperature':               ('model', 'temperature', 'ENRICHMENT_TEMPERATURE', float),
    'max_tokens':                ('model', 'max_tokens', 'ENRICHMENT_MAX_TOKENS', int),
}

_NON_NEGATIVE = ('max_retries', 'base_delay_ms', 'delay_between_entities_ms', 'freshness_window_hours')


@dataclass(frozen=True)
class EnrichmentSettings:
    max_retries: int = 3
    base_delay_ms: int = 5000
    delay_between_entities_ms: int = 30000
    freshness_window_hours: float = 24
    model: str = 'deepseek/deepseek-r1:free'
    temperature: float = 0.5
    max_tokens: int = 1000

    def __post_init__(self):
        for name in _NON_NEGATIVE:
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must be >= 0, got {getattr(self, name)}")
        if self.max_tokens <= 0:
            raise ConfigurationError(f"max_tokens must be > 0, got {self.max_tokens}")
        if not self.model:
            raise ConfigurationError("model must not be empty")

    @classmethod
    def load(cls, env=None, **overrides):
        """
        Build settings from YAML, then environment, then explicit overrides.

        Raises ConfigurationError for negative or non-numeric values.
        """
        env = os.environ if env is None else env
        cfg = load_enrichment_config()
        defaults = _default_config()

        values = {}
        for field_name, (section, key, env_var, cast) in _FIELDS.items():
            raw = (cfg.get(section) or {}).get(key, defaults[section][key])
            if env.get(env_var) not in (None, ''):
                raw = env[env_var]
            if field_name in overrides:
                raw = overrides[field_name]
            values[field_name] = _coerce(field_name, raw, cast)

        return cls(**values)


def _coerce(name, raw, cast):
    if isinstance(raw, bool):
        raise ConfigurationError(f"{name} must be {cast.__name__}, got {raw!r}")
    try:
        return cast(raw)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be {cast.__name__}, got {raw!r}")
