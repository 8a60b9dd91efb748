"""Settings for tldw.

Defaults, then config.toml in the config directory, then .env, then the
environment (TLDW_* keys plus the provider API keys).
"""

import os
import tomllib
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from tldw_errors import ConfigError

APP_NAME = 'tldw'
ENV_PREFIX = 'TLDW_'

# Maximum upload size of the Whisper API (25 MiB)
WHISPER_LIMIT = 25 << 20

PROVIDERS = ('openai', 'anthropic')


def _xdg_dir(env_var: str, fallback: str) -> Path:
    base = os.getenv(env_var) or os.path.join(os.path.expanduser('~'), fallback)
    return Path(base) / APP_NAME


@dataclass(frozen=True)
class Settings:
    openai_api_key: str = ''
    anthropic_api_key: str = ''
    provider: str = 'openai'
    tldr_model: str = 'gpt-4.1-nano'
    anthropic_model: str = 'claude-3-5-sonnet-20241022'
    whisper_model: str = 'whisper-1'
    llm_temperature: float = 0.3
    llm_max_tokens: int = 3000
    prompt: str = ''
    transcripts_dir: Optional[Path] = None
    summary_timeout: float = 120.0
    whisper_timeout: float = 600.0
    whisper_limit: int = WHISPER_LIMIT
    caption_retry_delay: float = 1.0
    sequential_transcription: bool = True
    cleanup_grace: float = 5.0
    verbose: bool = False
    quiet: bool = False

    config_dir: Path = field(default_factory=lambda: _xdg_dir('XDG_CONFIG_HOME', '.config'))
    data_dir: Path = field(default_factory=lambda: _xdg_dir('XDG_DATA_HOME', os.path.join('.local', 'share')))
    cache_dir: Path = field(default_factory=lambda: _xdg_dir('XDG_CACHE_HOME', '.cache'))

    def __post_init__(self):
        if self.transcripts_dir is None:
            object.__setattr__(self, 'transcripts_dir', self.data_dir / 'transcripts')
        if self.provider not in PROVIDERS:
            raise ConfigError(f"unknown provider: {self.provider} (expected one of {', '.join(PROVIDERS)})")
        if self.whisper_limit <= 0:
            raise ConfigError('whisper_limit must be positive')
        for name in ('summary_timeout', 'whisper_timeout', 'cleanup_grace'):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive, got {getattr(self, name)}")
        if self.caption_retry_delay < 0:
            raise ConfigError(f"caption_retry_delay must not be negative, got {self.caption_retry_delay}")

    @property
    def temp_dir(self) -> Path:
        return self.cache_dir / 'temp_chunks'

    @property
    def config_file(self) -> Path:
        return self.config_dir / 'config.toml'


def _coerce(name: str, raw, default):
    """Convert a config/env value to the type of the field default"""
    try:
        if isinstance(default, bool):
            if isinstance(raw, bool):
                return raw
            return str(raw).strip().lower() in ('1', 'true', 'yes', 'on')
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return _parse_seconds(raw)
        if isinstance(default, Path) or name.endswith('_dir'):
            return Path(os.path.expanduser(str(raw)))
        return str(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"invalid value for {name}: {raw!r}")


def _parse_seconds(raw) -> float:
    """Accept plain numbers or Go-style durations such as "2m" or "90s"."""
    if isinstance(raw, (int, float)):
        return float(raw)
    text = str(raw).strip().lower()
    for suffix, factor in (('ms', 0.001), ('s', 1), ('m', 60), ('h', 3600)):
        if text.endswith(suffix) and text[:-len(suffix)].replace('.', '', 1).isdigit():
            return float(text[:-len(suffix)]) * factor
    return float(text)


def _read_config_file(path: Path) -> dict:
    if not path.is_file():
        return {}
    try:
        with open(path, 'rb') as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"error reading config file {path}: {e}")


def load_settings(config_file: Optional[str] = None, **overrides) -> Settings:
    load_dotenv()

    base = Settings()
    path = Path(config_file) if config_file else base.config_file
    values = {}
    defaults = {f.name: getattr(base, f.name) for f in fields(Settings)}

    for key, raw in _read_config_file(path).items():
        if key in defaults and raw != '':
            values[key] = _coerce(key, raw, defaults[key])

    for name, default in defaults.items():
        raw = os.getenv(ENV_PREFIX + name.upper())
        if raw:
            values[name] = _coerce(name, raw, default)

    for name, env_var in (('openai_api_key', 'OPENAI_API_KEY'), ('anthropic_api_key', 'ANTHROPIC_API_KEY')):
        if os.getenv(env_var):
            values[name] = os.getenv(env_var)

    values.update({k: v for k, v in overrides.items() if v is not None})

    if 'transcripts_dir' not in values and 'data_dir' in values:
        values['transcripts_dir'] = Path(values['data_dir']) / 'transcripts'

    return replace(base, **values)


def ensure_dirs(settings: Settings) -> None:
    for d in (settings.config_dir, settings.data_dir, settings.cache_dir, settings.transcripts_dir):
        Path(d).mkdir(parents=True, exist_ok=True)
