"""
Viewer configuration.

Values come from an optional YAML file and can be overridden from the
command line. Relative paths in the file are resolved against the file's
own directory.

Example viewer.yaml:

    site_title: Flutter Training
    docs_dir: docs
    manifest: docs/manifest.yaml
    sidebar_breakpoint: 768
    fetch_timeout: 10
    port: 8080
"""

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from viewer_errors import ViewerConfigError

DEFAULT_BREAKPOINT = 768
DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class ViewerConfig:
    site_title: str = 'Flutter Training'
    docs_dir: Path = Path('docs')
    manifest: Path | None = None
    base_url: str | None = None
    sidebar_breakpoint: int = DEFAULT_BREAKPOINT
    fetch_timeout: float = DEFAULT_TIMEOUT
    host: str = 'localhost'
    port: int = 8080
    log_level: str = 'INFO'

    @property
    def manifest_path(self) -> Path:
        """Manifest file, defaulting to manifest.yaml inside the docs directory."""
        return self.manifest if self.manifest is not None else self.docs_dir / 'manifest.yaml'

    def with_overrides(self, **overrides: Any) -> 'ViewerConfig':
        """Return a copy with every non-None override applied."""
        values = {k: v for k, v in overrides.items() if v is not None}
        if not values:
            return self
        return _validated(replace(self, **_coerce(values, Path.cwd())))


_PATH_KEYS = ('docs_dir', 'manifest')
_INT_KEYS = ('sidebar_breakpoint', 'port')
_FLOAT_KEYS = ('fetch_timeout',)
_STR_KEYS = ('site_title', 'base_url', 'host', 'log_level')


def _coerce(values: dict[str, Any], base_dir: Path) -> dict[str, Any]:
    known = {f.name for f in fields(ViewerConfig)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ViewerConfigError(f"Unknown config keys: {', '.join(unknown)}", keys=unknown)

    result = {}
    for key, value in values.items():
        if value is None:
            if key not in ('base_url', 'manifest'):
                raise ViewerConfigError(f"Missing value for '{key}'", key=key)
            result[key] = None
            continue
        try:
            if key in _PATH_KEYS:
                path = Path(value).expanduser()
                result[key] = path if path.is_absolute() else base_dir / path
            elif key in _INT_KEYS:
                if isinstance(value, bool):
                    raise TypeError(key)
                result[key] = int(value)
            elif key in _FLOAT_KEYS:
                if isinstance(value, bool):
                    raise TypeError(key)
                result[key] = float(value)
            elif key in _STR_KEYS:
                if not isinstance(value, str):
                    raise TypeError(key)
                result[key] = value
        except (TypeError, ValueError):
            raise ViewerConfigError(f"Invalid value for '{key}': {value!r}", key=key) from None
    return result


def _validated(config: ViewerConfig) -> ViewerConfig:
    if config.sidebar_breakpoint <= 0:
        raise ViewerConfigError('sidebar_breakpoint must be positive', key='sidebar_breakpoint')
    if config.fetch_timeout <= 0:
        raise ViewerConfigError('fetch_timeout must be positive', key='fetch_timeout')
    if not 0 <= config.port <= 65535:
        raise ViewerConfigError('port must be between 0 and 65535', key='port')
    return config


def load_config(path: Path | None = None) -> ViewerConfig:
    """Load configuration from a YAML file, or return defaults when path is None."""
    if path is None:
        return ViewerConfig()

    try:
        text = path.read_text(encoding='utf-8')
    except OSError as e:
        raise ViewerConfigError(f"Could not read config {path}: {e}", path=str(path)) from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ViewerConfigError(f"Invalid YAML in {path}: {e}", path=str(path)) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ViewerConfigError(f"Config root must be a mapping: {path}", path=str(path))

    base_dir = path.resolve().parent
    return _validated(ViewerConfig(**_coerce(data, base_dir)))
