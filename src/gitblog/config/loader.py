from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Sequence

from gitblog.config.models import AppConfig, ConfigLoadRequest

# Short variable names kept for deployments that predate the APP__ prefix.
LEGACY_ENV_KEYS: dict[str, tuple[str, ...]] = {
    "PORT": ("server", "port"),
    "CACHE_TIME": ("cache", "ttl_ms"),
}


def _read_yaml_config(path: Path) -> dict[str, Any]:
    try:
        import yaml  # type: ignore[import-not-found]
    except ModuleNotFoundError as e:  # pragma: no cover
        raise ModuleNotFoundError(
            "Missing dependency: PyYAML is required to load the YAML config file. Install 'PyYAML'."
        ) from e

    if not path.exists():
        return {}

    raw = path.read_text(encoding="utf-8")
    data = yaml.safe_load(raw)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Top-level YAML must be a mapping, got: {type(data).__name__}")
    return data


def _load_dotenv_if_present(dotenv_path: Path) -> None:
    try:
        from dotenv import load_dotenv  # type: ignore[import-not-found]
    except ModuleNotFoundError as e:  # pragma: no cover
        raise ModuleNotFoundError(
            "Missing dependency: python-dotenv is required to load .env. Install 'python-dotenv'."
        ) from e

    if not dotenv_path.exists():
        return
    load_dotenv(dotenv_path=dotenv_path, override=False)


def _env_var_name_to_segments(env_var_name: str, prefix: str) -> Sequence[str]:
    remainder = env_var_name[len(prefix) :]
    parts = [p for p in remainder.split("__") if p]
    if not parts:
        raise ValueError(f"Invalid environment variable override name: {env_var_name}")
    return [p.lower() for p in parts]


def _known_fields(path: Sequence[str]) -> set[str]:
    """Return the field names of the model addressed by `path` (empty tuple = AppConfig)."""
    model: Any = AppConfig
    for segment in path:
        field = model.model_fields.get(segment)
        if field is None or not isinstance(field.annotation, type):
            return set()
        model = field.annotation
    return set(getattr(model, "model_fields", {}))


def _set_path(config: MutableMapping[str, Any], path: Sequence[str], value: Any) -> None:
    dotted = ".".join(path)
    cur: MutableMapping[str, Any] = config
    for depth, segment in enumerate(path[:-1]):
        if segment not in _known_fields(path[:depth]):
            raise KeyError(f"Unknown configuration key path: {dotted}")
        next_value = cur.setdefault(segment, {})
        if not isinstance(next_value, dict):
            raise TypeError(f"Configuration key path does not point to a mapping: {dotted}")
        cur = next_value

    leaf = path[-1]
    if leaf not in _known_fields(path[:-1]):
        raise KeyError(f"Unknown configuration key path: {dotted}")
    # Pydantic handles type coercion/validation later.
    cur[leaf] = value


def _apply_env_overrides(config: MutableMapping[str, Any], env_prefix: str, environ: Mapping[str, str]) -> None:
    for name, value in environ.items():
        if not name.startswith(env_prefix):
            continue
        _set_path(config, _env_var_name_to_segments(name, env_prefix), value)


def _apply_legacy_env(config: MutableMapping[str, Any], environ: Mapping[str, str]) -> None:
    for name, path in LEGACY_ENV_KEYS.items():
        value = environ.get(name, "").strip()
        if value:
            _set_path(config, path, value)


class YamlConfigLoader:
    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = environ

    async def load(self, request: ConfigLoadRequest = ConfigLoadRequest()) -> AppConfig:
        config = _read_yaml_config(Path(request.yaml_path))

        if request.dotenv_path is not None:
            _load_dotenv_if_present(Path(request.dotenv_path))

        environ = os.environ if self._environ is None else self._environ
        _apply_env_overrides(config, request.env_prefix, environ)
        _apply_legacy_env(config, environ)
        return AppConfig.model_validate(config)
