"""Assistant configuration: a JSON or YAML file of sections, plus a few
environment variables that win over the file (deployment knobs)."""

import json
import os
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

SECTIONS = ("knowledge", "matching", "resolution", "llm", "server")

# variable -> (section, key, converter)
ENV_OVERRIDES: Dict[str, Tuple[str, str, Callable[[str], Any]]] = {
    "PORT": ("server", "port", int),
    "KNOWLEDGE_DIR": ("knowledge", "dir", str),
    "OLLAMA_BASE_URL": ("llm", "base_url", str),
    "LLM_BACKEND": ("llm", "backend", str),
    "LLM_MODEL": ("llm", "default_model", str),
    "LLM_TIMEOUT_SEC": ("llm", "timeout_sec", float),
}


def _read_file(config_path: Path) -> Any:
    suffix = config_path.suffix.lower()
    if suffix == ".json":
        with config_path.open("r", encoding="utf-8") as f:
            return json.load(f)
    if suffix in {".yml", ".yaml"}:
        try:
            import yaml  # type: ignore
        except ImportError as exc:
            raise ImportError("YAML config requires PyYAML") from exc
        with config_path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    raise ValueError(f"Unsupported config format: {config_path.suffix}")


def load_config(path: Optional[str], environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Read ``path`` (``None`` means built-in defaults only) and apply environment overrides."""
    config: Dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        loaded = _read_file(config_path) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config root must be a mapping, got {type(loaded).__name__}")
        config = loaded
    for name in SECTIONS:
        if name in config and not isinstance(config[name], dict):
            raise ValueError(f"Config section '{name}' must be a mapping")
    return apply_env_overrides(config, os.environ if environ is None else environ)


def apply_env_overrides(config: Dict[str, Any], environ: Mapping[str, str]) -> Dict[str, Any]:
    for variable, (name, key, convert) in ENV_OVERRIDES.items():
        raw = environ.get(variable)
        if raw is None or not raw.strip():
            continue
        try:
            value = convert(raw.strip())
        except ValueError as exc:
            raise ValueError(f"Invalid value for {variable}: {raw!r}") from exc
        config.setdefault(name, {})[key] = value
    return config


def section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = config.get(name) if config else None
    return value if isinstance(value, dict) else {}
