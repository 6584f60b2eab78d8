"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

  1. config/config.yaml  -- static pipeline tunables checked into the repo
  2. .env file           -- local developer overrides (not committed)
  3. Environment vars    -- set at deploy time

``load_config()`` reads the YAML file first, then deep-merges the
environment-derived values on top.  ``build_pipeline_config()`` turns the
merged dict into the typed :class:`PipelineConfig` the services consume.
"""

from pathlib import Path

import yaml

from pdfchat.config.settings import Settings
from pdfchat.models.pipeline import PipelineConfig


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.
        settings: Settings instance to draw overrides from; a fresh one is
                  built from the environment when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "openai": {
            "chat_model": settings.openai_chat_model,
            "embedding_model": settings.openai_embedding_model,
            "embedding_dimension": settings.embedding_dimension,
        },
        "storage": {
            "backend": settings.storage_backend,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def build_pipeline_config(config: dict) -> PipelineConfig:
    """Flatten the ``ingestion``/``retrieval``/``answer``/``title`` sections.

    Missing sections or keys fall back to the :class:`PipelineConfig` defaults.
    """
    ingestion = config.get("ingestion") or {}
    retrieval = config.get("retrieval") or {}
    answer = config.get("answer") or {}
    title = config.get("title") or {}

    values = {
        "chunk_size": ingestion.get("chunk_size"),
        "chunk_overlap": ingestion.get("chunk_overlap"),
        "embedding_batch_size": ingestion.get("embedding_batch_size"),
        "embedding_batch_pause_seconds": ingestion.get("embedding_batch_pause_seconds"),
        "timeout_seconds": ingestion.get("timeout_seconds"),
        "welcome_message": ingestion.get("welcome_message"),
        "default_k": retrieval.get("default_k"),
        "max_k": retrieval.get("max_k"),
        "answer_temperature": answer.get("temperature"),
        "answer_max_tokens": answer.get("max_tokens"),
        "title_temperature": title.get("temperature"),
        "title_max_tokens": title.get("max_tokens"),
        "title_max_length": title.get("max_length"),
    }
    return PipelineConfig(**{k: v for k, v in values.items() if v is not None})


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
