"""Configuration loader for aspect RAG."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv


def _env_constructor(loader: yaml.SafeLoader, node: yaml.Node) -> str:
    """Custom YAML constructor for !ENV tag."""
    value = loader.construct_scalar(node)

    # Pattern: ${VAR_NAME} or ${VAR_NAME:default}
    pattern = r"\$\{([^}:]+)(?::([^}]*))?\}"
    match = re.match(pattern, value)

    if match:
        var_name = match.group(1)
        default = match.group(2)
        return os.environ.get(var_name, default or "")

    return value


yaml.SafeLoader.add_constructor("!ENV", _env_constructor)

TEXT_PROVIDERS = ("gemini", "groq")
EMBEDDING_PROVIDERS = ("local", "gemini")
VECTOR_BACKENDS = ("milvus", "memory")


def load_config(config_path: Optional[str] = None) -> dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config file (uses default if None)

    Returns:
        Configuration dictionary
    """
    load_dotenv()

    if config_path is None:
        config_path = str(Path(__file__).parent.parent / "config" / "config.yaml")

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path) as f:
        config = yaml.safe_load(f)

    return config or {}


def _positive_int(section: dict[str, Any], key: str, prefix: str, errors: list[str]) -> None:
    if key not in section:
        return
    try:
        if int(section[key]) <= 0:
            raise ValueError
    except (TypeError, ValueError):
        errors.append(f"{prefix}.{key} must be a positive integer")


def validate_config(config: dict[str, Any]) -> list[str]:
    """
    Validate configuration.

    Args:
        config: Configuration dictionary

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []

    providers = get_providers_config(config)
    text_provider = providers.get("text", "gemini")
    embedding_provider = providers.get("embeddings", "local")

    if text_provider not in TEXT_PROVIDERS:
        errors.append(f"providers.text must be one of {', '.join(TEXT_PROVIDERS)}")
    if embedding_provider not in EMBEDDING_PROVIDERS:
        errors.append(f"providers.embeddings must be one of {', '.join(EMBEDDING_PROVIDERS)}")

    needs_gemini = (
        text_provider == "gemini"
        or embedding_provider == "gemini"
        or providers.get("analysis", "gemini") == "gemini"
    )
    if needs_gemini and not get_gemini_config(config).get("api_key"):
        errors.append("Missing gemini.api_key (set GEMINI_API_KEY environment variable)")
    if text_provider == "groq" and not get_groq_config(config).get("api_key"):
        errors.append("Missing groq.api_key (set GROQ_API_KEY environment variable)")

    vector_db = get_vector_db_config(config)
    backend = vector_db.get("backend", "milvus")
    if backend not in VECTOR_BACKENDS:
        errors.append(f"vector_db.backend must be one of {', '.join(VECTOR_BACKENDS)}")
    if backend == "milvus" and not vector_db.get("host"):
        errors.append("Missing vector_db.host")
    _positive_int(vector_db, "index_threshold", "vector_db", errors)

    _positive_int(get_embeddings_config(config), "batch_size", "embeddings", errors)
    _positive_int(get_rag_config(config), "default_top_k", "rag", errors)
    analysis = get_analysis_config(config)
    _positive_int(analysis, "batch_size", "analysis", errors)
    _positive_int(analysis, "max_concurrency", "analysis", errors)

    return errors


def get_providers_config(config: dict[str, Any]) -> dict[str, Any]:
    """
    Get provider selection.

    Args:
        config: Main configuration dictionary

    Returns:
        Provider names per capability
    """
    return config.get("providers", {})


def get_gemini_config(config: dict[str, Any]) -> dict[str, Any]:
    """Get Gemini-specific configuration."""
    return config.get("gemini", {})


def get_groq_config(config: dict[str, Any]) -> dict[str, Any]:
    return config.get("groq", {})


def get_embeddings_config(config: dict[str, Any]) -> dict[str, Any]:
    return config.get("embeddings", {})


def get_vector_db_config(config: dict[str, Any]) -> dict[str, Any]:
    """Get vector database configuration."""
    return config.get("vector_db", {})


def get_rag_config(config: dict[str, Any]) -> dict[str, Any]:
    """
    Get RAG configuration.

    Args:
        config: Main configuration dictionary

    Returns:
        RAG configuration
    """
    return config.get("rag", {})


def get_analysis_config(config: dict[str, Any]) -> dict[str, Any]:
    """Get batch analysis configuration."""
    return config.get("analysis", {})
