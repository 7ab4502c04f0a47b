"""ETL configuration.

The pipeline reads one YAML file (see ``config.example.yaml``) with a
``global_settings`` section and one section per finding source under
``sources``. The loaded values become frozen dataclasses that are passed
explicitly into each stage, so several configurations can coexist (e.g. in
tests).

Environment variables:
- FINDINGS_ETL_CONFIG: path of the YAML file (default: ./config.yaml)
- DATABASE_URL: SQLAlchemy URL (read by db.py)
- LOG_LEVEL: default log level
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"
DEFAULT_SOURCE = "mssql"

DEFAULT_HEADER_CHECK_COLS: tuple[str, ...] = ("Category", "Severity", "Issue Name")
DEFAULT_IGNORE_KEYWORDS: frozenset[str] = frozenset(
    {"none", "file", "errorlog", "transactionlogfile", "(local)", "localhost"}
)


class ConfigurationError(Exception):
    """Fatal pre-flight problem: missing/malformed setting or unusable file."""


@dataclass(frozen=True)
class SqlTimeouts:
    """Per-operation timeouts in seconds."""

    connect: int = 30
    command: int = 300
    bulk_copy: int = 600
    map_read: int = 120
    map_write: int = 120
    sample_sync: int = 180


@dataclass(frozen=True)
class SourceConfig:
    name: str
    object_whitelist_file: Path
    csv_clean_file: Path | None = None
    data_sample_file: Path | None = None
    source_object_column: str = "Affected Targets"
    header_check_cols: tuple[str, ...] = DEFAULT_HEADER_CHECK_COLS
    extractor_ignore_keywords: frozenset[str] = DEFAULT_IGNORE_KEYWORDS
    sample_data_key_column: str = "finding_object_id"
    default_date_placeholder: str = "1900-01-01"


@dataclass(frozen=True)
class EtlConfig:
    source: SourceConfig
    domain_suffix: str | None = None
    batch_size_bulk_load: int = 5000
    batch_size_map_insert: int = 1000
    timeouts: SqlTimeouts = field(default_factory=SqlTimeouts)
    config_path: Path | None = None


def _require_mapping(value: Any, key: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ConfigurationError(f"'{key}' must be a mapping in the config file")
    return value


def _positive_int(section: dict[str, Any], key: str, default: int, prefix: str) -> int:
    raw = section.get(key, default)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ConfigurationError(f"'{prefix}.{key}' must be an integer (got {raw!r})")
    if value <= 0:
        raise ConfigurationError(f"'{prefix}.{key}' must be positive (got {value})")
    return value


def _resolve_path(raw: Any, *, key: str, base_dir: Path, required: bool) -> Path | None:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        if required:
            raise ConfigurationError(f"Missing required setting '{key}'")
        return None
    p = Path(str(raw).strip()).expanduser()
    if not p.is_absolute():
        p = base_dir / p
    return p


def _string_list(raw: Any, key: str) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, (list, tuple)):
        raise ConfigurationError(f"'{key}' must be a list of strings")
    return [str(v).strip() for v in raw if v is not None and str(v).strip()]


def parse_config(
    data: dict[str, Any], *, source: str = DEFAULT_SOURCE, base_dir: Path | None = None
) -> EtlConfig:
    """Build an EtlConfig from an already-parsed YAML document."""

    base_dir = base_dir or Path.cwd()
    data = _require_mapping(data, "<root>")

    g = _require_mapping(data.get("global_settings") or {}, "global_settings")
    sources = _require_mapping(data.get("sources"), "sources")
    if source not in sources:
        raise ConfigurationError(
            f"Missing required setting 'sources.{source}' "
            f"(configured sources: {sorted(sources) or 'none'})"
        )
    s = _require_mapping(sources[source], f"sources.{source}")
    prefix = f"sources.{source}"

    whitelist_file = _resolve_path(
        s.get("object_whitelist_file"),
        key=f"{prefix}.object_whitelist_file",
        base_dir=base_dir,
        required=True,
    )

    suffix = g.get("domain_suffix")
    suffix = str(suffix).strip() if suffix is not None else ""

    timeouts = SqlTimeouts(
        connect=_positive_int(g, "sql_connect_timeout", 30, "global_settings"),
        command=_positive_int(g, "sql_command_timeout", 300, "global_settings"),
        bulk_copy=_positive_int(g, "sql_cmd_timeout_bulk_copy", 600, "global_settings"),
        map_read=_positive_int(g, "sql_cmd_timeout_map_read", 120, "global_settings"),
        map_write=_positive_int(g, "sql_cmd_timeout_map_write", 120, "global_settings"),
        sample_sync=_positive_int(
            g, "sql_cmd_timeout_sample_sync", 180, "global_settings"
        ),
    )

    header_cols = _string_list(s.get("header_check_cols"), f"{prefix}.header_check_cols")
    keywords = _string_list(
        s.get("extractor_ignore_keywords"), f"{prefix}.extractor_ignore_keywords"
    )

    object_column = str(s.get("source_object_column", "Affected Targets") or "").strip()
    if not object_column:
        raise ConfigurationError(f"Setting '{prefix}.source_object_column' must not be empty")

    source_cfg = SourceConfig(
        name=source,
        object_whitelist_file=whitelist_file,
        csv_clean_file=_resolve_path(
            s.get("csv_clean_file"),
            key=f"{prefix}.csv_clean_file",
            base_dir=base_dir,
            required=False,
        ),
        data_sample_file=_resolve_path(
            s.get("data_sample_file"),
            key=f"{prefix}.data_sample_file",
            base_dir=base_dir,
            required=False,
        ),
        source_object_column=object_column,
        header_check_cols=tuple(header_cols) or DEFAULT_HEADER_CHECK_COLS,
        extractor_ignore_keywords=(
            frozenset(k.lower() for k in keywords) if keywords else DEFAULT_IGNORE_KEYWORDS
        ),
        sample_data_key_column=str(
            s.get("sample_data_key_column") or "finding_object_id"
        ).strip(),
        default_date_placeholder=str(
            s.get("default_date_placeholder") or "1900-01-01"
        ).strip(),
    )

    return EtlConfig(
        source=source_cfg,
        domain_suffix=suffix or None,
        batch_size_bulk_load=_positive_int(g, "batch_size_bulk_load", 5000, "global_settings"),
        batch_size_map_insert=_positive_int(
            g, "batch_size_map_insert", 1000, "global_settings"
        ),
        timeouts=timeouts,
    )


def load_config(path: Path | str | None = None, *, source: str = DEFAULT_SOURCE) -> EtlConfig:
    """Load the YAML config file.

    Raises:
        ConfigurationError: if the file is missing, not valid YAML, or lacks
            required settings.
    """

    if path is None:
        path = os.getenv("FINDINGS_ETL_CONFIG") or DEFAULT_CONFIG_PATH
    config_path = Path(path).expanduser().resolve()
    if not config_path.is_file():
        raise ConfigurationError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Config file {config_path} is not valid YAML: {e}")

    if data is None:
        raise ConfigurationError(f"Config file is empty: {config_path}")

    cfg = parse_config(data, source=source, base_dir=config_path.parent)
    return replace(cfg, config_path=config_path)
