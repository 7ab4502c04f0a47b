"""Run the findings ETL.

Stages run in order, each in its own transaction:

    raw_load -> object_map -> staging -> consolidation -> tracking_sync -> prod_load

Usage:
    python jobs/run_pipeline.py --config config.yaml
    python jobs/run_pipeline.py --stages staging,consolidation,prod_load
    python jobs/run_pipeline.py --db sqlite:///data/other.db --log-level DEBUG

Exit codes: 0 success, 1 a stage failed and was rolled back,
2 configuration error (raised before the failing stage touched the database).
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

# Allow running this file directly (e.g. `python jobs/run_pipeline.py`) by
# ensuring the project root is importable.
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from sqlalchemy.exc import SQLAlchemyError

import db
import logging_utils
from config import DEFAULT_SOURCE, ConfigurationError, EtlConfig, load_config
from jobs.consolidation import ConsolidationStage
from jobs.object_map_update import ObjectMapUpdateStage
from jobs.prod_load import ProdLoadStage
from jobs.raw_load import RawLoadStage
from jobs.staging import StagingStage
from jobs.tracking_sync import TrackingSyncStage
from logging_utils import get_logger
from support.stage_base import EtlStageBase, StageError, StageResult
from utils.recreate_sqlite_db import ensure_schema

logger = get_logger(__name__)

STAGES: dict[str, type[EtlStageBase]] = {
    RawLoadStage.stage_name: RawLoadStage,
    ObjectMapUpdateStage.stage_name: ObjectMapUpdateStage,
    StagingStage.stage_name: StagingStage,
    ConsolidationStage.stage_name: ConsolidationStage,
    TrackingSyncStage.stage_name: TrackingSyncStage,
    ProdLoadStage.stage_name: ProdLoadStage,
}


def parse_stage_list(value: str | None) -> list[str]:
    """Selected stage names in pipeline order."""

    if not value or value.strip().lower() == "all":
        return list(STAGES)
    wanted = [s.strip() for s in value.split(",") if s.strip()]
    unknown = [s for s in wanted if s not in STAGES]
    if unknown:
        raise ConfigurationError(
            f"Unknown stage(s): {', '.join(unknown)} (valid: {', '.join(STAGES)})"
        )
    return [s for s in STAGES if s in wanted]


def run_pipeline(
    config: EtlConfig,
    *,
    stages: list[str] | None = None,
    session_factory=None,
) -> list[StageResult]:
    """Run the selected stages in order; stop at the first failure."""

    results: list[StageResult] = []
    for name in stages or list(STAGES):
        stage = STAGES[name](config, session_factory=session_factory)
        results.append(stage.execute())
    return results


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Findings ETL pipeline")
    p.add_argument(
        "--config",
        default=None,
        help="Path of the YAML config (default: FINDINGS_ETL_CONFIG or ./config.yaml)",
    )
    p.add_argument(
        "--source",
        default=DEFAULT_SOURCE,
        help=f"Source section under 'sources' in the config (default: {DEFAULT_SOURCE})",
    )
    p.add_argument(
        "--db",
        default=None,
        help="SQLAlchemy database URL (default: DATABASE_URL or data/findings.db)",
    )
    p.add_argument(
        "--stages",
        default="all",
        help=f"Comma-separated stages to run (default: all = {','.join(STAGES)})",
    )
    p.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override LOG_LEVEL for this run",
    )
    return p.parse_args(argv)


def _print_summary(results: list[StageResult]) -> None:
    for r in results:
        if r.skipped:
            print(f"{r.stage:<14} skipped")
            continue
        detail = " ".join(f"{k}={v}" for k, v in r.counts.items())
        print(f"{r.stage:<14} ok  {detail}")


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    if args.log_level:
        os.environ["LOG_LEVEL"] = args.log_level
        logging_utils.configure_app_logging(args.log_level)

    try:
        config = load_config(args.config, source=args.source)
        stages = parse_stage_list(args.stages)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    url = args.db or db.SQLALCHEMY_DATABASE_URL
    engine = db.make_engine(url, connect_timeout=config.timeouts.connect)
    logger.info(
        "run_pipeline starting | config=%s source=%s db=%s stages=%s",
        config.config_path,
        config.source.name,
        engine.url.render_as_string(hide_password=True),
        ",".join(stages),
    )

    try:
        ensure_schema(engine)
        results = run_pipeline(
            config, stages=stages, session_factory=db.make_session_factory(engine)
        )
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    except StageError as e:
        logger.error("%s", e)
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except SQLAlchemyError as e:
        logger.exception("Schema setup failed")
        print(f"ERROR: schema setup failed: {e}", file=sys.stderr)
        return 1
    finally:
        engine.dispose()

    _print_summary(results)
    logger.info("run_pipeline complete")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
