from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import func

import db
from api.schemas.api_responses import bad_param, ok
from api.schemas.findings import FindingOut, FindingsSummary, ObjectOut
from logging_utils import get_logger
from models.objects_map import ObjectMap
from models.prod_findings import ProdFinding

logger = get_logger(__name__)

findings_v1_bp = Blueprint("findings_v1", __name__)

DEFAULT_LIMIT = 100
MAX_LIMIT = 500


def _max_limit() -> int:
    return int(current_app.config.get("FINDINGS_MAX_LIMIT", MAX_LIMIT))


def _limit_param() -> int | None:
    raw = (request.args.get("limit") or "").strip()
    if not raw:
        return int(current_app.config.get("FINDINGS_DEFAULT_LIMIT", DEFAULT_LIMIT))
    try:
        limit = int(raw)
    except ValueError:
        return None
    if limit < 1 or limit > _max_limit():
        return None
    return limit


@findings_v1_bp.route("/findings", methods=["GET"])
def list_findings():
    """Production findings in priority order (unranked rows last).

    Query params:
    - risk_level: exact risk level (case-insensitive), optional
    - object: canonical object name (case-insensitive), optional
    - fixed: Y or N, optional
    - limit: 1..500 (default 100)
    """

    limit = _limit_param()
    if limit is None:
        message = f"limit must be an integer between 1 and {_max_limit()}"
        logger.info("Rejected findings query: limit=%r", request.args.get("limit"))
        return jsonify(bad_param("limit", request.args.get("limit"), message)), 400

    fixed = (request.args.get("fixed") or "").strip().upper() or None
    if fixed is not None and fixed not in {"Y", "N"}:
        logger.info("Rejected findings query: fixed=%r", request.args.get("fixed"))
        return jsonify(bad_param("fixed", request.args.get("fixed"), "fixed must be Y or N")), 400

    risk_level = (request.args.get("risk_level") or "").strip() or None
    obj = (request.args.get("object") or "").strip() or None

    session = db.SessionLocal()
    try:
        qry = session.query(ProdFinding)
        if risk_level:
            qry = qry.filter(func.lower(ProdFinding.risk_level) == risk_level.lower())
        if obj:
            qry = qry.filter(ProdFinding.normalized_object == obj.upper())
        if fixed:
            qry = qry.filter(ProdFinding.fixed == fixed)

        rows = (
            qry.order_by(ProdFinding.priority_rank.asc().nullslast(), ProdFinding.id.asc())
            .limit(limit)
            .all()
        )
        total = session.query(func.count(ProdFinding.id)).scalar() or 0
        data = {
            "count": len(rows),
            "results": [FindingOut.model_validate(r).model_dump(mode="json") for r in rows],
        }
        return jsonify(ok(data, row_count=total)), 200
    finally:
        session.close()


@findings_v1_bp.route("/findings/summary", methods=["GET"])
def findings_summary():
    """Counts per risk level plus open/fixed totals."""

    session = db.SessionLocal()
    try:
        by_risk = dict(
            session.query(
                func.coalesce(ProdFinding.risk_level, "(none)"), func.count(ProdFinding.id)
            )
            .group_by(ProdFinding.risk_level)
            .all()
        )
        fixed_counts = dict(
            session.query(ProdFinding.fixed, func.count(ProdFinding.id))
            .group_by(ProdFinding.fixed)
            .all()
        )
        unranked = (
            session.query(func.count(ProdFinding.id))
            .filter(ProdFinding.priority_rank.is_(None))
            .scalar()
            or 0
        )
        summary = FindingsSummary(
            total=sum(fixed_counts.values()),
            open=fixed_counts.get("N", 0),
            fixed=fixed_counts.get("Y", 0),
            by_risk_level=by_risk,
            unranked=unranked,
        )
        return jsonify(ok(summary.model_dump(), row_count=summary.total)), 200
    finally:
        session.close()


@findings_v1_bp.route("/objects", methods=["GET"])
def list_objects():
    """The identity map, ordered by name."""

    session = db.SessionLocal()
    try:
        rows = session.query(ObjectMap).order_by(ObjectMap.object_name.asc()).all()
        data = {
            "count": len(rows),
            "results": [ObjectOut.model_validate(r).model_dump() for r in rows],
        }
        return jsonify(ok(data, row_count=len(rows))), 200
    finally:
        session.close()
