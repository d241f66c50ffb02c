"""Auto-gift intelligence JSON API."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import get_jwt_identity, jwt_required
from pydantic import ValidationError

from autogift.core.auth.csrf import csrf_protected, issue_csrf_token
from autogift.core.intelligence.budget_estimator import default_budget
from autogift.core.intelligence.constants import ESTIMATED_CONFIDENCE_THRESHOLD
from autogift.core.intelligence.engine import IntelligenceEngine
from autogift.core.intelligence.errors import (
    NotFound,
    ScanCancelled,
    ScanFailed,
    UpstreamFetchFailure,
)
from autogift.core.intelligence.schemas import (
    GiftOpportunity,
    GiftOutcomeCreate,
    OccasionQuery,
    OpportunityQuery,
    PurchaseTimingQuery,
    RuleCreate,
    SeasonalQuery,
)
from autogift.extensions import intelligence, limiter

autogift_api_bp = Blueprint("autogift_api", __name__)


def _engine() -> IntelligenceEngine:
    return intelligence.engine


def _validation_error(exc: ValidationError):
    return (
        jsonify(
            {
                "ok": False,
                "error": "validation_error",
                "details": exc.errors(include_url=False, include_context=False),
            }
        ),
        400,
    )


def _scan_rate_limit() -> str:
    return current_app.config.get("AUTOGIFT_SCAN_RATE_LIMIT", "30/minute")


def map_opportunity(opportunity: GiftOpportunity) -> dict:
    data = opportunity.model_dump(mode="json")
    data["estimated"] = opportunity.confidence_score < ESTIMATED_CONFIDENCE_THRESHOLD
    return data


@autogift_api_bp.errorhandler(ScanFailed)
def _scan_failed(exc: ScanFailed):
    current_app.logger.error("Opportunity scan failed: %s", exc.cause)
    return jsonify({"ok": False, "error": "scan_failed"}), 503


@autogift_api_bp.errorhandler(ScanCancelled)
def _scan_cancelled(exc: ScanCancelled):
    return jsonify({"ok": False, "error": "scan_cancelled"}), 504


@autogift_api_bp.errorhandler(UpstreamFetchFailure)
def _store_unavailable(exc: UpstreamFetchFailure):
    current_app.logger.warning("Store unavailable: %s", exc)
    return jsonify({"ok": False, "error": "store_unavailable"}), 503


@autogift_api_bp.get("/csrf-token")
@jwt_required()
def csrf_token():
    return jsonify({"ok": True, "csrf_token": issue_csrf_token()})


@autogift_api_bp.get("/opportunities")
@jwt_required()
@limiter.limit(_scan_rate_limit)
def list_opportunities():
    try:
        query = OpportunityQuery.model_validate(request.args.to_dict())
    except ValidationError as exc:
        return _validation_error(exc)
    user_id = int(get_jwt_identity())
    opportunities = _engine().scan(
        user_id,
        window_days=query.window_days,
        timing_strategy=query.timing,
    )
    return jsonify(
        {
            "ok": True,
            "opportunities": [map_opportunity(o) for o in opportunities],
            "count": len(opportunities),
        }
    )


@autogift_api_bp.get("/recipients/<int:recipient_id>/relationship-context")
@jwt_required()
def relationship_context(recipient_id: int):
    user_id = int(get_jwt_identity())
    context = _engine().relationship_context(user_id, recipient_id)
    if context is None:
        return jsonify({"ok": False, "error": "not_found"}), 404
    return jsonify({"ok": True, "relationship_context": context.model_dump(mode="json")})


@autogift_api_bp.get("/recipients/<int:recipient_id>/budget")
@jwt_required()
def budget(recipient_id: int):
    try:
        query = OccasionQuery.model_validate(request.args.to_dict())
    except ValidationError as exc:
        return _validation_error(exc)
    user_id = int(get_jwt_identity())
    recommendation = _engine().budget(user_id, recipient_id, query.occasion)
    if recommendation is None:
        return jsonify(
            {
                "ok": True,
                "occasion": query.occasion,
                "budget": default_budget().model_dump(),
                "recommendation": None,
                "fallback": True,
            }
        )
    return jsonify(
        {
            "ok": True,
            "occasion": query.occasion,
            "budget": recommendation.budget.model_dump(),
            "recommendation": recommendation.model_dump(mode="json"),
            "fallback": False,
        }
    )


@autogift_api_bp.get("/recipients/<int:recipient_id>/categories")
@jwt_required()
def categories(recipient_id: int):
    try:
        query = OccasionQuery.model_validate(request.args.to_dict())
    except ValidationError as exc:
        return _validation_error(exc)
    user_id = int(get_jwt_identity())
    predicted = _engine().categories(user_id, recipient_id, query.occasion)
    return jsonify({"ok": True, "occasion": query.occasion, "categories": predicted})


@autogift_api_bp.get("/recipients/<int:recipient_id>/purchase-timing")
@jwt_required()
def purchase_timing(recipient_id: int):
    try:
        query = PurchaseTimingQuery.model_validate(request.args.to_dict())
    except ValidationError as exc:
        return _validation_error(exc)
    engine = _engine()
    if not engine.is_connected(int(get_jwt_identity()), recipient_id):
        return jsonify({"ok": False, "error": "not_found"}), 404
    event_date = datetime(query.event_date.year, query.event_date.month, query.event_date.day)
    strategy = query.strategy or engine.settings.timing_strategy
    timing = engine.purchase_timing(recipient_id, event_date, strategy)
    return jsonify(
        {
            "ok": True,
            "event_date": event_date.isoformat(),
            "strategy": strategy,
            "optimal_purchase_timing": timing.isoformat(),
        }
    )


@autogift_api_bp.get("/recipients/<int:recipient_id>/wishlist-compatibility")
@jwt_required()
def wishlist_compatibility(recipient_id: int):
    try:
        query = OccasionQuery.model_validate(request.args.to_dict())
    except ValidationError as exc:
        return _validation_error(exc)
    user_id = int(get_jwt_identity())
    result = _engine().wishlist_fit(user_id, recipient_id, query.occasion)
    return jsonify(
        {
            "ok": True,
            "occasion": query.occasion,
            "compatibility": result.model_dump(mode="json") if result else None,
        }
    )


@autogift_api_bp.get("/seasonal-adjustment")
@jwt_required()
def seasonal_adjustment():
    try:
        query = SeasonalQuery.model_validate(request.args.to_dict())
    except ValidationError as exc:
        return _validation_error(exc)
    adjustment = _engine().seasonal_adjustment(query.occasion, query.target_date)
    return jsonify({"ok": True, "adjustment": adjustment.model_dump(mode="json")})


@autogift_api_bp.post("/rules")
@jwt_required()
@csrf_protected
def create_rule():
    payload = request.get_json(silent=True) or {}
    try:
        data = RuleCreate.model_validate(payload)
    except ValidationError as exc:
        return _validation_error(exc)
    user_id = int(get_jwt_identity())
    if data.recipient_id == user_id:
        return jsonify({"ok": False, "error": "invalid_recipient"}), 400
    rule = _engine().rules.create_rule(user_id=user_id, **data.model_dump())
    return jsonify({"ok": True, "rule": rule.model_dump(mode="json")}), 201


@autogift_api_bp.post("/rules/<int:rule_id>/refresh")
@jwt_required()
@csrf_protected
def refresh_rule(rule_id: int):
    user_id = int(get_jwt_identity())
    try:
        rule = _engine().rules.refresh_rule(user_id, rule_id)
    except NotFound:
        return jsonify({"ok": False, "error": "not_found"}), 404
    return jsonify({"ok": True, "rule": rule.model_dump(mode="json")})


@autogift_api_bp.post("/gift-outcomes")
@jwt_required()
@csrf_protected
def record_gift_outcome():
    payload = request.get_json(silent=True) or {}
    try:
        data = GiftOutcomeCreate.model_validate(payload)
    except ValidationError as exc:
        return _validation_error(exc)
    user_id = int(get_jwt_identity())
    history = _engine().rules.record_gift_outcome(user_id=user_id, **data.model_dump())
    return jsonify({"ok": True, "gifting_history": history.model_dump(mode="json")}), 201


@autogift_api_bp.delete("/cache")
@jwt_required()
@csrf_protected
def invalidate_cache():
    user_id = int(get_jwt_identity())
    removed = _engine().invalidate(user_id)
    return jsonify({"ok": True, "removed": removed})


@autogift_api_bp.get("/telemetry")
@jwt_required()
def telemetry():
    return jsonify({"ok": True, "telemetry": asdict(_engine().telemetry.snapshot())})
