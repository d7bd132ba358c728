from __future__ import annotations
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
import logging, os, typing as t

# ---- Engine imports ----
from curve_core import codec
from curve_core.compat import CompatibilityOptions, check_compatibility
from curve_core.config import ALLOW_LANGUAGE_VARIANT, DEFAULT_CURVE_METHOD, load_config, method_from_config
from curve_core.errors import CurveGraderError, ScoreValidationError
from curve_core.pipeline import build_curve, grade
from curve_core.types import ManualOverride
from curve_core.validators import utcnow_iso
from .storage import (
    delete_curve,
    graded_for_curve,
    list_curves,
    load_curve,
    load_graded,
    save_curve,
    save_graded,
)

log = logging.getLogger(__name__)

app = FastAPI(title="Curve Grader API")


@app.get("/")
def root():
    return {"status": "ok", "service": "curve-grader-api"}


ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

# ---- Schemas ----
class MethodReq(BaseModel):
    type: str                               # "standard_deviation" | "percentile" | "absolute"
    params: dict[str, t.Any] = Field(default_factory=dict)

class CurveReq(BaseModel):
    scores: list[dict[str, t.Any]]
    method: MethodReq | None = None
    label: str | None = None

class CheckReq(BaseModel):
    scores: dict[str, t.Any]
    allow_language_variant: bool | None = None

class OverrideReq(BaseModel):
    overridden_by: str
    reason: str
    original_result: dict[str, t.Any]       # the body returned by /check
    overridden_at: str | None = None

class GradeReq(CheckReq):
    override: OverrideReq | None = None

# ---- Helpers ----
def _unprocessable(exc: CurveGraderError) -> HTTPException:
    return HTTPException(422, exc.to_dict())


def _options(flag: bool | None) -> CompatibilityOptions:
    if flag is None:
        return CompatibilityOptions.from_cfg(load_config())
    return CompatibilityOptions(allow_language_variant=flag)


def _load_curve_or_404(curve_id: str):
    stored = load_curve(curve_id)
    if not stored:
        raise HTTPException(404, "curve not found")
    try:
        return codec.decode_curve(stored)
    except ScoreValidationError as exc:
        log.error("stored curve %s no longer decodes: %s", curve_id, exc)
        raise HTTPException(500, "stored curve is corrupt")


def _decode_scores(payload: dict[str, t.Any]):
    try:
        return codec.decode_scores(payload)
    except ScoreValidationError as exc:
        raise _unprocessable(exc)


def _build_override(req: OverrideReq) -> ManualOverride:
    try:
        return codec.decode_override(
            {
                "overridden_by": req.overridden_by,
                "overridden_at": req.overridden_at or utcnow_iso(),
                "reason": req.reason,
                "original_result": req.original_result,
            }
        )
    except ScoreValidationError as exc:
        raise _unprocessable(exc)

# ---- Health ----
@app.get("/health")
def health():
    cfg = load_config()
    return {
        "status": "ok",
        "curve_method": str(cfg.get("CURVE_METHOD") or DEFAULT_CURVE_METHOD),
        "allow_language_variant": ALLOW_LANGUAGE_VARIANT,
    }

# ---- Curves ----
@app.post("/curves")
def create_curve(req: CurveReq):
    if not req.scores:
        raise HTTPException(422, "at least one scores record is required")
    try:
        members = [codec.decode_scores(s) for s in req.scores]
        method = codec.decode_method(req.method.model_dump()) if req.method else method_from_config(load_config())
        curve = build_curve(members, method, label=req.label)
    except ScoreValidationError as exc:
        raise _unprocessable(exc)
    body = codec.encode_curve(curve)
    metadata = {
        "label": curve.label,
        "method": curve.method.type,
        "sampleSize": curve.sample_size,
        "computedAt": curve.computed_at,
        "eventIds": list(curve.source_event_ids),
    }
    save_curve(curve.curve_id, body, metadata)
    return body


@app.get("/curves")
def list_curves_endpoint():
    return {"curves": list_curves()}


@app.get("/curves/{curve_id}")
def get_curve(curve_id: str):
    curve = load_curve(curve_id)
    if not curve:
        raise HTTPException(404, "curve not found")
    return curve


@app.delete("/curves/{curve_id}")
def delete_curve_endpoint(curve_id: str):
    graded = graded_for_curve(curve_id)
    if graded:
        # graded results reference the curve by id
        raise HTTPException(409, {"error": "curve has graded results", "graded": [g["id"] for g in graded]})
    ok = delete_curve(curve_id)
    if not ok:
        raise HTTPException(404, "curve not found")
    return {"ok": True}


@app.get("/curves/{curve_id}/graded")
def list_graded_endpoint(curve_id: str):
    if not load_curve(curve_id):
        raise HTTPException(404, "curve not found")
    return {"graded": graded_for_curve(curve_id)}

# ---- Compatibility + grading ----
@app.post("/curves/{curve_id}/check")
def check_endpoint(curve_id: str, req: CheckReq):
    curve = _load_curve_or_404(curve_id)
    scores = _decode_scores(req.scores)
    result = check_compatibility(curve, scores, _options(req.allow_language_variant))
    return codec.encode_compat(result)


@app.post("/curves/{curve_id}/grade")
def grade_endpoint(curve_id: str, req: GradeReq):
    curve = _load_curve_or_404(curve_id)
    scores = _decode_scores(req.scores)
    override = _build_override(req.override) if req.override else None
    try:
        graded = grade(scores, curve, options=_options(req.allow_language_variant), override=override)
    except ScoreValidationError as exc:
        raise _unprocessable(exc)
    except CurveGraderError as exc:
        # curve rejected, or provenance difference not accepted
        raise HTTPException(409, exc.to_dict())
    body = codec.encode_graded(graded)
    metadata = {
        "curveId": graded.curve_id,
        "scoresId": graded.source_scores_id,
        "participantId": scores.participant_id,
        "finalTotal": graded.total_grades.final_total,
        "overridden": graded.override is not None,
    }
    save_graded(graded.graded_id, body, metadata)
    return body


@app.get("/graded/{graded_id}")
def get_graded(graded_id: str):
    graded = load_graded(graded_id)
    if not graded:
        raise HTTPException(404, "graded result not found")
    return graded
