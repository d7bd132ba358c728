from __future__ import annotations

import importlib
import os
import sys

from fastapi.testclient import TestClient

from curve_core import codec

from tests.conftest import build_fixture_cohort, build_fixture_scores


def _reload_app(tmp_path) -> tuple[object, object]:
    os.environ["DATA_DIR"] = str(tmp_path)
    if "api.storage" in sys.modules:
        importlib.reload(sys.modules["api.storage"])
    else:
        import api.storage  # noqa: F401
    storage = sys.modules["api.storage"]
    if "api.app" in sys.modules:
        importlib.reload(sys.modules["api.app"])
    else:
        import api.app  # noqa: F401
    app_module = sys.modules["api.app"]
    return storage, app_module


def _create_curve(client, **extra) -> dict:
    body = {"scores": [codec.encode_scores(s) for s in build_fixture_cohort(12)], "label": "fixture", **extra}
    resp = client.post("/curves", json=body)
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_health_and_root(tmp_path):
    _, app_module = _reload_app(tmp_path)
    client = TestClient(app_module.app)
    assert client.get("/").json()["status"] == "ok"
    health = client.get("/health").json()
    assert health["status"] == "ok"
    assert "curve_method" in health


def test_curve_lifecycle(tmp_path):
    storage, app_module = _reload_app(tmp_path)
    client = TestClient(app_module.app)

    curve = _create_curve(client)
    cid = curve["curve_id"]
    assert curve["sample_size"] == 12
    assert (storage.CURVES_DIR / f"{cid}.json").exists()

    listed = client.get("/curves").json()["curves"]
    assert [c["id"] for c in listed] == [cid]
    assert listed[0]["sampleSize"] == 12

    assert client.get(f"/curves/{cid}").json() == curve

    assert client.delete(f"/curves/{cid}").json() == {"ok": True}
    assert client.get(f"/curves/{cid}").status_code == 404
    assert client.delete(f"/curves/{cid}").status_code == 404


def test_check_and_grade(tmp_path):
    _, app_module = _reload_app(tmp_path)
    client = TestClient(app_module.app)
    cid = _create_curve(client, method={"type": "absolute", "params": {"thresholds": [0.85, 0.78, 0.7]}})["curve_id"]
    scores = codec.encode_scores(build_fixture_scores(scores_id="single"))

    check = client.post(f"/curves/{cid}/check", json={"scores": scores})
    assert check.json() == {"status": "compatible"}

    resp = client.post(f"/curves/{cid}/grade", json={"scores": scores})
    assert resp.status_code == 200, resp.text
    graded = resp.json()
    assert graded["total_grades"] == {"total_problem": "B", "total_ability": "C", "final_total": "C"}
    assert graded["override"] is None

    again = client.post(f"/curves/{cid}/grade", json={"scores": scores}).json()
    assert again == graded
    assert client.get(f"/graded/{graded['graded_id']}").json() == graded
    assert [g["id"] for g in client.get(f"/curves/{cid}/graded").json()["graded"]] == [graded["graded_id"]]

    refused = client.delete(f"/curves/{cid}")
    assert refused.status_code == 409
    assert refused.json()["detail"]["graded"] == [graded["graded_id"]]
    assert client.get(f"/curves/{cid}").status_code == 200


def test_override_flow(tmp_path):
    _, app_module = _reload_app(tmp_path)
    client = TestClient(app_module.app)
    cid = _create_curve(client)["curve_id"]
    scores = codec.encode_scores(build_fixture_scores(scores_id="new-prompt", prompt_version_hash="0123abc"))

    check = client.post(f"/curves/{cid}/check", json={"scores": scores}).json()
    assert check["status"] == "requires_override"
    assert check["differences"]["prompt_version_mismatch"] is True

    refused = client.post(f"/curves/{cid}/grade", json={"scores": scores})
    assert refused.status_code == 409
    assert refused.json()["detail"]["error"] == "OverrideRequiredError"

    accepted = client.post(
        f"/curves/{cid}/grade",
        json={
            "scores": scores,
            "override": {"overridden_by": "reviewer", "reason": "prompt typo fix", "original_result": check},
        },
    )
    assert accepted.status_code == 200, accepted.text
    assert accepted.json()["override"]["overridden_by"] == "reviewer"


def test_incompatible_and_invalid_requests(tmp_path):
    _, app_module = _reload_app(tmp_path)
    client = TestClient(app_module.app)
    cid = _create_curve(client)["curve_id"]

    partial = codec.encode_scores(build_fixture_scores(scores_id="partial", problem_ids=["100010", "100031"]))
    check = client.post(f"/curves/{cid}/check", json={"scores": partial}).json()
    assert check == {"status": "incompatible", "reasons": ["Curve requires problem 100020 but scores missing it"]}
    resp = client.post(f"/curves/{cid}/grade", json={"scores": partial})
    assert resp.status_code == 409
    assert resp.json()["detail"]["category"] == "INCOMPATIBLE CURVE"

    broken = codec.encode_scores(build_fixture_scores())
    broken["problem_scores"][0]["task_score"] = 2.0
    bad = client.post(f"/curves/{cid}/grade", json={"scores": broken})
    assert bad.status_code == 422
    assert bad.json()["detail"]["category"] == "VALIDATION"

    assert client.post("/curves", json={"scores": []}).status_code == 422
    assert client.post("/curves/missing/check", json={"scores": partial}).status_code == 404
    assert client.get("/graded/missing").status_code == 404


def test_malformed_curve_method_is_rejected(tmp_path):
    _, app_module = _reload_app(tmp_path)
    client = TestClient(app_module.app)
    scores = [codec.encode_scores(s) for s in build_fixture_cohort(12)]
    for method in (
        {"type": "absolute", "params": {"thresholds": [0.9, 0.7]}},
        {"type": "percentile", "params": {"percentiles": ["high", 0.5, 0.2]}},
        {"type": "standard_deviation", "params": {"sigma_boundaries": 5}},
        {"type": "bell", "params": {}},
    ):
        resp = client.post("/curves", json={"scores": scores, "method": method})
        assert resp.status_code == 422, method
        assert resp.json()["detail"]["category"] == "VALIDATION"
    assert client.get("/curves").json()["curves"] == []

    broken = [dict(s) for s in scores]
    broken[0] = {**broken[0], "dimension_map": {**broken[0]["dimension_map"], "entries": 3}}
    assert client.post("/curves", json={"scores": broken}).status_code == 422
