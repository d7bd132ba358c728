from __future__ import annotations
import os, json, pathlib


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_triple(name: str, default: tuple[float, float, float]) -> tuple[float, float, float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        parts = tuple(float(p) for p in raw.split(","))
    except ValueError:
        return default
    return parts if len(parts) == 3 else default  # type: ignore[return-value]


CURVE_DECIMALS: int = 3
# used when a category has no values in the pool
FALLBACK_THRESHOLDS: tuple[float, float, float] = (0.8, 0.5, 0.2)

DEFAULT_CURVE_METHOD: str = "standard_deviation"
DEFAULT_SIGMA_BOUNDARIES: tuple[float, float, float] = (1.0, 0.0, -1.0)
DEFAULT_PERCENTILES: tuple[float, float, float] = (0.8, 0.5, 0.2)
DEFAULT_ABSOLUTE_THRESHOLDS: tuple[float, float, float] = (0.85, 0.7, 0.5)
DEFAULT_CURVE_LABEL: str = "curve"

MIN_POOL_SIZE_WARN: int = 10
ALLOW_LANGUAGE_VARIANT: bool = False

SYNTHETIC_SEED: int = 7
SYNTHETIC_PARTICIPANTS: int = 25

# // env overrides for staging/ops
CURVE_DECIMALS = _env_int("CURVE_DECIMALS", CURVE_DECIMALS)
DEFAULT_CURVE_METHOD = os.getenv("CURVE_METHOD", DEFAULT_CURVE_METHOD).strip().lower()
DEFAULT_SIGMA_BOUNDARIES = _env_triple("CURVE_SIGMA_BOUNDARIES", DEFAULT_SIGMA_BOUNDARIES)
DEFAULT_PERCENTILES = _env_triple("CURVE_PERCENTILES", DEFAULT_PERCENTILES)
DEFAULT_ABSOLUTE_THRESHOLDS = _env_triple("CURVE_ABSOLUTE_THRESHOLDS", DEFAULT_ABSOLUTE_THRESHOLDS)
MIN_POOL_SIZE_WARN = _env_int("MIN_POOL_SIZE_WARN", MIN_POOL_SIZE_WARN)
ALLOW_LANGUAGE_VARIANT = _env_bool("ALLOW_LANGUAGE_VARIANT", ALLOW_LANGUAGE_VARIANT)
SYNTHETIC_SEED = _env_int("SYNTHETIC_SEED", SYNTHETIC_SEED)


def load_config(path: str | os.PathLike[str] = "config.json") -> dict:
    """Merge ``config.json`` (when present) with environment overrides."""
    cfg: dict = {}
    p = pathlib.Path(path)
    if p.exists():
        try: cfg = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError): cfg = {}
    e = os.environ
    if e.get("CURVE_METHOD"): cfg["CURVE_METHOD"] = e["CURVE_METHOD"].strip().lower()
    if e.get("CURVE_LABEL"): cfg["CURVE_LABEL"] = e["CURVE_LABEL"]
    for k in ("CURVE_SIGMA_BOUNDARIES", "CURVE_PERCENTILES", "CURVE_ABSOLUTE_THRESHOLDS"):
        if e.get(k): cfg[k] = [float(v) for v in e[k].split(",")]
    if e.get("ALLOW_LANGUAGE_VARIANT"): cfg["ALLOW_LANGUAGE_VARIANT"] = _env_bool("ALLOW_LANGUAGE_VARIANT", False)
    return cfg


def method_from_config(cfg: dict | None = None):
    """Build the curve method named by ``cfg`` (falls back to module defaults)."""
    from .types import AbsoluteMethod, PercentileMethod, StandardDeviationMethod

    cfg = cfg or {}
    name = str(cfg.get("CURVE_METHOD") or DEFAULT_CURVE_METHOD).lower()
    if name == "standard_deviation":
        return StandardDeviationMethod(cfg.get("CURVE_SIGMA_BOUNDARIES") or DEFAULT_SIGMA_BOUNDARIES)
    if name == "percentile":
        return PercentileMethod(cfg.get("CURVE_PERCENTILES") or DEFAULT_PERCENTILES)
    if name == "absolute":
        return AbsoluteMethod(cfg.get("CURVE_ABSOLUTE_THRESHOLDS") or DEFAULT_ABSOLUTE_THRESHOLDS)
    from .errors import ScoreValidationError

    raise ScoreValidationError(f"unknown curve method {name!r}", context={"method": name})
