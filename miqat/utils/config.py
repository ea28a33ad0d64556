# miqat/utils/config.py
import os
import yaml

from miqat.core.models import Configuration, ConfigurationError, Parameters, TimeAdjustment

__all__ = ["AttrDict", "load_config", "parameters_from_config"]


class AttrDict(dict):
    """Dict that also supports attribute access: cfg.method and cfg['method'] both work."""
    def __getattr__(self, item):
        try:
            return self[item]
        except KeyError as e:
            raise AttributeError(item) from e
    def __setattr__(self, key, value):
        self[key] = value

def _to_attr(obj):
    if isinstance(obj, dict):
        return AttrDict({k: _to_attr(v) for k, v in obj.items()})
    if isinstance(obj, list):
        return [_to_attr(x) for x in obj]
    return obj

def load_config(path: str):
    """
    Load YAML config from `path`.
    Optional overrides:
      - MIQAT_METHOD  (overrides config['method'])
      - MIQAT_MADHAB  (overrides config['madhab'])
    Returns an AttrDict for convenient access.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError("invalid_config", f"{path} must contain a mapping at the top level")

    method = os.getenv("MIQAT_METHOD")
    if method:
        data["method"] = method
    madhab = os.getenv("MIQAT_MADHAB")
    if madhab:
        data["madhab"] = madhab

    return _to_attr(data)

# Optional keys → Configuration setter of the same name.
# isha_interval goes first: a positive interval clears isha_angle.
_SETTERS = (
    "isha_interval",
    "fajr_angle",
    "isha_angle",
    "maghrib_angle",
    "high_latitude_rule",
    "rounding",
    "shafaq",
)

def parameters_from_config(cfg) -> Parameters:
    """
    Build Parameters from a config mapping:

        method: north_america
        madhab: hanafi
        high_latitude_rule: seventh_of_the_night
        adjustments: {fajr: 2, isha: -1}

    Keys left out keep the method preset's value.
    """
    cfg = dict(cfg or {})
    builder = Configuration.with_method(cfg.get("method") or "other", cfg.get("madhab") or "shafi")
    for key in _SETTERS:
        if cfg.get(key) is not None:
            getattr(builder, key)(cfg[key])
    if cfg.get("adjustments") is not None:
        builder.adjustments(TimeAdjustment.from_mapping(cfg["adjustments"]))
    return builder.build()
