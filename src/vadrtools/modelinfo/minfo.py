"""
Model info (.minfo) file parsing and writing.

Format::

    # comment
    MODEL NC_039477 cmfile:"NC_039477.cm" length:"7547"
    FEATURE NC_039477 type:"CDS" coords:"5..5104:+" parent_idx_str:"GBNULL" product:"nonstructural polyprotein"

Keys contain neither whitespace nor ``:``. Values are wrapped in double
quotes and contain no double quotes. Multiple values for one key are
joined with ``:GBSEP:``.
"""

import re
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from .features import validate_coords
from .models import DERIVED_FEATURE_KEYS, Feature, ModelInfo

KEY_VALUE_RE = re.compile(r'^\s*([^\s:]+):"([^"]+)"')

DEFAULT_REQUIRED_MODEL_KEYS = ("length",)
DEFAULT_REQUIRED_FEATURE_KEYS = ("type", "coords")


def _parse_key_values(text: str, line_number: int) -> Dict[str, str]:
    """Parse a run of key:"value" pairs."""
    values: Dict[str, str] = {}
    rest = text
    while rest.strip():
        match = KEY_VALUE_RE.match(rest)
        if match is None:
            raise ValueError(f"Line {line_number}: unable to parse key:value pair from {rest.strip()!r}")
        key, value = match.groups()
        if key in values:
            raise ValueError(f"Line {line_number}: key {key} appears more than once")
        values[key] = value
        rest = rest[match.end():]
    return values


def parse_model_info(
    filepath: Union[str, Path],
    required_model_keys: Optional[Sequence[str]] = None,
    required_feature_keys: Optional[Sequence[str]] = None,
) -> List[ModelInfo]:
    """Parse a model info file.

    Args:
        filepath: Path to the .minfo file
        required_model_keys: Keys every MODEL line must have
        required_feature_keys: Keys every FEATURE line must have

    Returns:
        Models in file order

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is malformed
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Model info file not found: {filepath}")
    if required_model_keys is None:
        required_model_keys = DEFAULT_REQUIRED_MODEL_KEYS
    if required_feature_keys is None:
        required_feature_keys = DEFAULT_REQUIRED_FEATURE_KEYS

    models: Dict[str, ModelInfo] = {}

    with open(path, "r") as f:
        for line_number, line in enumerate(f, start=1):
            line = line.rstrip("\n\r")
            if not line.strip() or line.startswith("#"):
                continue

            match = re.match(r"^(MODEL|FEATURE)\s+(\S+)(.*)$", line)
            if match is None:
                raise ValueError(
                    f"Line {line_number}: expected line to start with MODEL or FEATURE: {line}"
                )
            keyword, name, rest = match.groups()
            values = _parse_key_values(rest, line_number)

            if keyword == "MODEL":
                if name in models:
                    raise ValueError(f"Line {line_number}: read multiple MODEL lines for {name}")
                models[name] = ModelInfo(name=name, attributes=values)
            else:
                if name not in models:
                    raise ValueError(
                        f"Line {line_number}: read FEATURE line for model {name} "
                        f"before its MODEL line"
                    )
                models[name].features.append(Feature(attributes=values))

    for model in models.values():
        for key in required_model_keys:
            if key not in model.attributes:
                raise ValueError(f"Model {model.name} is missing required key {key}")
        for ftr_idx, ftr in enumerate(model.features):
            for key in required_feature_keys:
                if key not in ftr:
                    raise ValueError(
                        f"Model {model.name} feature {ftr_idx} is missing required key {key}"
                    )

    return list(models.values())


def _format_pair(key: str, value: str) -> str:
    if ":" in key:
        raise ValueError(f"Key {key!r} contains a colon")
    if not value:
        raise ValueError(f"Value for key {key} is empty")
    if '"' in value:
        raise ValueError(f"Value for key {key} contains a double quote: {value!r}")
    return f'{key}:"{value}"'


def format_model_line(model: ModelInfo) -> str:
    """MODEL line with keys sorted."""
    pairs = [
        _format_pair(key, model.attributes[key])
        for key in sorted(model.attributes)
        if key != "name"
    ]
    return " ".join([f"MODEL {model.name}"] + pairs)


def format_feature_line(model_name: str, feature: Feature) -> str:
    """FEATURE line: type, coords, parent_idx_str first, then other keys sorted."""
    leading = [key for key in ("type", "coords", "parent_idx_str") if key in feature]
    trailing = sorted(
        key for key in feature.attributes
        if key not in leading and key not in DERIVED_FEATURE_KEYS
    )
    pairs = [_format_pair(key, feature[key]) for key in leading + trailing]
    return " ".join([f"FEATURE {model_name}"] + pairs)


def write_model_info(filepath: Union[str, Path], models: List[ModelInfo]) -> None:
    """Write models and their features to a model info file.

    Raises:
        ValueError: If feature coords exceed the model length, or a key or
            value cannot be represented
    """
    lines = []
    for model in models:
        validate_coords(model.features, model.length)
        lines.append(format_model_line(model))
        for ftr in model.features:
            lines.append(format_feature_line(model.name, ftr))

    with open(filepath, "w") as f:
        for line in lines:
            f.write(line + "\n")
