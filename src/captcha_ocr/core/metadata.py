"""
Model Metadata Loader
=====================

Parses the JSON document shipped next to the ONNX model::

    {
        "input_shape": [1, 1, 50, 200],
        "chars": "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ",
        "idx_to_char": {"0": "0", "1": "1", ...},
        "normalization": {"mean": [0.5], "std": [0.5]}
    }

Only the first element of ``normalization.mean`` / ``normalization.std`` is
used; the same scalar is applied to every pixel.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Mapping, Tuple, Union

from .errors import MetadataError

logger = logging.getLogger(__name__)

# Number of characters in every CAPTCHA code
CODE_LENGTH = 4


@dataclass(frozen=True)
class ModelMetadata:
    """Immutable model configuration: input geometry, charset, normalization."""

    input_shape: Tuple[int, ...]
    chars: str
    idx_to_char: Dict[int, str]
    mean: float
    std: float
    charset: FrozenSet[str] = field(init=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, 'charset', frozenset(self.chars))

    @property
    def height(self) -> int:
        return self.input_shape[-2]

    @property
    def width(self) -> int:
        return self.input_shape[-1]

    @property
    def num_classes(self) -> int:
        return len(self.idx_to_char)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], source: str = "<dict>") -> 'ModelMetadata':
        """
        Build metadata from a parsed JSON document.

        Args:
            data: Parsed metadata mapping
            source: Origin of the document, used in error messages

        Returns:
            ModelMetadata instance

        Raises:
            MetadataError: If a required field is missing or malformed
        """
        if not isinstance(data, Mapping):
            raise MetadataError("document must be a JSON object", path=source)

        input_shape = _parse_input_shape(data.get('input_shape'), source)

        chars = data.get('chars')
        if not isinstance(chars, str) or not chars:
            raise MetadataError("'chars' must be a non-empty string", path=source, field='chars')

        idx_to_char = _parse_idx_to_char(data.get('idx_to_char'), source)

        normalization = data.get('normalization')
        if not isinstance(normalization, Mapping):
            raise MetadataError("'normalization' section is missing", path=source, field='normalization')
        mean = _first_scalar(normalization.get('mean'), 'normalization.mean', source)
        std = _first_scalar(normalization.get('std'), 'normalization.std', source)
        if std == 0:
            raise MetadataError("'normalization.std' must be non-zero", path=source, field='normalization.std')

        return cls(
            input_shape=input_shape,
            chars=chars,
            idx_to_char=idx_to_char,
            mean=mean,
            std=std,
        )


def load_metadata(path: Union[str, Path]) -> ModelMetadata:
    """
    Load and validate model metadata from a JSON file.

    Raises:
        MetadataError: If the file is missing, unreadable or malformed
    """
    path = Path(path)
    if not path.exists():
        raise MetadataError(f"metadata file not found: {path}", path=str(path))

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise MetadataError(f"cannot read metadata: {e}", path=str(path)) from e

    metadata = ModelMetadata.from_dict(data, source=str(path))
    logger.info(
        f"Loaded metadata: shape={list(metadata.input_shape)}, "
        f"charset={len(metadata.charset)} chars, classes={metadata.num_classes}"
    )
    return metadata


def _parse_input_shape(value: Any, source: str) -> Tuple[int, ...]:
    if not isinstance(value, (list, tuple)):
        raise MetadataError("'input_shape' must be a list", path=source, field='input_shape')
    if len(value) not in (3, 4):
        raise MetadataError(
            f"Unexpected input_shape length: {len(value)}", path=source, field='input_shape'
        )
    try:
        shape = tuple(int(v) for v in value)
    except (TypeError, ValueError) as e:
        raise MetadataError(f"'input_shape' must contain integers: {value}", path=source, field='input_shape') from e
    if shape[-1] <= 0 or shape[-2] <= 0:
        raise MetadataError(f"input height/width must be positive: {list(shape)}", path=source, field='input_shape')
    return shape


def _parse_idx_to_char(value: Any, source: str) -> Dict[int, str]:
    if not isinstance(value, Mapping) or not value:
        raise MetadataError("'idx_to_char' must be a non-empty object", path=source, field='idx_to_char')
    mapping = {}
    for key, char in value.items():
        try:
            idx = int(key)
        except (TypeError, ValueError) as e:
            raise MetadataError(f"invalid class index: {key!r}", path=source, field='idx_to_char') from e
        if not isinstance(char, str) or len(char) != 1:
            raise MetadataError(f"class {key} must map to a single character", path=source, field='idx_to_char')
        mapping[idx] = char
    return mapping


def _first_scalar(value: Any, name: str, source: str) -> float:
    if isinstance(value, (list, tuple)):
        if not value:
            raise MetadataError(f"'{name}' is empty", path=source, field=name)
        value = value[0]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MetadataError(f"'{name}' is missing or not numeric", path=source, field=name)
    return float(value)
