"""
CAPTCHA Decoding and Validation
===============================

Turns the per-position score vectors produced by the classifier into a
candidate code and a confidence score, then validates the candidate
against the model charset.

For each of the 4 positions the index of the highest score is selected
(ties resolve to the first occurrence) and mapped through ``idx_to_char``.
Confidence is the mean of the four selected scores as the model emitted
them. Heads whose scores all lie in [0, 1] (softmax or sigmoid outputs,
including reduced-precision exports that do not sum to exactly 1) are used
as-is; only vectors with a score outside [0, 1] (raw logits) go through
softmax first. The selected index is the same either way.
"""

import logging
from typing import Optional, Sequence

import numpy as np

from .metadata import CODE_LENGTH, ModelMetadata
from .results import DecodedCode

logger = logging.getLogger(__name__)


def softmax(x: np.ndarray) -> np.ndarray:
    """Compute softmax along the last axis."""
    exp_x = np.exp(x - np.max(x, axis=-1, keepdims=True))
    return exp_x / np.sum(exp_x, axis=-1, keepdims=True)


def as_probabilities(scores: np.ndarray) -> np.ndarray:
    """Return ``scores`` unchanged if every score is in [0, 1], else its softmax."""
    scores = np.asarray(scores, dtype=np.float64).reshape(-1)
    if np.all((scores >= 0.0) & (scores <= 1.0)):
        return scores
    return softmax(scores)


def is_valid_code(code: str, charset) -> bool:
    """A code is valid iff it has exactly 4 characters, all in the charset."""
    return len(code) == CODE_LENGTH and all(c in charset for c in code)


class CaptchaDecoder:
    """
    Per-position argmax decoder with charset validation.

    Example:
        decoder = CaptchaDecoder(metadata)
        decoded = decoder.decode(outputs)
        if decoded is not None:
            print(decoded.code, decoded.confidence)
    """

    def __init__(self, metadata: ModelMetadata):
        self.idx_to_char = metadata.idx_to_char
        self.charset = metadata.charset

    def decode(self, outputs: Sequence[np.ndarray]) -> Optional[DecodedCode]:
        """
        Decode classifier outputs.

        Args:
            outputs: One score vector per code position

        Returns:
            DecodedCode for a valid candidate, None otherwise
        """
        if len(outputs) != CODE_LENGTH:
            logger.warning(f"Expected {CODE_LENGTH} output vectors, got {len(outputs)}")
            return None

        chars = []
        scores = []
        for position, vector in enumerate(outputs):
            probs = as_probabilities(vector)
            if probs.size == 0:
                logger.warning(f"Empty score vector at position {position}")
                return None

            max_idx = int(np.argmax(probs))
            char = self.idx_to_char.get(max_idx)
            if char is None:
                logger.warning(f"Class index {max_idx} at position {position} has no character mapping")
                return None

            chars.append(char)
            scores.append(float(probs[max_idx]))

        code = ''.join(chars)
        if not is_valid_code(code, self.charset):
            return None

        confidence = float(np.mean(scores))
        if not np.isfinite(confidence):
            return None

        return DecodedCode(code=code, confidence=confidence)
