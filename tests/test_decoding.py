"""
Tests for CAPTCHA Decoding and Validation
=========================================
"""

import numpy as np
import pytest

from captcha_ocr.core import CaptchaDecoder, ModelMetadata, is_valid_code, softmax


@pytest.fixture
def decoder(metadata_dict):
    return CaptchaDecoder(ModelMetadata.from_dict(metadata_dict))


class TestCaptchaDecoder:
    """Tests for per-position argmax decoding."""

    def test_decodes_code(self, decoder, scores_factory):
        decoded = decoder.decode(scores_factory("A3B7"))
        assert decoded.code == "A3B7"
        assert decoded.confidence == pytest.approx(0.95, abs=1e-6)

    def test_confidence_is_mean_of_maxima(self, decoder, scores_factory):
        outputs = [
            scores_factory("A", peak=0.9)[0],
            scores_factory("B", peak=0.8)[0],
            scores_factory("C", peak=0.7)[0],
            scores_factory("D", peak=0.6)[0],
        ]
        decoded = decoder.decode(outputs)
        assert decoded.code == "ABCD"
        assert decoded.confidence == pytest.approx(0.75, abs=1e-6)

    def test_ties_resolve_to_first_index(self, decoder):
        v = np.zeros(36, dtype=np.float32)
        v[5] = 0.5
        v[20] = 0.5
        decoded = decoder.decode([v, v, v, v])
        assert decoded.code == "5555"
        assert decoded.confidence == pytest.approx(0.5)

    def test_logits_are_softmaxed(self, decoder):
        """Raw logits decode to the same code with confidence in [0, 1]."""
        logits = np.full(36, -2.0, dtype=np.float32)
        logits[12] = 6.0  # 'C'
        decoded = decoder.decode([logits] * 4)
        assert decoded.code == "CCCC"
        assert 0.0 <= decoded.confidence <= 1.0
        assert decoded.confidence == pytest.approx(float(softmax(logits.astype(np.float64))[12]))

    def test_in_range_scores_used_as_is(self, decoder):
        """Scores in [0, 1] that do not sum to 1 (sigmoid heads) keep their values."""
        outputs = []
        for idx, peak in zip((10, 3, 11, 7), (0.9, 0.8, 0.9, 0.8)):
            v = np.zeros(36, dtype=np.float32)
            v[idx] = peak
            outputs.append(v)

        decoded = decoder.decode(outputs)
        assert decoded.code == "A3B7"
        assert decoded.confidence == pytest.approx(0.85, abs=1e-6)

    def test_nearly_normalized_scores_used_as_is(self, decoder):
        """A reduced-precision distribution summing to 0.998 is not re-softmaxed."""
        v = np.full(36, 0.05 / 35, dtype=np.float32)
        v[12] = 0.948  # 'C'
        assert abs(float(v.sum()) - 1.0) > 1e-3

        decoded = decoder.decode([v] * 4)
        assert decoded.code == "CCCC"
        assert decoded.confidence == pytest.approx(0.948, abs=1e-6)

    def test_out_of_charset_character_rejected(self, metadata_dict, scores_factory):
        metadata_dict["idx_to_char"]["10"] = "?"
        decoder = CaptchaDecoder(ModelMetadata.from_dict(metadata_dict))
        assert decoder.decode(scores_factory("A3B7")) is None

    def test_unmapped_index_rejected(self, metadata_dict):
        v = np.zeros(40, dtype=np.float32)
        v[38] = 1.0  # beyond idx_to_char
        decoder = CaptchaDecoder(ModelMetadata.from_dict(metadata_dict))
        assert decoder.decode([v] * 4) is None

    @pytest.mark.parametrize("count", [0, 3, 5])
    def test_wrong_number_of_positions(self, decoder, scores_factory, count):
        outputs = (scores_factory("A3B7") * 2)[:count]
        assert decoder.decode(outputs) is None

    def test_high_scores_do_not_rescue_invalid_candidate(self, metadata_dict, scores_factory):
        metadata_dict["idx_to_char"]["3"] = "*"
        decoder = CaptchaDecoder(ModelMetadata.from_dict(metadata_dict))
        assert decoder.decode(scores_factory("A3B7", peak=0.999)) is None

    def test_nan_scores_rejected(self, decoder):
        v = np.full(36, np.nan, dtype=np.float32)
        assert decoder.decode([v] * 4) is None


class TestValidation:

    @pytest.mark.parametrize("code,valid", [
        ("A3B7", True),
        ("A3B", False),
        ("A3B7C", False),
        ("a3b7", False),
        ("", False),
    ])
    def test_is_valid_code(self, code, valid):
        assert is_valid_code(code, frozenset("0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ")) is valid

    def test_softmax_sums_to_one(self):
        x = np.array([[1.0, 2.0, 3.0]])
        result = softmax(x)
        assert result.shape == x.shape
        assert np.isclose(result.sum(), 1.0)
