"""
Shared fixtures for the CAPTCHA OCR test suite.

The fake session mimics the parts of ``onnxruntime.InferenceSession`` the
solver uses (``get_inputs``, ``get_outputs``, ``run``). Its predictions
depend on image brightness so batch tests can tell items apart:
dark images decode to ``DARK_CODE``, bright images to ``BRIGHT_CODE``.
"""

import json
from types import SimpleNamespace

import cv2
import numpy as np
import pytest

from captcha_ocr.config import reset_config
from captcha_ocr.inference.solver import CaptchaSolver
from captcha_ocr.utils.gpu_utils import ExecutionBackendSelector

CHARS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
HEIGHT, WIDTH = 24, 72

DARK_CODE = "A3B7"
BRIGHT_CODE = "X9Y2"


def one_hot_scores(code, peak=0.95, chars=CHARS):
    """Per-position probability vectors peaking at each character of ``code``."""
    rest = (1.0 - peak) / (len(chars) - 1)
    vectors = []
    for char in code:
        v = np.full((1, len(chars)), rest, dtype=np.float32)
        v[0, chars.index(char)] = peak
        vectors.append(v)
    return vectors


class FakeSession:
    """Stand-in for an ONNX Runtime session with 4 character heads."""

    def __init__(self, predictor=None, num_outputs=4, input_shape=(1, 1, HEIGHT, WIDTH)):
        self.predictor = predictor or self.brightness_predictor
        self.inputs = [SimpleNamespace(name="input", shape=list(input_shape))]
        self.outputs = [SimpleNamespace(name=f"char_{i}") for i in range(num_outputs)]
        self.calls = []

    @staticmethod
    def brightness_predictor(tensor):
        code = DARK_CODE if float(tensor.mean()) < 0 else BRIGHT_CODE
        return one_hot_scores(code)

    def get_inputs(self):
        return self.inputs

    def get_outputs(self):
        return self.outputs

    def get_providers(self):
        return ["CPUExecutionProvider"]

    def run(self, output_names, feed):
        tensor = feed[self.inputs[0].name]
        self.calls.append(tensor.shape)
        vectors = self.predictor(tensor)
        by_name = {o.name: v for o, v in zip(self.outputs, vectors)}
        return [by_name[name] for name in output_names]


def encode_image(array, ext=".png"):
    ok, buf = cv2.imencode(ext, array)
    assert ok
    return buf.tobytes()


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Keep the configuration singleton and CAPTCHA_* env vars isolated per test."""
    import os
    for key in list(os.environ):
        if key.startswith("CAPTCHA_"):
            monkeypatch.delenv(key, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def metadata_dict():
    return {
        "input_shape": [1, 1, HEIGHT, WIDTH],
        "chars": CHARS,
        "idx_to_char": {str(i): c for i, c in enumerate(CHARS)},
        "normalization": {"mean": [0.5], "std": [0.5]},
    }


@pytest.fixture
def metadata_file(tmp_path, metadata_dict):
    path = tmp_path / "captcha_model_metadata.json"
    path.write_text(json.dumps(metadata_dict))
    return path


@pytest.fixture
def model_file(tmp_path):
    path = tmp_path / "captcha_model.onnx"
    path.write_bytes(b"fake-onnx")
    return path


@pytest.fixture
def dark_png():
    return encode_image(np.full((50, 200), 20, dtype=np.uint8))


@pytest.fixture
def bright_png():
    return encode_image(np.full((50, 200), 235, dtype=np.uint8))


@pytest.fixture
def corrupt_bytes():
    return b"\x89PNG\r\n\x1a\nthis is not really a png"


@pytest.fixture
def fake_session():
    return FakeSession()


def make_selector(session=None, use_gpu=False, available=("CPUExecutionProvider",), preference=None):
    """Selector whose session factory returns ``session`` without touching ONNX Runtime."""
    session = session or FakeSession()
    return ExecutionBackendSelector(
        use_gpu=use_gpu,
        preference=preference,
        session_factory=lambda path, providers, settings: session,
        available_providers=lambda: list(available),
    )


@pytest.fixture
def ready_solver(fake_session, model_file, metadata_file):
    """Initialized solver backed by the fake session."""
    solver = CaptchaSolver(selector=make_selector(fake_session), batch_workers=4)
    solver.initialize(model_file, metadata_file)
    yield solver
    solver.close()


@pytest.fixture
def selector_factory():
    return make_selector


@pytest.fixture
def session_factory():
    return FakeSession


@pytest.fixture
def scores_factory():
    return one_hot_scores
