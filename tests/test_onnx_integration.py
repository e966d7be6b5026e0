"""
End-to-end test with a real ONNX Runtime session
================================================

Builds a tiny constant-output classifier with ``onnx.helper``: each of the
4 heads returns a fixed probability vector (plus ``0 * mean(input)`` so the
input stays connected to the graph). Runs on the CPU provider only.
"""

import numpy as np
import pytest

onnx = pytest.importorskip("onnx")
pytest.importorskip("onnxruntime")

from onnx import TensorProto, helper  # noqa: E402

from captcha_ocr.inference import CaptchaSolver  # noqa: E402

CHARS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
HEIGHT, WIDTH = 24, 72


def build_constant_model(path, code, peak=0.97):
    num_classes = len(CHARS)
    rest = (1.0 - peak) / (num_classes - 1)

    initializers = [helper.make_tensor("zero", TensorProto.FLOAT, [1], [0.0])]
    nodes = [
        helper.make_node("ReduceMean", ["input"], ["pixel_mean"], axes=[1, 2, 3], keepdims=0),
        helper.make_node("Mul", ["pixel_mean", "zero"], ["bias"]),
    ]
    outputs = []
    for i, char in enumerate(code):
        probs = np.full(num_classes, rest, dtype=np.float32)
        probs[CHARS.index(char)] = peak
        initializers.append(
            helper.make_tensor(f"probs_{i}", TensorProto.FLOAT, [1, num_classes], probs.tolist())
        )
        nodes.append(helper.make_node("Add", [f"probs_{i}", "bias"], [f"char_{i}"]))
        outputs.append(helper.make_tensor_value_info(f"char_{i}", TensorProto.FLOAT, [1, num_classes]))

    graph = helper.make_graph(
        nodes,
        "constant_captcha",
        [helper.make_tensor_value_info("input", TensorProto.FLOAT, [1, 1, HEIGHT, WIDTH])],
        outputs,
        initializer=initializers,
    )
    model = helper.make_model(graph, opset_imports=[helper.make_opsetid("", 13)])
    model.ir_version = 7
    onnx.save(model, str(path))
    return path


class TestRealSession:

    def test_solve_with_onnxruntime(self, tmp_path, metadata_file, dark_png, corrupt_bytes):
        model_path = build_constant_model(tmp_path / "constant.onnx", "A3B7")

        solver = CaptchaSolver(use_gpu=False, batch_workers=2)
        solver.initialize(model_path, metadata_file)
        try:
            status = solver.get_backend_status()
            assert status.provider == "cpu"
            assert status.available is False

            result = solver.solve(dark_png)
            assert result.success is True
            assert result.code == "A3B7"
            assert result.confidence == pytest.approx(0.97, abs=1e-4)

            batch = solver.solve_batch([(dark_png, "a"), (corrupt_bytes, "b")])
            assert [r.success for r in batch] == [True, False]
        finally:
            solver.close()

    def test_too_few_heads_fails_initialization(self, tmp_path, metadata_file):
        from captcha_ocr.core import SolverInitializationError

        model_path = build_constant_model(tmp_path / "three.onnx", "A3B")
        solver = CaptchaSolver(use_gpu=False)
        with pytest.raises(SolverInitializationError):
            solver.initialize(model_path, metadata_file)
