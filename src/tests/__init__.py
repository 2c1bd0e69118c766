#!/usr/bin/env python3
"""
Test suite initialization for mlcore.
This module provides shared fixtures, fake models and a unified test runner.
"""

import asyncio
import inspect

import numpy as np
import torch
import torch.nn as nn

from mlcore.config import ModelConfig
from mlcore.core.results import RawOutputs
from mlcore.core.tensor import Tensor
from mlcore.core.types import ModelMetadata
from mlcore.inference.model import Model
from mlcore.inference.tensor_utils import create_tensor

__version__ = "1.0.0"


def run_test_classes(title, test_classes):
    """
    Run test classes outside pytest.

    Coroutine test methods are driven with asyncio.run; methods that need
    pytest fixtures are skipped.

    Args:
        title: Suite title for the summary
        test_classes: List of (name, class) pairs

    Returns:
        True when every test passed
    """
    print("=" * 80)
    print(f"Running {title} Tests")
    print("=" * 80)

    total_tests = 0
    passed_tests = 0

    for test_name, test_class in test_classes:
        print(f"\nTesting {test_name}:")

        test_methods = [name for name in dir(test_class) if name.startswith('test_')]

        for method_name in test_methods:
            # Fresh instance per test, as pytest does
            test = test_class()
            if hasattr(test, 'setup_method'):
                test.setup_method()

            method = getattr(test, method_name)
            if len(inspect.signature(method).parameters) > 0:
                print(f"  - {method_name} skipped (needs pytest fixtures)")
                continue

            total_tests += 1
            try:
                if inspect.iscoroutinefunction(method):
                    asyncio.run(method())
                else:
                    method()
                print(f"  ✓ {method_name}")
                passed_tests += 1
            except Exception as e:
                print(f"  ✗ {method_name} failed: {e}")
            finally:
                if hasattr(test, 'teardown_method'):
                    test.teardown_method()

    print("\n" + "=" * 80)
    print(f"{title} Tests Summary")
    print("=" * 80)
    print(f"Total tests: {total_tests}")
    print(f"Passed: {passed_tests}")
    print(f"Failed: {total_tests - passed_tests}")

    if passed_tests == total_tests:
        print(f"\n✅ All {title.lower()} tests passed!")
    else:
        print(f"\n❌ {total_tests - passed_tests} tests failed")

    return passed_tests == total_tests


def run_all_tests():
    """Run all test suites."""
    from .test_config import run_config_tests
    from .test_tensor_utils import run_tensor_utils_tests
    from .test_model import run_model_tests
    from .test_interpreter import run_interpreter_tests
    from .test_registry import run_registry_tests
    from .test_vision_request import run_vision_request_tests
    from .test_pipeline import run_pipeline_tests
    from .test_logging import run_logging_tests
    from .test_benchmark import run_benchmark_tests

    print("=" * 80)
    print("COMPREHENSIVE TEST SUITE - MLCORE")
    print("=" * 80)

    for run in (run_config_tests, run_tensor_utils_tests, run_model_tests,
                run_interpreter_tests, run_registry_tests, run_vision_request_tests,
                run_pipeline_tests, run_logging_tests, run_benchmark_tests):
        run()
        print()

    print("=" * 80)
    print("ALL TEST SUITES COMPLETED")
    print("=" * 80)


# Utility functions for testing
def create_test_image(width=64, height=48, channels=3):
    """Create a random uint8 test image."""
    return np.random.randint(0, 255, (height, width, channels), dtype=np.uint8)


def create_detection_tensor(rows, num_classes):
    """Pack detection rows [cx, cy, w, h, obj, scores...] into a [1, N, 5+C] tensor."""
    data = np.asarray(rows, dtype=np.float32).reshape(1, len(rows), 5 + num_classes)
    return Tensor.from_numpy(data)


class FakeModel(Model):
    """
    In-memory Model with call counters.

    Returns the configured outputs (or echoes its input) and records every
    input it receives so tests can follow data through pipelines.
    """

    def __init__(self, config=None, outputs=None, parse=None, load_delay=0.0,
                 fail_load=False, fail_inference=False, memory_mb=1.5):
        super().__init__(config or ModelConfig(model_path="models/fake.pt", warmup_runs=0))
        self.outputs = outputs
        self.parse = parse
        self.load_delay = load_delay
        self.fail_load = fail_load
        self.fail_inference = fail_inference
        self.memory_mb = memory_mb

        self.load_calls = 0
        self.warmup_calls = 0
        self.inference_calls = 0
        self.dispose_calls = 0
        self.received_inputs = []

    async def _load_model_impl(self):
        self.load_calls += 1
        if self.load_delay:
            await asyncio.sleep(self.load_delay)
        if self.fail_load:
            raise RuntimeError("artifact missing")
        self._metadata = ModelMetadata(name=self.config.display_name, version=self.config.version)

    async def _warmup(self):
        self.warmup_calls += 1

    async def _run_inference_impl(self, inputs):
        self.inference_calls += 1
        await asyncio.sleep(0)
        if self.fail_inference:
            raise RuntimeError("backend exploded")
        if self.outputs is not None:
            return dict(self.outputs)
        return {'output_0': next(iter(inputs.values()))}

    def _dispose_impl(self):
        self.dispose_calls += 1

    def get_memory_usage(self):
        return self.memory_mb

    def preprocess(self, input):
        self.received_inputs.append(input)
        if isinstance(input, Tensor):
            return {'input': input}
        return {'input': create_tensor([0.0, 1.0])}

    def postprocess(self, outputs):
        if self.parse is not None:
            return self.parse(outputs)
        return RawOutputs(tuple(outputs.values()))


class TinyNet(nn.Module):
    """Linear 4 -> 3 head with fixed weights."""

    def __init__(self):
        super().__init__()
        self.fc = nn.Linear(4, 3)
        with torch.no_grad():
            self.fc.weight.copy_(torch.arange(12, dtype=torch.float32).reshape(3, 4) / 10)
            self.fc.bias.zero_()

    def forward(self, x):
        return self.fc(x)


class TwoHeadNet(nn.Module):
    """Returns named outputs of mixed dtypes."""

    def forward(self, x):
        return {
            'scores': x.double() * 2,
            'argmax': x.argmax(dim=-1),
            'positive': x > 0,
        }


class FailingNet(nn.Module):
    def forward(self, x):
        raise RuntimeError("forward failed")
