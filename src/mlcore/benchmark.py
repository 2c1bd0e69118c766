#!/usr/bin/env python3
"""
Latency benchmark for mlcore models.
Loads a model, runs predictions on random frames and reports timing and memory.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np
import psutil
from tqdm import tqdm

from .config import DeviceType, ModelConfig, PreprocessConfig, TensorLayout
from .inference.interpreter import TorchInterpreter
from .inference.model import Model
from .utils.logging import setup_global_logger
from .utils.metrics import PerformanceTracker


async def run_benchmark(model: Model,
                        iterations: int = 100,
                        frame_size: Tuple[int, int] = (224, 224),
                        seed: int = 0,
                        progress: bool = True) -> Dict[str, Any]:
    """
    Run predictions on random RGB frames with a loaded model.

    Args:
        model: Model in the ready state
        iterations: Number of predictions
        frame_size: (width, height) of the random frames
        seed: Seed for frame generation
        progress: Show a tqdm progress bar

    Returns:
        Inference and end-to-end latency summaries plus model metrics
    """
    if iterations <= 0:
        raise ValueError("iterations must be positive")

    rng = np.random.default_rng(seed)
    width, height = frame_size
    frame = rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)

    inference = PerformanceTracker(window_size=iterations)
    end_to_end = PerformanceTracker(window_size=iterations)

    for _ in tqdm(range(iterations), desc='Benchmark', disable=not progress):
        result = await model.predict(frame)
        inference.update(result.inference_time_ms)
        end_to_end.update(result.total_time_ms)

    return {
        'model': model.display_name,
        'device': model.device.value if model.device else None,
        'iterations': iterations,
        'frame_size': [width, height],
        'inference_ms': inference.summary(),
        'total_ms': end_to_end.summary(),
        'metrics': model.get_metrics().to_dict(),
        'process_rss_mb': psutil.Process().memory_info().rss / 1024 / 1024,
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Benchmark mlcore model latency')

    # Model source
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument('--config', type=str,
                        help='Path to a ModelConfig YAML/JSON file')
    source.add_argument('--model-path', type=str,
                        help='Path to a TorchScript or pickled torch model')

    # Benchmark options
    parser.add_argument('--device', type=str, default=None,
                        choices=['cpu', 'gpu', 'accelerated', 'auto'],
                        help='Override the configured device')
    parser.add_argument('--iterations', type=int, default=100,
                        help='Number of predictions to time')
    parser.add_argument('--width', type=int, default=224,
                        help='Frame width')
    parser.add_argument('--height', type=int, default=224,
                        help='Frame height')
    parser.add_argument('--layout', type=str, default='nchw',
                        choices=['nhwc', 'nchw'],
                        help='Input tensor layout expected by the model')
    parser.add_argument('--seed', type=int, default=0,
                        help='Random seed for frames')

    # Output
    parser.add_argument('--output', type=str, default=None,
                        help='Write the JSON report to this file')
    parser.add_argument('--no-progress', action='store_true',
                        help='Disable the progress bar')
    parser.add_argument('--log-level', type=str, default='INFO',
                        help='Console log level')

    return parser


def _load_config(args: argparse.Namespace) -> ModelConfig:
    config = ModelConfig.load(args.config) if args.config else ModelConfig(model_path=args.model_path)
    if args.device:
        config = config.replace(device=DeviceType(args.device))
    return config


async def _benchmark(args: argparse.Namespace) -> Dict[str, Any]:
    config = _load_config(args)
    preprocess = PreprocessConfig(resize=(args.width, args.height),
                                  layout=TensorLayout(args.layout))
    model = TorchInterpreter(config, preprocess_config=preprocess)

    try:
        await model.load()
        return await run_benchmark(
            model,
            iterations=args.iterations,
            frame_size=(args.width, args.height),
            seed=args.seed,
            progress=not args.no_progress,
        )
    finally:
        model.dispose()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Console entry point."""
    args = build_parser().parse_args(argv)
    logger = setup_global_logger(name="mlcore", console_level=args.log_level)

    try:
        report = asyncio.run(_benchmark(args))
    except Exception as e:
        logger.error(f"Benchmark failed: {e}")
        return 1

    text = json.dumps(report, indent=2)
    if args.output:
        output = Path(args.output)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text)
        logger.info(f"Report written to {output}")
    else:
        print(text)

    inference = report['inference_ms']
    logger.info(f"{report['model']}: mean {inference['mean']:.2f} ms, "
                f"p95 {inference['p95']:.2f} ms, {inference['throughput_fps']:.1f} FPS")
    return 0


if __name__ == '__main__':
    sys.exit(main())
