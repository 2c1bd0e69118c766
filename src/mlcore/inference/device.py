# src/mlcore/inference/device.py
"""
Compute device negotiation.

AUTO picks the best available backend in the order
ACCELERATED (CUDA) -> GPU (Apple MPS) -> CPU. An explicitly requested
device that is not available falls back to CPU with a warning.
"""

import logging

import torch

from ..config.base_config import DeviceType

logger = logging.getLogger(__name__)


def is_available(device: DeviceType) -> bool:
    """Whether the torch backend for device can be used in this process."""
    if device == DeviceType.CPU:
        return True
    if device == DeviceType.ACCELERATED:
        return torch.cuda.is_available()
    if device == DeviceType.GPU:
        mps = getattr(torch.backends, 'mps', None)
        return bool(mps is not None and mps.is_available())
    return False


def resolve_device(requested: DeviceType) -> DeviceType:
    """
    Resolve a requested device to a concrete, available one.

    Args:
        requested: Device from the model configuration

    Returns:
        CPU, GPU or ACCELERATED; never AUTO
    """
    if requested == DeviceType.AUTO:
        for candidate in (DeviceType.ACCELERATED, DeviceType.GPU):
            if is_available(candidate):
                logger.info(f"Auto-selected {candidate.value} device")
                return candidate
        logger.info("No GPU backend available, using cpu")
        return DeviceType.CPU

    if not is_available(requested):
        logger.warning(f"Requested device '{requested.value}' is not available, falling back to cpu")
        return DeviceType.CPU

    return requested


def to_torch_device(device: DeviceType) -> torch.device:
    """Map a resolved DeviceType onto a torch.device."""
    if device == DeviceType.ACCELERATED:
        return torch.device("cuda")
    if device == DeviceType.GPU:
        return torch.device("mps")
    if device == DeviceType.CPU:
        return torch.device("cpu")
    raise ValueError(f"Device must be resolved before use, got {device.value}")
