# src/mlcore/inference/interpreter.py
"""
PyTorch Model Interpreter

Features:
1. TorchScript ("graph") artifacts with pickled nn.Module ("layered") fallback
2. Device negotiation with CPU thread configuration
3. Optional dynamic int8 quantization on CPU
4. Forward passes offloaded to a worker thread
5. Native tensor tracking so every call releases what it allocated
"""

import asyncio
import inspect
import io
import logging
import threading
import traceback
from dataclasses import replace
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import numpy as np
import torch
import torch.nn as nn
from PIL import Image

from ..config.base_config import DataType, DeviceType, ModelFormat
from ..config.inference_config import PreprocessConfig, TensorLayout
from ..config.model_config import ModelConfig
from ..core.results import ParsedOutput, RawOutputs
from ..core.tensor import ImageData, Tensor, TensorShape
from ..core.types import ModelMetadata
from ..exceptions import ModelLoadError, ModelStateError
from .device import to_torch_device
from .model import Model
from .tensor_utils import from_image_element

logger = logging.getLogger(__name__)

ArtifactLoader = Callable[[str], Union[bytes, str]]
OutputParser = Callable[[Dict[str, Tensor]], ParsedOutput]

DEFAULT_NHWC_SHAPE = (1, 224, 224, 3)
DEFAULT_NCHW_SHAPE = (1, 3, 224, 224)

# Backend dtypes without a Tensor DataType counterpart
_OUTPUT_DTYPES = {
    torch.float16: torch.float32,
    torch.bfloat16: torch.float32,
    torch.float64: torch.float32,
    torch.int64: torch.int32,
    torch.int16: torch.int32,
    torch.bool: torch.uint8,
}

_live_lock = threading.Lock()
_live_tensors = 0


def live_tensor_count() -> int:
    """Number of native tensors currently held by release scopes."""
    with _live_lock:
        return _live_tensors


def _clear_frames(error: BaseException):
    """Drop the locals of the finished frames an exception's traceback pins."""
    traceback.clear_frames(error.__traceback__)


class ReleaseScope:
    """
    Tracks native tensors created during one backend call.

    Every tracked tensor is dropped when the scope exits, whether the call
    succeeded or raised.
    """

    def __init__(self):
        self._tensors: List[torch.Tensor] = []

    def track(self, tensor: torch.Tensor) -> torch.Tensor:
        global _live_tensors
        self._tensors.append(tensor)
        with _live_lock:
            _live_tensors += 1
        return tensor

    def release(self):
        global _live_tensors
        released = len(self._tensors)
        self._tensors.clear()
        with _live_lock:
            _live_tensors -= released

    def __enter__(self) -> 'ReleaseScope':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False


class TorchInterpreter(Model):
    """
    Concrete Model running on PyTorch.

    Inputs may be a Tensor, a dict of named Tensors, a torch.Tensor, or a
    pixel source (numpy image array, PIL image, ImageData) converted with the
    interpreter's PreprocessConfig.
    """

    def __init__(self,
                 config: ModelConfig,
                 module: Optional[nn.Module] = None,
                 parser: Optional[OutputParser] = None,
                 preprocess_config: Optional[PreprocessConfig] = None,
                 loader: Optional[ArtifactLoader] = None,
                 executor: Optional[ThreadPoolExecutor] = None):
        """
        Initialize interpreter.

        Args:
            config: Model configuration
            module: Optional in-memory module used instead of model_path
            parser: Turns output tensors into a parsed result (default RawOutputs)
            preprocess_config: Conversion applied to pixel source inputs
            loader: Resolves model_path to artifact bytes or a local path
            executor: Thread pool for backend calls; one is created if omitted
        """
        super().__init__(config)
        self.parser = parser
        self.preprocess_config = preprocess_config or PreprocessConfig()
        self.loader = loader

        self._injected_module = module
        self._cached_module: Optional[nn.Module] = None
        self._module: Optional[nn.Module] = None
        self._kind: Optional[str] = None
        self._torch_device = torch.device("cpu")

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"mlcore-{config.display_name}"
        )

        self.input_names: List[str] = []
        self.output_names: List[str] = []

    @property
    def kind(self) -> Optional[str]:
        """'graph' for TorchScript modules, 'layered' for eager modules."""
        return self._kind

    async def _load_model_impl(self):
        device = self._resolve_device()
        self._torch_device = to_torch_device(device)

        if device == DeviceType.CPU:
            torch.set_num_threads(self.config.num_threads)
        logger.info(f"Torch backend device: {self._torch_device}")

        if self._injected_module is not None:
            module = self._injected_module
        elif self._cached_module is not None:
            module = self._cached_module
        else:
            loop = asyncio.get_running_loop()
            module = await loop.run_in_executor(self._executor, self._read_artifact)
            if self.config.cache_model:
                self._cached_module = module

        self._kind = "graph" if isinstance(module, torch.jit.ScriptModule) else "layered"
        module = module.to(self._torch_device)
        module.eval()

        if self.config.enable_quantization:
            module = self._quantize(module, device)

        self._module = module
        self.input_names = self._discover_input_names(module)

        input_shapes = {
            name: TensorShape(tuple(-1 if d is None else d for d in dims))
            for name, dims in (self.config.input_shapes or {}).items()
        }
        self._metadata = ModelMetadata(
            name=self.config.display_name,
            version=self.config.version or "1.0",
            input_shapes=input_shapes,
            input_names=list(self.input_names),
            labels=list(self.config.labels) if self.config.labels else None,
        )

        logger.debug(f"Loaded {self._kind} module with inputs {self.input_names}")

    def _read_artifact(self) -> nn.Module:
        """Fetch and deserialize the artifact (runs in the worker thread)."""
        if self.config.format == ModelFormat.ONNX:
            raise ModelLoadError(
                f"ONNX artifacts are not supported by the torch backend: {self.config.model_path}"
            )
        if not self.config.model_path and self.loader is None:
            raise ModelLoadError("No model_path configured and no module injected")

        try:
            source = self.loader(self.config.model_path) if self.loader else self.config.model_path
        except Exception as e:
            raise ModelLoadError(f"Loader failed for {self.config.model_path}: {e}") from e

        def open_source():
            return io.BytesIO(source) if isinstance(source, (bytes, bytearray)) else source

        errors = {}

        if self.config.format != ModelFormat.TORCH:
            try:
                module = torch.jit.load(open_source(), map_location=self._torch_device)
                logger.info("Loaded artifact as TorchScript graph")
                return module
            except Exception as e:
                errors['graph'] = e

        try:
            module = torch.load(open_source(), map_location=self._torch_device, weights_only=False)
        except Exception as e:
            errors['layered'] = e
        else:
            if isinstance(module, nn.Module):
                logger.info("Loaded artifact as layered module")
                return module
            errors['layered'] = TypeError(f"artifact holds {type(module).__name__}, not nn.Module")

        raise ModelLoadError(
            f"Could not load model from {self.config.model_path}",
            details={kind: str(error) for kind, error in errors.items()}
        )

    def _quantize(self, module: nn.Module, device: DeviceType) -> nn.Module:
        if device != DeviceType.CPU:
            logger.warning("Dynamic quantization is only applied on cpu, skipping")
            return module
        if self._kind == "graph":
            logger.warning("Dynamic quantization is not supported for TorchScript graphs, skipping")
            return module

        logger.info("Applying dynamic int8 quantization")
        return torch.ao.quantization.quantize_dynamic(module, {nn.Linear}, dtype=torch.qint8)

    @staticmethod
    def _discover_input_names(module: nn.Module) -> List[str]:
        """Input names from the TorchScript schema or the forward signature."""
        names = []
        try:
            if isinstance(module, torch.jit.ScriptModule):
                names = [arg.name for arg in module.forward.schema.arguments[1:]]
            else:
                params = inspect.signature(module.forward).parameters.values()
                names = [p.name for p in params
                         if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)]
        except (AttributeError, TypeError, ValueError, RuntimeError):
            pass
        return names or ["input_0"]

    async def _run_inference_impl(self, inputs: Dict[str, Tensor]) -> Dict[str, Tensor]:
        loop = asyncio.get_running_loop()
        outputs = await loop.run_in_executor(self._executor, self._forward, inputs)
        if self._metadata is not None and not self._metadata.output_shapes:
            self._record_outputs({name: tensor.shape for name, tensor in outputs.items()})
        return outputs

    def _forward(self, inputs: Dict[str, Tensor]) -> Dict[str, Tensor]:
        """Run the module on named inputs (worker thread)."""
        module = self._module
        if module is None:
            raise ModelStateError("Interpreter has no loaded module", state=self.state)

        # The scope and these locals are the only holders of native tensors
        args = raw = native = None
        try:
            with ReleaseScope() as scope:
                args = [scope.track(self._to_native(tensor)) for tensor in inputs.values()]

                with torch.inference_mode():
                    raw = module(*args)

                outputs = {}
                for name, native in self._flatten_outputs(raw):
                    scope.track(native)
                    outputs[name] = self._from_native(native, name)
        except Exception as e:
            _clear_frames(e)
            raise
        finally:
            del args, raw, native

        return outputs

    def _to_native(self, tensor: Tensor) -> torch.Tensor:
        return torch.tensor(tensor.to_numpy(), device=self._torch_device)

    @staticmethod
    def _from_native(native: torch.Tensor, name: str) -> Tensor:
        native = native.detach().cpu()
        if native.dtype in _OUTPUT_DTYPES:
            native = native.to(_OUTPUT_DTYPES[native.dtype])
        array = native.numpy()
        return Tensor(array.reshape(-1).copy(),
                      TensorShape(array.shape, DataType.from_numpy(array.dtype)), name)

    @staticmethod
    def _flatten_outputs(raw: Any) -> List[Tuple[str, torch.Tensor]]:
        """Name forward outputs: dict keys, or output_{i} in order."""
        if isinstance(raw, torch.Tensor):
            return [("output_0", raw)]
        if isinstance(raw, dict):
            items = [(str(k), v) for k, v in raw.items()]
        elif isinstance(raw, (tuple, list)):
            items = [(f"output_{i}", v) for i, v in enumerate(raw)]
        else:
            raise TypeError(f"Unsupported model output type: {type(raw).__name__}")

        for name, value in items:
            if not isinstance(value, torch.Tensor):
                raise TypeError(f"Output '{name}' is {type(value).__name__}, not a tensor")
        return items

    def preprocess(self, input: Any) -> Dict[str, Tensor]:
        if isinstance(input, dict):
            return dict(input)

        if isinstance(input, Tensor):
            tensor = input
        elif isinstance(input, torch.Tensor):
            array = input.detach().cpu()
            if array.dtype in _OUTPUT_DTYPES:
                array = array.to(_OUTPUT_DTYPES[array.dtype])
            tensor = Tensor.from_numpy(array.numpy())
        elif isinstance(input, (np.ndarray, Image.Image, ImageData)):
            tensor = from_image_element(input, self.preprocess_config)
        else:
            raise TypeError(f"Unsupported input type: {type(input).__name__}")

        name = self.input_names[0] if self.input_names else "input"
        return {name: tensor.with_name(name)}

    def postprocess(self, outputs: Dict[str, Tensor]) -> ParsedOutput:
        if self.parser is not None:
            return self.parser(outputs)
        return RawOutputs(tuple(outputs.values()))

    async def _warmup(self):
        loop = asyncio.get_running_loop()
        shapes = await loop.run_in_executor(self._executor, self._warmup_pass, self._warmup_shape())
        if shapes:
            self._record_outputs(shapes)

    def _record_outputs(self, shapes: Dict[str, TensorShape]):
        self.output_names = list(shapes)
        if self._metadata is not None:
            self._metadata = replace(self._metadata, output_shapes=dict(shapes),
                                     output_names=list(shapes))

    def _warmup_shape(self) -> Tuple[int, ...]:
        """First declared input shape with dynamic dims set to 1."""
        if self.config.input_shapes:
            dims = next(iter(self.config.input_shapes.values()))
            return tuple(1 if d is None or d == -1 else int(d) for d in dims)
        if self.preprocess_config.layout == TensorLayout.NCHW:
            return DEFAULT_NCHW_SHAPE
        return DEFAULT_NHWC_SHAPE

    def _warmup_pass(self, shape: Tuple[int, ...]) -> Dict[str, TensorShape]:
        """One forward pass on zeros; returns the output shapes (worker thread)."""
        if self._module is None:
            return {}

        dummy = raw = native = None
        try:
            with ReleaseScope() as scope:
                dummy = scope.track(torch.zeros(shape, device=self._torch_device))
                with torch.inference_mode():
                    raw = self._module(dummy)
                shapes = {}
                for name, native in self._flatten_outputs(raw):
                    scope.track(native)
                    shapes[name] = self._from_native(native, name).shape
        except Exception as e:
            _clear_frames(e)
            raise
        finally:
            del dummy, raw, native
        return shapes

    def get_memory_usage(self) -> float:
        if self._module is None:
            return 0.0
        if self.device == DeviceType.ACCELERATED:
            return torch.cuda.memory_allocated() / 1024**2

        total = sum(p.numel() * p.element_size() for p in self._module.parameters())
        total += sum(b.numel() * b.element_size() for b in self._module.buffers())
        return total / 1024**2

    def _dispose_impl(self):
        self._module = None
        self._cached_module = None
        self._injected_module = None
        if self.device == DeviceType.ACCELERATED:
            torch.cuda.empty_cache()
        if self._owns_executor:
            self._executor.shutdown(wait=False)

    def get_raw_model(self) -> Optional[nn.Module]:
        """Loaded backend module for advanced use."""
        return self._module
