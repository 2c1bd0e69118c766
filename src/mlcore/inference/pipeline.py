# src/mlcore/inference/pipeline.py
"""
Model Pipelines

Features:
1. Ordered stages, each feeding its parsed output to the next
2. Per-stage conditions (skip) and input transforms
3. Parallel loading of stage models
4. Concurrent batch runs with input order preserved
5. Fluent PipelineBuilder
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..core.types import InferenceResult, ModelState
from .model import Model

logger = logging.getLogger(__name__)


@dataclass
class PipelineStage:
    """One model step of a pipeline."""
    name: str
    model: Model
    transform: Optional[Callable[[Any], Any]] = None
    condition: Optional[Callable[[Any], bool]] = None

    @property
    def result_type(self) -> Optional[type]:
        """Parsed variant the stage produces, when its model declares one."""
        parser = getattr(self.model, 'parser', None)
        return getattr(parser, 'result_type', None)


@dataclass
class PipelineResult:
    """Outcome of one pipeline run."""
    outputs: Dict[str, Any] = field(default_factory=dict)
    stage_results: Dict[str, InferenceResult] = field(default_factory=dict)
    total_time_ms: float = 0.0
    stages_executed: List[str] = field(default_factory=list)


class Pipeline:
    """
    Chains models into a sequence of stages.

    The pipeline owns its stages: dispose_all() disposes every stage model.
    """

    def __init__(self, name: str):
        self.name = name
        self.stages: List[PipelineStage] = []

    def add_stage(self, stage: PipelineStage) -> 'Pipeline':
        """Append a stage; names must be unique within the pipeline."""
        if any(existing.name == stage.name for existing in self.stages):
            raise ValueError(f"Pipeline '{self.name}' already has a stage named '{stage.name}'")
        self.stages.append(stage)
        return self

    def remove_stage(self, name: str) -> bool:
        """Remove a stage by name; False when no such stage exists."""
        for index, stage in enumerate(self.stages):
            if stage.name == name:
                del self.stages[index]
                return True
        return False

    async def load_all(self):
        """Load every stage model that is not ready, in parallel."""
        logger.info(f"Loading pipeline: {self.name}")
        await asyncio.gather(*(
            stage.model.load() for stage in self.stages
            if stage.model.state != ModelState.READY
        ))
        logger.info(f"Pipeline ready: {self.name}")

    async def run(self, input: Any) -> PipelineResult:
        """
        Run stages in order on one input.

        A stage whose condition rejects the current value is skipped and not
        timed. Otherwise its transform (if any) builds the model input and the
        parsed prediction becomes the current value.
        """
        start_time = time.perf_counter()
        result = PipelineResult()
        current = input

        for stage in list(self.stages):
            if stage.condition is not None and not stage.condition(current):
                logger.debug(f"Skipping stage: {stage.name} (condition not met)")
                continue

            stage_input = stage.transform(current) if stage.transform is not None else current

            logger.debug(f"Running stage: {stage.name}")
            stage_result = await stage.model.predict(stage_input)

            result.stage_results[stage.name] = stage_result
            result.stages_executed.append(stage.name)
            result.outputs[stage.name] = stage_result.parsed
            current = stage_result.parsed

        result.total_time_ms = (time.perf_counter() - start_time) * 1000
        return result

    async def run_batch(self, inputs: List[Any]) -> List[PipelineResult]:
        """Run each input through the pipeline concurrently; results keep input order."""
        return list(await asyncio.gather(*(self.run(item) for item in inputs)))

    def dispose_all(self):
        """Dispose every stage model and clear the stage list."""
        for stage in self.stages:
            stage.model.dispose()
        self.stages = []
        logger.info(f"Pipeline disposed: {self.name}")

    def get_info(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'stages': [stage.name for stage in self.stages],
            'total_stages': len(self.stages),
        }


class PipelineBuilder:
    """Fluent construction of pipelines."""

    def __init__(self, name: str):
        self._pipeline = Pipeline(name)

    def detect(self, name: str, model: Model) -> 'PipelineBuilder':
        """Add an unconditional stage."""
        self._pipeline.add_stage(PipelineStage(name=name, model=model))
        return self

    def when(self, condition: Callable[[Any], bool], name: str, model: Model) -> 'PipelineBuilder':
        """Add a stage that only runs when condition(current) is true."""
        self._pipeline.add_stage(PipelineStage(name=name, model=model, condition=condition))
        return self

    def transform(self, name: str, model: Model,
                  transform: Callable[[Any], Any]) -> 'PipelineBuilder':
        """Add a stage whose input is transform(current)."""
        self._pipeline.add_stage(PipelineStage(name=name, model=model, transform=transform))
        return self

    def build(self) -> Pipeline:
        return self._pipeline
