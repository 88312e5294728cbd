"""Two-stage detect -> classify pipeline orchestration.

One pipeline instance owns its backends, its prepared image and its state
machine. Runs are cooperative: each stage awaits its backend call (executed
on a thread pool so the event loop stays free) before the next starts. The
classification stage fans out one call per region and joins on all of them.
"""
from __future__ import annotations

import asyncio
import contextvars
import functools
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, Optional, Sequence

import numpy as np

from ..backends import create_classification_backend, create_detection_backend
from ..backends.base_backend import ClassificationBackend, DetectionBackend
from ..config.settings import Config
from ..core.entities import (
    ClassifiedRegion, DetectionCandidate, DetectionReport, Orientation,
    PreparedImage, ScoredBox
)
from ..core.exceptions import (
    ApplicationError, ClassificationExecutionFailure, DetectionExecutionFailure,
    ImagePreparationError, ModelError, PipelineStateError
)
from ..core.logging_config import CorrelationContext
from ..core.pipeline_state import PipelineState, PipelineStateMachine, StateListener
from ..utils.geometry import normalized_to_pixel
from ..utils.image_utils import ImageFile
from .box_decoder import BoxDecoder
from .classifier import Classifier
from .image_preparation import ImagePreparer
from .model_loader import ModelLoader
from .region_extractor import RegionExtractor

logger = logging.getLogger(__name__)


class InferencePipeline:
    """Detect fish in a prepared image and label every box.

    Typical use::

        pipeline = InferencePipeline.from_config(config)
        await pipeline.load_models(progress_callback=print)
        await pipeline.warm_up()
        pipeline.prepare_image("photo.jpg")
        report = await pipeline.run_detection()
        pipeline.reset()
    """

    def __init__(self,
                 detection_backend: DetectionBackend,
                 classification_backend: ClassificationBackend,
                 labels: Optional[Sequence[str]] = None,
                 score_threshold: Optional[float] = None,
                 config: Optional[Config] = None):
        self.config = config or Config()
        self.detection_backend = detection_backend
        self.classification_backend = classification_backend

        labels = list(labels) if labels is not None else list(self.config.classification_labels)
        threshold = self.config.detection_score_threshold if score_threshold is None else score_threshold

        self.box_decoder = BoxDecoder(threshold)
        self.region_extractor = RegionExtractor()
        self.classifier = Classifier(classification_backend, labels, self.config.classifier_input_size)
        self.image_preparer = ImagePreparer(self.config.max_viewport_width)
        self.model_loader = ModelLoader(detection_backend, classification_backend,
                                        self.config.detector_progress_weight)

        self._machine = PipelineStateMachine()
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_concurrent_classifications,
            thread_name_prefix="fishfinder-inference",
        )
        self._image: Optional[PreparedImage] = None
        self._report: Optional[DetectionReport] = None
        self._error: Optional[ApplicationError] = None

        logger.info(f"InferencePipeline initialized: labels={labels}, threshold={threshold}")

    @classmethod
    def from_config(cls, config: Config) -> "InferencePipeline":
        """Build the pipeline and the backends named in ``config``."""
        backend_config = config.to_dict()
        return cls(
            create_detection_backend(backend_config),
            create_classification_backend(backend_config),
            config=config,
        )

    # ------------------------------------------------------------------ state

    @property
    def state(self) -> PipelineState:
        return self._machine.state

    @property
    def labels(self) -> List[str]:
        return list(self.classifier.labels)

    @property
    def score_threshold(self) -> float:
        return self.box_decoder.score_threshold

    @property
    def current_image(self) -> Optional[PreparedImage]:
        return self._image

    @property
    def last_report(self) -> Optional[DetectionReport]:
        return self._report

    @property
    def last_error(self) -> Optional[ApplicationError]:
        return self._error

    def add_listener(self, callback: StateListener) -> None:
        """Add a listener for pipeline state transitions."""
        self._machine.add_listener(callback)

    def remove_listener(self, callback: StateListener) -> None:
        """Remove a pipeline state listener."""
        self._machine.remove_listener(callback)

    def _require_ready(self, action: str) -> None:
        if self._machine.state != PipelineState.READY_FOR_DETECTION:
            raise PipelineStateError(
                f"Cannot {action} while the pipeline is {self._machine.state.name}"
            )

    # ---------------------------------------------------------------- models

    async def load_models(self,
                          detector_source: Optional[str] = None,
                          classifier_source: Optional[str] = None,
                          progress_callback: Optional[Callable[[float], None]] = None) -> None:
        """Load both models, reporting combined download progress in [0, 1].

        Progress callbacks run on the event loop thread. Raises
        ModelLoadFailure; nothing is retried.
        """
        detector_source = detector_source or self.config.detector_model_source
        classifier_source = classifier_source or self.config.classifier_model_source
        loop = asyncio.get_running_loop()

        def report(value: float) -> None:
            if progress_callback is not None:
                loop.call_soon_threadsafe(progress_callback, value)

        await self._run_blocking(self.model_loader.load, detector_source, classifier_source, report)

    async def warm_up(self) -> None:
        """Run one throwaway detection on a zero tensor.

        Moves INITIAL -> WARMING_UP -> READY_FOR_DETECTION. A failing warm-up
        is logged and otherwise ignored.
        """
        if not self._machine.can_transition(PipelineState.WARMING_UP):
            raise PipelineStateError(f"Cannot warm up while the pipeline is {self.state.name}")
        if not self.model_loader.models_loaded:
            raise ModelError("Models must be loaded before warm-up")

        self._machine.transition(PipelineState.WARMING_UP)
        shape = tuple(self.detection_backend.input_shape or self.config.warmup_input_shape)
        try:
            await self._run_blocking(self.detection_backend.predict, np.zeros(shape, dtype=np.float32))
            logger.info(f"Warm-up inference completed with input shape {shape}")
        except Exception as e:
            logger.warning(f"Warm-up inference failed, continuing: {e}", exc_info=True)
        finally:
            self._machine.transition(PipelineState.READY_FOR_DETECTION)

    # ---------------------------------------------------------------- images

    def prepare_image(self, file: ImageFile) -> PreparedImage:
        """Decode, orient and resize an upload; it becomes the current image."""
        self._require_ready("accept a new image")
        self._image = self.image_preparer.prepare(file)
        return self._image

    def set_image(self, pixels: np.ndarray, orientation=Orientation.NORMAL) -> PreparedImage:
        """Use an in-memory RGB raster as the current image."""
        self._require_ready("accept a new image")
        self._image = self.image_preparer.prepare_array(pixels, orientation)
        return self._image

    def load_sample_image(self) -> PreparedImage:
        """Prepare the configured sample photo."""
        if not self.config.sample_photo_path:
            raise ImagePreparationError("No sample_photo_path configured")
        return self.prepare_image(self.config.sample_photo_path)

    # ------------------------------------------------------------- detection

    async def run_detection(self) -> DetectionReport:
        """Detect, crop and classify the current image.

        Returns the run's report; an empty report means the detector found
        nothing above the threshold.

        Raises:
            PipelineStateError: not READY_FOR_DETECTION, or no image prepared
            DetectionExecutionFailure: the detector failed (state FAILED)
            ClassificationExecutionFailure: any region failed (state FAILED)
        """
        self._require_ready("start a detection")
        if self._image is None:
            raise PipelineStateError("No prepared image; call prepare_image() first")

        image = self._image
        start_time = time.time()

        with CorrelationContext() as run_id:
            logger.info(f"Detection run {run_id} started on {image.width}x{image.height} image")
            self._machine.transition(PipelineState.DETECTING)

            batch = image.pixels.astype(np.float32)[np.newaxis, ...]
            try:
                output = await self._run_blocking(self.detection_backend.predict, batch)
                scored = self.box_decoder.decode(output)
                candidates = self._to_candidates(scored, image)
                regions = self.region_extractor.extract_all(image.pixels, [c.box for c in candidates])
            except Exception as e:
                error = DetectionExecutionFailure(f"Detection failed: {e}")
                self._fail(error, e)
                raise error from e

            if not candidates:
                return self._complete([], image, start_time)

            self._machine.transition(PipelineState.CLASSIFYING)
            results = await asyncio.gather(
                *(self._run_blocking(self.classifier.classify, region) for region in regions),
                return_exceptions=True,
            )

            classified: List[ClassifiedRegion] = []
            for index, (candidate, result) in enumerate(zip(candidates, results)):
                if isinstance(result, BaseException):
                    error = ClassificationExecutionFailure(
                        f"Classification failed for region {index}: {result}", region_index=index
                    )
                    self._fail(error, result)
                    raise error from result
                label_index, score = result
                classified.append(ClassifiedRegion(
                    candidate=candidate,
                    label=self.classifier.label_for(label_index),
                    label_index=label_index,
                    score=score,
                ))

            return self._complete(classified, image, start_time)

    def reset(self) -> None:
        """Discard the last run and its image; back to READY_FOR_DETECTION.

        A no-op when already ready. Never interrupts a run in flight.
        """
        if self._machine.state == PipelineState.READY_FOR_DETECTION:
            return
        if not self._machine.is_terminal:
            raise PipelineStateError(f"Cannot reset while the pipeline is {self.state.name}")

        self._report = None
        self._error = None
        self._image = None
        self._machine.transition(PipelineState.READY_FOR_DETECTION)
        logger.info("Pipeline reset")

    def close(self) -> None:
        """Shut down the worker threads."""
        self._executor.shutdown(wait=True)

    # --------------------------------------------------------------- helpers

    def _to_candidates(self, scored: Sequence[ScoredBox], image: PreparedImage) -> List[DetectionCandidate]:
        candidates = []
        for item in scored:
            box = normalized_to_pixel(item.box, image.width, image.height)
            if not box.has_positive_area:
                logger.debug(f"Dropping degenerate box {box}")
                continue
            candidates.append(DetectionCandidate(box=box, score=item.score))
        logger.info(f"{len(candidates)} candidate boxes after filtering ({len(scored)} decoded)")
        return candidates

    def _complete(self, regions: List[ClassifiedRegion], image: PreparedImage,
                  start_time: float) -> DetectionReport:
        report = DetectionReport(
            regions=tuple(regions),
            frame_size=image.frame_size,
            latency_ms=int((time.time() - start_time) * 1000),
        )
        self._report = report
        self._machine.transition(PipelineState.COMPLETE)
        if report.is_empty:
            logger.info("Detection complete: nothing found")
        else:
            summary = ", ".join(f"{r.label} {r.display_score}%" for r in report.regions)
            logger.info(f"Detection complete in {report.latency_ms}ms: {summary}")
        return report

    def _fail(self, error: ApplicationError, cause: BaseException) -> None:
        self._error = error
        self._machine.transition(PipelineState.FAILED)
        logger.error(str(error), exc_info=cause)

    async def _run_blocking(self, func: Callable, *args) -> Any:
        """Run a blocking call on the worker pool, keeping the log context."""
        loop = asyncio.get_running_loop()
        context = contextvars.copy_context()
        return await loop.run_in_executor(self._executor, functools.partial(context.run, func, *args))
