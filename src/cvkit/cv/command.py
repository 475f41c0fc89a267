"""End-to-end cross-validation run driven by a CrossValidationConfig."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from cvkit.core.config import CrossValidationConfig
from cvkit.core.interfaces import IEvaluator, IPredictor, ITrainer
from cvkit.core.utils import LoggerFactory, Timer
from cvkit.cv.folds import SplitColumnResolver
from cvkit.cv.orchestrator import FoldOrchestrator, FoldResult
from cvkit.cv.scheduling import create_executor
from cvkit.data.dataset import Dataset
from cvkit.data.loader import TabularDataLoader
from cvkit.eval.aggregation import ResultAggregator
from cvkit.features.adapter import TabularDataAdapter
from cvkit.features.transforms import TransformChain
from cvkit.modeling.persistence import load_model
from cvkit.modeling.registry import (
    EVALUATOR,
    SCORER,
    TRANSFORM,
    ComponentRegistry,
    TrainerComponent,
    get_registry,
)

NAME_COLUMN = "Name"


@dataclass
class CrossValidationRun:
    """Outcome of a cross-validation command."""

    results: List[FoldResult]
    summary: pd.DataFrame
    output_paths: List[Path] = field(default_factory=list)


class CrossValidationCommand:
    """Loads data, runs every fold and reports and writes the merged results."""

    def __init__(self, config: CrossValidationConfig,
                 registry: Optional[ComponentRegistry] = None,
                 loader: Optional[TabularDataLoader] = None):
        self.config = config
        self.registry = registry or get_registry()
        self.loader = loader or TabularDataLoader()
        self.logger = LoggerFactory.get_logger(__name__)

    def _load(self, data: Union[str, Path, pd.DataFrame]) -> pd.DataFrame:
        if isinstance(data, pd.DataFrame):
            return data
        return self.loader.load(data)

    def _add_name_column(self, frame: pd.DataFrame,
                         config: CrossValidationConfig) -> Tuple[pd.DataFrame, CrossValidationConfig]:
        name = config.name_column or NAME_COLUMN
        if name not in frame.columns:
            self.logger.info(f"Adding counter column '{name}' to identify instances")
            frame = frame.assign(**{name: np.arange(len(frame), dtype=np.int64)})
        return frame, config.model_copy(update={"name_column": name})

    def _prior_predictor(self, probe: ITrainer) -> Optional[IPredictor]:
        config = self.config
        if not config.continue_train:
            return None
        if not config.input_model_file or not Path(config.input_model_file).exists():
            self.logger.warning("Input model file not found; training from scratch")
            return None
        if not getattr(probe, "supports_continued_training", False):
            self.logger.warning("Continued training is not supported by the trainer; ignoring the input model")
            return None
        return load_model(config.input_model_file).predictor

    def _report_evaluator(self, results: List[FoldResult]) -> IEvaluator:
        if self.config.evaluator is not None:
            return self.registry.create_from_config(EVALUATOR, self.config.evaluator)
        return self.registry.create(EVALUATOR, results[0].predictor_kind)

    def run(self, data: Union[str, Path, pd.DataFrame]) -> CrossValidationRun:
        config = self.config
        frame = self._load(data)

        pre_transforms = TransformChain(
            [self.registry.create_from_config(TRANSFORM, c) for c in config.pre_transforms]
        )
        frame = pre_transforms.fit_transform(frame)
        if config.save_per_instance:
            frame, config = self._add_name_column(frame, config)

        frame, split_key = SplitColumnResolver(
            config.stratification_column, config.group_column
        ).resolve(frame)
        group_column = config.group_column if config.group_column in frame.columns else None
        dataset = Dataset(frame, group_column=group_column)

        trainer = TrainerComponent.from_config(config.trainer, self.registry)
        probe = trainer.create_instance()
        adapter = TabularDataAdapter.from_config(
            config,
            transforms=[self.registry.create_from_config(TRANSFORM, c) for c in config.transforms],
            exclude_columns=[split_key.column],
        )
        validation_frame = None
        if config.validation_file:
            validation_frame = pre_transforms.transform(self._load(config.validation_file))

        orchestrator = FoldOrchestrator(
            dataset, split_key, config.num_folds, trainer, adapter,
            scorer=self.registry.create_from_config(SCORER, config.scorer) if config.scorer else None,
            evaluator=self.registry.create_from_config(EVALUATOR, config.evaluator) if config.evaluator else None,
            validation_frame=validation_frame,
            prior_predictor=self._prior_predictor(probe),
            output_model_file=config.output_model_file,
            save_per_instance=config.save_per_instance,
            executor=create_executor(config.use_threads, config.max_workers or config.num_folds,
                                     config.fault_policy),
            registry=self.registry,
        )

        with Timer(self.logger, "cross-validation command"):
            results = orchestrator.run()

            evaluator = self._report_evaluator(results)
            for result in results:
                self.logger.info(f"Fold {result.fold} metrics")
                evaluator.print_fold_results(result.metrics)
            summary = evaluator.print_overall_results(
                [r.metrics for r in results], config.summary_filename
            )

            output_paths: List[Path] = []
            if config.save_per_instance:
                aggregator = ResultAggregator(name_column=config.name_column)
                output_paths = aggregator.collate(
                    results, config.output_data_file,
                    collate=config.collate_metrics,
                    add_fold_index=config.output_example_fold_index,
                )

        return CrossValidationRun(results=results, summary=summary, output_paths=output_paths)
