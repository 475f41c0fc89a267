"""Per-fold train / score / evaluate pipeline and its fan-out over folds."""

from __future__ import annotations

import functools
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, List, Optional, Union

import pandas as pd

from cvkit.core.exceptions import FoldExecutionError
from cvkit.core.interfaces import REGRESSION, IDataAdapter, IEvaluator, IFoldExecutor, IPredictor, IScorer
from cvkit.core.schema import DataView, RoleMappedData, RoleMappedSchema, SchemaDescriptor
from cvkit.core.utils import LoggerFactory, Timer, construct_per_fold_name
from cvkit.cv.folds import DatasetPartitioner, SplitKey
from cvkit.cv.scheduling import SequentialFoldExecutor
from cvkit.data.dataset import Dataset
from cvkit.modeling.persistence import save_model
from cvkit.modeling.registry import EVALUATOR, SCORER, ComponentRegistry, TrainerComponent, get_registry

PARTITION = "partition"
ADAPT = "adapt"
TRAIN = "train"
SCORE = "score"
PERSIST = "persist"
EVALUATE = "evaluate"


@dataclass(frozen=True)
class FoldResult:
    """Everything one fold produced."""

    fold: int
    metrics: Dict[str, pd.DataFrame]
    score_schema: SchemaDescriptor
    per_instance: Optional[DataView]
    train_schema: RoleMappedSchema
    model_path: Optional[Path] = None
    predictor_kind: str = REGRESSION


class FoldOrchestrator:
    """Runs the same stage sequence on every fold and returns fold-indexed results.

    Folds share the dataset read-only and consume no randomness, so the
    results do not depend on whether the executor runs them in parallel.
    """

    def __init__(self, dataset: Dataset, split_key: SplitKey, num_folds: int,
                 trainer: TrainerComponent, adapter: IDataAdapter,
                 scorer: Optional[IScorer] = None,
                 evaluator: Optional[IEvaluator] = None,
                 validation_frame: Optional[pd.DataFrame] = None,
                 prior_predictor: Optional[IPredictor] = None,
                 output_model_file: Optional[Union[str, Path]] = None,
                 save_per_instance: bool = False,
                 executor: Optional[IFoldExecutor] = None,
                 registry: Optional[ComponentRegistry] = None):
        self.dataset = dataset
        self.partitioner = DatasetPartitioner(dataset.frame, split_key, num_folds)
        self.num_folds = num_folds
        self.trainer = trainer
        self.adapter = adapter
        self.scorer = scorer
        self.evaluator = evaluator
        self.validation_frame = validation_frame
        self.prior_predictor = prior_predictor
        self.output_model_file = output_model_file
        self.save_per_instance = save_per_instance
        self.executor = executor or SequentialFoldExecutor()
        self.registry = registry or get_registry()
        self.logger = LoggerFactory.get_logger(__name__)

    def run(self) -> List[FoldResult]:
        tasks = [functools.partial(self.run_fold, fold) for fold in range(self.num_folds)]
        with Timer(self.logger, f"{self.num_folds}-fold cross-validation"):
            return self.executor.run(tasks)

    @contextmanager
    def _stage(self, fold: int, stage: str):
        try:
            yield
        except FoldExecutionError:
            raise
        except Exception as e:
            raise FoldExecutionError(fold, stage, f"{type(e).__name__}: {e}") from e

    def run_fold(self, fold: int) -> FoldResult:
        with self._stage(fold, PARTITION):
            partition = self.partitioner.split(fold)
            train_frame = self.dataset.take(partition.train)
            test_frame = self.dataset.take(partition.test)
            self.logger.info(f"Fold {fold}: train={len(train_frame)}, test={len(test_frame)}")

        with self._stage(fold, ADAPT):
            trainer = self.trainer.create_instance()
            train_data = self.adapter.create_role_mapped_data(train_frame, trainer)
            validation_data = None
            if self.validation_frame is not None:
                if trainer.supports_validation:
                    validation_data = self.adapter.apply_transforms(self.validation_frame, train_data)
                else:
                    self.logger.warning("Trainer does not accept validation dataset.")
            test_data = self.adapter.apply_transforms(test_frame, train_data)

        with self._stage(fold, TRAIN):
            predictor = trainer.train(train_data, validation_data, self.prior_predictor)

        with self._stage(fold, SCORE):
            scorer = self.scorer or self.registry.create(SCORER, predictor.kind)
            mapper = scorer.bind(predictor, test_data.schema, test_data.frame.columns)
            scored = scorer.score(mapper, test_data)

        with self._stage(fold, PERSIST):
            model_path = construct_per_fold_name(self.output_model_file, fold)
            if model_path is not None:
                save_model(model_path, predictor, train_data)

        with self._stage(fold, EVALUATE):
            evaluator = self.evaluator or self.registry.create(EVALUATOR, predictor.kind)
            scored_data = RoleMappedData.create_opt(scored.frame, test_data.schema,
                                                    slot_names=scored.slot_names)
            metrics = evaluator.evaluate(scored_data)
            per_instance = None
            if self.save_per_instance:
                per_instance = evaluator.get_per_instance_metrics(scored_data)
                hidden = scored.hidden_columns & set(per_instance.columns)
                per_instance = replace(per_instance,
                                       hidden_columns=frozenset(per_instance.hidden_columns | hidden))

        return FoldResult(
            fold=fold,
            metrics=metrics,
            score_schema=scored.describe(),
            per_instance=per_instance,
            train_schema=train_data.schema,
            model_path=model_path,
            predictor_kind=predictor.kind,
        )
