"""Model components including bagging, trainers, scorers and the registry."""

from .bagging import BaggingPartitionProvider, BagSplit, Partition, RankingBaggingProvider, draw_bag, next_bag
from .ensemble import RegressionTree, TreeEnsemble
from .persistence import ModelArtifact, load_model, save_model
from .registry import ComponentRegistry, TrainerComponent, get_registry
from .scorers import BinaryScorer, MultiClassScorer, RegressionScorer
from .trainers import BaggedTreeTrainer, LogisticTrainer, RandomForestTrainer, RidgeTrainer

__all__ = [
    "BaggingPartitionProvider",
    "BagSplit",
    "Partition",
    "RankingBaggingProvider",
    "draw_bag",
    "next_bag",
    "RegressionTree",
    "TreeEnsemble",
    "ModelArtifact",
    "load_model",
    "save_model",
    "ComponentRegistry",
    "TrainerComponent",
    "get_registry",
    "BinaryScorer",
    "MultiClassScorer",
    "RegressionScorer",
    "BaggedTreeTrainer",
    "LogisticTrainer",
    "RandomForestTrainer",
    "RidgeTrainer",
]
