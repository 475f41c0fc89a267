"""Name-based registry of trainers, scorers, evaluators and transforms."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from cvkit.core.config import ComponentConfig
from cvkit.core.exceptions import ConfigurationError
from cvkit.core.interfaces import BINARY, MULTICLASS, REGRESSION, IEvaluator, IScorer, ITrainer
from cvkit.core.utils import LoggerFactory
from cvkit.eval.evaluator import BinaryEvaluator, MultiClassEvaluator, RegressionEvaluator
from cvkit.features.transforms import (
    ColumnDropper,
    MissingValueImputer,
    OneHotEncoderTransform,
)
from cvkit.modeling.scorers import BinaryScorer, MultiClassScorer, RegressionScorer
from cvkit.modeling.trainers import (
    BaggedTreeTrainer,
    LogisticTrainer,
    RandomForestTrainer,
    RidgeTrainer,
)

TRAINER = "trainer"
SCORER = "scorer"
EVALUATOR = "evaluator"
TRANSFORM = "transform"


class ComponentRegistry:
    """Registry for managing available pipeline components."""

    def __init__(self):
        self.logger = LoggerFactory.get_logger(__name__)
        self._components = self._register_components()

    def _register_components(self) -> Dict[str, Dict[str, type]]:
        """Register all built-in components."""
        return {
            TRAINER: {
                "ridge": RidgeTrainer,
                "logistic": LogisticTrainer,
                "random_forest": RandomForestTrainer,
                "bagged_trees": BaggedTreeTrainer,
            },
            SCORER: {
                REGRESSION: RegressionScorer,
                BINARY: BinaryScorer,
                MULTICLASS: MultiClassScorer,
            },
            EVALUATOR: {
                REGRESSION: RegressionEvaluator,
                BINARY: BinaryEvaluator,
                MULTICLASS: MultiClassEvaluator,
            },
            TRANSFORM: {
                "impute": MissingValueImputer,
                "one_hot": OneHotEncoderTransform,
                "drop": ColumnDropper,
            },
        }

    def get_available(self, kind: str) -> List[str]:
        """Get list of registered names of one component kind."""
        return list(self._components[kind].keys())

    def create(self, kind: str, name: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Create component instance by kind and name."""
        if kind not in self._components:
            raise ConfigurationError(f"Unknown component kind '{kind}'")
        if name not in self._components[kind]:
            available = ", ".join(self.get_available(kind))
            raise ConfigurationError(f"Unknown {kind} '{name}'. Available: {available}")
        try:
            return self._components[kind][name](**(params or {}))
        except TypeError as e:
            raise ConfigurationError(f"Invalid parameters for {kind} '{name}': {e}") from e

    def create_from_config(self, kind: str, config: ComponentConfig) -> Any:
        return self.create(kind, config.name, config.params)

    def register(self, kind: str, name: str, component_class: type) -> None:
        """Register a custom component class."""
        base = {TRAINER: ITrainer, SCORER: IScorer, EVALUATOR: IEvaluator}.get(kind)
        if base is not None and not issubclass(component_class, base):
            raise ConfigurationError(f"Custom {kind} must inherit from {base.__name__}")
        self._components.setdefault(kind, {})[name] = component_class
        self.logger.info(f"Registered custom {kind}: {name}")


class TrainerComponent:
    """A trainer factory: every ``create_instance`` call returns a fresh trainer."""

    def __init__(self, name: str, params: Optional[Dict[str, Any]] = None,
                 registry: Optional[ComponentRegistry] = None):
        self.name = name
        self.params = dict(params or {})
        self.registry = registry or get_registry()

    @classmethod
    def from_config(cls, config: ComponentConfig,
                    registry: Optional[ComponentRegistry] = None) -> "TrainerComponent":
        return cls(config.name, config.params, registry)

    def create_instance(self) -> ITrainer:
        return self.registry.create(TRAINER, self.name, self.params)

    def __repr__(self) -> str:
        return f"TrainerComponent({self.name!r})"


# Global registry instance
_registry = None


def get_registry() -> ComponentRegistry:
    """Get the global component registry instance."""
    global _registry
    if _registry is None:
        _registry = ComponentRegistry()
    return _registry
