"""cvkit: k-fold cross-validation orchestration and bagging partitions."""

__version__ = "0.1.0"
