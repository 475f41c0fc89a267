from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from cvkit.core.config import BaggingConfig, load_bagging_config, load_cv_config
from cvkit.core.exceptions import CvKitError
from cvkit.core.utils import LoggerFactory
from cvkit.cv.command import CrossValidationCommand
from cvkit.data.dataset import Dataset
from cvkit.data.loader import TabularDataLoader
from cvkit.modeling.bagging import BaggingPartitionProvider
from cvkit.modeling.registry import EVALUATOR, SCORER, TRAINER, TRANSFORM, get_registry

app = typer.Typer(help="Cross-validation and bagging toolkit CLI")
log = LoggerFactory.get_logger("cvkit.cli")


@app.callback()
def main_callback() -> None:
    """CLI entry callback to initialize logging."""
    log.debug("CLI initialized")


@app.command()
def cv(
    data: Path = typer.Option(..., exists=True, readable=True, help="Training data CSV/TSV path"),
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, help="YAML config file"),
    folds: Optional[int] = typer.Option(None, help="Number of folds; overrides the config"),
    trainer: Optional[str] = typer.Option(None, help="Registered trainer name; overrides the config"),
    out: Optional[Path] = typer.Option(None, help="Per-instance output file"),
    sequential: bool = typer.Option(False, help="Run folds on the calling thread"),
) -> None:
    """Run k-fold cross-validation and print per-fold and overall metrics."""
    try:
        settings = load_cv_config(config).to_dict() if config else {}
        if folds is not None:
            settings["num_folds"] = folds
        if trainer is not None:
            settings["trainer"] = {"name": trainer}
        if out is not None:
            settings["output_data_file"] = str(out)
        if sequential:
            settings["use_threads"] = False
        run = CrossValidationCommand(load_cv_config(settings)).run(data)
    except (CvKitError, FileNotFoundError) as e:
        log.error("Cross-validation failed: %s", e)
        raise typer.Exit(code=2)

    typer.echo(run.summary.to_string())
    for path in run.output_paths:
        typer.echo(f"Per-instance results written: {path}")


@app.command()
def bag(
    data: Path = typer.Option(..., exists=True, readable=True, help="Data CSV/TSV path"),
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, help="YAML config file"),
    bags: int = typer.Option(3, min=1, help="Number of bags to draw"),
    group_column: Optional[str] = typer.Option(None, help="Group column for group-level bagging"),
) -> None:
    """Draw bags and print bag / out-of-bag sizes."""
    try:
        settings = load_bagging_config(config) if config else BaggingConfig()
        if group_column:
            settings = settings.model_copy(update={"group_level": True})
        dataset = Dataset(TabularDataLoader().load(data),
                          group_column=group_column if settings.group_level else None)
        provider = BaggingPartitionProvider.from_config(dataset, settings)
    except (CvKitError, FileNotFoundError) as e:
        log.error("Bagging failed: %s", e)
        raise typer.Exit(code=2)

    for i in range(bags):
        if i > 0:
            provider.generate_new_bag()
        typer.echo(
            f"bag {i}: in-bag={provider.current_train_partition.num_documents} "
            f"out-of-bag={provider.current_out_of_bag_partition.num_documents}"
        )


@app.command()
def components() -> None:
    """List registered trainers, scorers, evaluators and transforms."""
    registry = get_registry()
    for kind in (TRAINER, SCORER, EVALUATOR, TRANSFORM):
        typer.echo(f"{kind}: {', '.join(registry.get_available(kind))}")


if __name__ == "__main__":
    app()
