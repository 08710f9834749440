from datetime import datetime
import sys
import tempfile
import time

import mlflow
from pathlib import Path
from typing import Optional

from transferlearn.configuration import Configuration
from transferlearn.metrics import MulticlassMetrics
from transferlearn.taggedimage import load_tags
from transferlearn.transferclassifier import TransferClassifier


def display_metrics(metrics : MulticlassMetrics) -> None:
    print(f"LogLoss is: {metrics.log_loss}")
    print(f"PerClassLogLoss is: {' , '.join(str(c) for c in metrics.per_class_log_loss)}")
    print(f"LogLossReduction is: {metrics.log_loss_reduction}")
    print(f"MicroAccuracy is: {metrics.micro_accuracy}")
    print(f"MacroAccuracy is: {metrics.macro_accuracy}")


def log_configuration(configuration : Configuration, run_id : str) -> None:
    with tempfile.TemporaryDirectory() as tmp_dir:
        config_path = Path(tmp_dir) / f"train_configuration_{run_id}.json"
        configuration.save(config_path)
        mlflow.log_artifact(str(config_path))


def run(configuration : Configuration) -> TransferClassifier:
    paths = configuration.asset_paths()

    print("=============== Training classification model ===============")
    transfer_classifier = TransferClassifier.for_training(configuration, load_tags(paths.train_tags))

    predictions, metrics = transfer_classifier.evaluate(load_tags(paths.test_tags))
    for prediction in predictions:
        print(prediction)

    print("=============== Classification metrics ===============")
    display_metrics(metrics)

    print("=============== Making single image classification ===============")
    print(transfer_classifier.predict(paths.predict_image))
    return transfer_classifier


def main(config_path : Optional[str] = None):
    if config_path is None and len(sys.argv) > 1:
        config_path = sys.argv[1]
    configuration = Configuration(Path(config_path)) if config_path is not None else Configuration()

    start = time.time()
    print(f"Training classifier at {datetime.now()}...")
    try:
        if configuration["tracking"]["enabled"]:
            TransferClassifier.configure_mlflow(configuration)
            with mlflow.start_run() as active_run:
                log_configuration(configuration, active_run.info.run_id)
                run(configuration)
        else:
            run(configuration)
    finally:
        end = time.time()
        print(f"Completed at {datetime.now()}. Total time: {end - start} seconds.")


if __name__ == '__main__':
    main()
