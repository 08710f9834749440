import time
from torch.utils.data import DataLoader

import mlflow
import numpy as np
from pathlib import Path
from typing import List, Optional, Tuple, Union

from transferlearn.configuration import Configuration
from transferlearn.featureextractor import FeatureExtractor
from transferlearn.indexedimagetensor import IndexedImageTensor
from transferlearn.labeledimageembedding import LabeledImageEmbedding
from transferlearn.labelencoder import LabelEncoder
from transferlearn.maxentclassifier import MaxEntClassifier
from transferlearn.metrics import MulticlassMetrics, evaluate
from transferlearn.preprocessing import Stage, preprocessing_stages, run_stages
from transferlearn.taggedimage import ImageRecord, PredictionResult, load_tags
from transferlearn.taggedimagedataset import TaggedImageDataset


class TransferClassifier:
    """A trained model: preprocessing stages, the frozen feature extractor, the fitted
    classifier head and the label encoder it was fit with. The same preprocessing
    is applied at training and prediction time."""

    @classmethod
    def configure_mlflow(cls, configuration: Configuration) -> str:
        tracking = configuration["tracking"]
        mlflow.set_tracking_uri(tracking["tracking_uri"])
        experiment_name = tracking["experiment_name"]
        try:
            experiment_id = mlflow.create_experiment(experiment_name, artifact_location=tracking.get("artifact_location"))
        except mlflow.exceptions.MlflowException:
            experiment_id = mlflow.get_experiment_by_name(experiment_name).experiment_id
        mlflow.set_experiment(experiment_name)
        return experiment_id

    @classmethod
    def for_training(cls, configuration : Configuration, records : Optional[List[ImageRecord]] = None) -> "TransferClassifier":
        if records is None:
            records = load_tags(configuration.asset_paths().train_tags)
        assert all(record.label for record in records), "every training record must carry a label"
        label_encoder = LabelEncoder.fit(record.label for record in records)
        feature_extractor = FeatureExtractor.from_configuration(configuration)
        classifier = MaxEntClassifier(feature_extractor.embedding_size,
                                      len(label_encoder),
                                      configuration["train"],
                                      configuration["model"]["model_device"])
        transfer_classifier = cls(configuration, preprocessing_stages(configuration), feature_extractor, classifier, label_encoder)
        transfer_classifier.fit(records)
        return transfer_classifier

    def __init__(self, configuration : Configuration, stages : List[Stage], feature_extractor : FeatureExtractor,
                 classifier : MaxEntClassifier, label_encoder : LabelEncoder):
        assert configuration is not None, "configuration cannot be None"
        assert len(label_encoder) == classifier.num_classes, "classifier and label encoder disagree on class count"
        assert feature_extractor.embedding_size == classifier.embedding_size, "classifier does not match the embedding size"

        self.configuration = configuration
        self.stages = stages
        self.feature_extractor = feature_extractor
        self.classifier = classifier
        self.label_encoder = label_encoder
        self.dataset_device = configuration["model"]["dataset_device"]
        self.batch_size = configuration["model"]["batch_size"]

    def build_labeled_image_embeddings(self, records : List[ImageRecord]) -> List[LabeledImageEmbedding]:
        dataset = TaggedImageDataset(records, self.stages, self.label_encoder, device=self.dataset_device)
        loader = DataLoader(dataset, batch_size=self.batch_size, shuffle=False, collate_fn=IndexedImageTensor.collate)
        lies = []
        for batch in loader:
            embeddings = self.feature_extractor.embed_batch(batch["images"])
            for embedding, label_idx, source in zip(embeddings, batch["label_indexes"].tolist(), batch["sources"]):
                lies.append(LabeledImageEmbedding(embedding, source, label_idx))
        return lies

    def fit(self, records : List[ImageRecord]) -> float:
        start = time.time()
        lies = self.build_labeled_image_embeddings(records)
        embeddings = np.stack([lie.embedding for lie in lies])
        label_keys = np.array([lie.label_key for lie in lies], dtype=np.int64)
        assert np.all(label_keys >= 0), "every training record must carry a label"
        loss = self.classifier.fit(embeddings, label_keys)
        self._log(f"Fit {len(self.label_encoder)} classes on {len(records)} images "
                  f"(embedding size {self.feature_extractor.embedding_size}) in {time.time() - start:.1f} seconds, loss {loss}")

        if mlflow.active_run() is not None:
            mlflow.log_params(self.configuration["preprocessing"])
            mlflow.log_params(self.configuration["train"])
            mlflow.log_param("backbone", self.configuration["model"]["backbone"])
            mlflow.log_param("output_layers", ",".join(self.feature_extractor.output_layers))
            mlflow.log_param("labels", ",".join(self.label_encoder.labels))
            mlflow.log_param("n_train_images", len(records))
            mlflow.log_metric("train_loss", loss)
        return loss

    def _to_prediction(self, record : ImageRecord, scores : np.ndarray) -> PredictionResult:
        predicted_label = self.label_encoder.to_label(int(np.argmax(scores)))
        return PredictionResult(record=record, scores=scores, predicted_label=predicted_label)

    def transform(self, records : List[ImageRecord]) -> List[PredictionResult]:
        lies = self.build_labeled_image_embeddings(records)
        scores = self.classifier.predict_proba(np.stack([lie.embedding for lie in lies]))
        return [self._to_prediction(lie.source, row) for lie, row in zip(lies, scores)]

    def evaluate(self, records : List[ImageRecord]) -> Tuple[List[PredictionResult], MulticlassMetrics]:
        predictions = self.transform(records)
        scored = [p for p in predictions if p.record.label in self.label_encoder]
        skipped = len(predictions) - len(scored)
        if skipped > 0:
            self._log(f"Skipping {skipped} evaluation images whose labels were not seen in training")
        if len(scored) == 0:
            raise ValueError("No evaluation images carry a label seen in training")

        scores = np.stack([p.scores for p in scored])
        label_keys = np.array([self.label_encoder.to_key(p.record.label) for p in scored], dtype=np.int64)
        metrics = evaluate(scores, label_keys, len(self.label_encoder))

        if mlflow.active_run() is not None:
            mlflow.log_metric("log_loss", metrics.log_loss)
            mlflow.log_metric("log_loss_reduction", metrics.log_loss_reduction)
            mlflow.log_metric("micro_accuracy", metrics.micro_accuracy)
            mlflow.log_metric("macro_accuracy", metrics.macro_accuracy)
            for key, class_log_loss in enumerate(metrics.per_class_log_loss):
                if not np.isnan(class_log_loss):
                    mlflow.log_metric(f"per_class_log_loss_{self.label_encoder.to_label(key)}", class_log_loss)
        return predictions, metrics

    def predict(self, path : Union[str, Path]) -> PredictionResult:
        record = ImageRecord(path=str(path))
        embedding = run_stages(self.stages + [self.feature_extractor], record)
        scores = self.classifier.predict_proba(embedding[np.newaxis, :])[0]
        return self._to_prediction(record, scores)

    def _log(self, message):
        print(message)
