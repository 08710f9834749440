import numpy as np
from dataclasses import dataclass
from typing import List

# Probabilities are clamped before the log so a confident mistake costs a finite amount
LOG_LOSS_EPSILON = 1e-15


@dataclass
class MulticlassMetrics:
    log_loss: float
    # Indexed by label key; NaN for classes without evaluation rows
    per_class_log_loss: List[float]
    log_loss_reduction: float
    micro_accuracy: float
    macro_accuracy: float
    confusion_matrix: np.ndarray


def evaluate(scores : np.ndarray, label_keys : np.ndarray, num_classes : int) -> MulticlassMetrics:
    """Scores an `(N, num_classes)` probability matrix against the true label keys."""
    scores = np.asarray(scores, dtype=np.float64)
    label_keys = np.asarray(label_keys, dtype=np.int64)
    assert scores.ndim == 2 and scores.shape[1] == num_classes, \
        f"Expected scores of shape (N, {num_classes}), got {scores.shape}"
    assert len(scores) == len(label_keys), f"Got {len(scores)} score rows but {len(label_keys)} labels"
    assert len(label_keys) > 0, "Cannot evaluate an empty set"
    assert label_keys.min() >= 0 and label_keys.max() < num_classes, "label keys out of range"

    true_probabilities = scores[np.arange(len(label_keys)), label_keys]
    row_losses = -np.log(np.maximum(true_probabilities, LOG_LOSS_EPSILON))
    predicted = np.argmax(scores, axis=1)

    counts = np.bincount(label_keys, minlength=num_classes)
    per_class_log_loss = []
    per_class_accuracy = []
    for key in range(num_classes):
        in_class = label_keys == key
        if counts[key] == 0:
            per_class_log_loss.append(float("nan"))
            continue
        per_class_log_loss.append(float(row_losses[in_class].mean()))
        per_class_accuracy.append(float((predicted[in_class] == key).mean()))

    log_loss = float(row_losses.mean())
    priors = counts[counts > 0] / len(label_keys)
    prior_log_loss = float(-(priors * np.log(priors)).sum())
    # A single-class evaluation set has no prior uncertainty to reduce
    log_loss_reduction = (prior_log_loss - log_loss) / prior_log_loss if prior_log_loss > 0 else 0.0

    confusion_matrix = np.zeros((num_classes, num_classes), dtype=np.int64)
    np.add.at(confusion_matrix, (label_keys, predicted), 1)

    return MulticlassMetrics(log_loss=log_loss,
                             per_class_log_loss=per_class_log_loss,
                             log_loss_reduction=log_loss_reduction,
                             micro_accuracy=float((predicted == label_keys).mean()),
                             macro_accuracy=float(np.mean(per_class_accuracy)),
                             confusion_matrix=confusion_matrix)
