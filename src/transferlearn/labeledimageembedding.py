import numpy as np
from dataclasses import dataclass

from transferlearn.taggedimage import ImageRecord


@dataclass
class LabeledImageEmbedding:
    embedding: np.ndarray
    source: ImageRecord
    label_key : int
