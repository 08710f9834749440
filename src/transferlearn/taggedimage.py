import numpy as np
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union


class MalformedTagFileError(ValueError):
    pass


@dataclass(frozen=True)
class ImageRecord:
    # Relative to the images folder, or absolute
    path: str
    label: Optional[str] = None


@dataclass
class PredictionResult:
    record: ImageRecord
    # One score per training label, indexed by label key
    scores: np.ndarray
    predicted_label: str

    @property
    def probability(self) -> float:
        return float(np.max(self.scores))

    def __str__(self) -> str:
        return f"{Path(self.record.path).name} class: {self.predicted_label} probability: {self.probability}"


def load_tags(tsv_path : Union[str, Path]) -> List[ImageRecord]:
    """Reads `<image-path>\\t<label>` rows (no header) into image records.

    Blank lines are ignored. Any other row must have exactly two non-empty fields.
    """
    tsv_path = Path(tsv_path)
    records = []
    with open(tsv_path, 'r', encoding='utf-8') as f:
        for line_number, line in enumerate(f, start=1):
            line = line.rstrip("\r\n")
            if not line.strip():
                continue
            fields = line.split("\t")
            if len(fields) != 2:
                raise MalformedTagFileError(f"{tsv_path}:{line_number}: expected 2 tab separated fields, got {len(fields)}")
            path, label = fields[0].strip(), fields[1].strip()
            if not path or not label:
                raise MalformedTagFileError(f"{tsv_path}:{line_number}: image path and label are both required")
            records.append(ImageRecord(path=path, label=label))
    return records
