from typing import Iterable, List


class LabelEncoder:
    """Maps label strings to dense integer keys and back.

    Keys are assigned in order of first appearance, so the same training rows
    always produce the same mapping.
    """

    def __init__(self, labels : List[str]):
        assert len(labels) == len(set(labels)), "labels must be distinct"
        self._labels = list(labels)
        self._label_to_key = {label: key for key, label in enumerate(self._labels)}

    @classmethod
    def fit(cls, labels : Iterable[str]) -> "LabelEncoder":
        distinct = list(dict.fromkeys(labels))
        if len(distinct) == 0:
            raise ValueError("Cannot build a label encoder without labels")
        return cls(distinct)

    @property
    def labels(self) -> List[str]:
        return list(self._labels)

    def to_key(self, label : str) -> int:
        return self._label_to_key[label]

    def to_label(self, key : int) -> str:
        if key < 0 or key >= len(self._labels):
            raise KeyError(key)
        return self._labels[key]

    def __contains__(self, label : str) -> bool:
        return label in self._label_to_key

    def __len__(self) -> int:
        return len(self._labels)
