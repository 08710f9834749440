import torch

from dataclasses import dataclass
from typing import Dict, List, Union

from transferlearn.taggedimage import ImageRecord


@dataclass
class IndexedImageTensor:
    image: torch.Tensor
    # Key of the label in the training label encoder, -1 when the record has no known label
    label_idx: int
    source: ImageRecord

    @staticmethod
    def collate(indexed_image_tensors: List["IndexedImageTensor"]) -> Dict[str, Union[torch.Tensor, list]]:
        images = torch.stack([item.image for item in indexed_image_tensors])
        label_indexes = torch.Tensor([int(item.label_idx) for item in indexed_image_tensors]).type(torch.int64)
        sources = [item.source for item in indexed_image_tensors]
        return {"images": images, "label_indexes": label_indexes, "sources": sources}
