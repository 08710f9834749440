import torch
from torch.utils.data import Dataset

from typing import List

from transferlearn.indexedimagetensor import IndexedImageTensor
from transferlearn.labelencoder import LabelEncoder
from transferlearn.preprocessing import Stage, run_stages
from transferlearn.taggedimage import ImageRecord


class TaggedImageDataset(Dataset):

    def __init__(self, records : List[ImageRecord], stages : List[Stage], label_encoder : LabelEncoder, device = torch.device('cpu')):
        assert len(records) > 0, "No image records"
        assert stages is not None and len(stages) > 0, "stages cannot be empty"
        assert label_encoder is not None, "label_encoder cannot be None"
        assert device is not None, "device cannot be None"

        self.records = records
        self.stages = stages
        self.label_encoder = label_encoder
        self.device = device

    def label_idx(self, record : ImageRecord) -> int:
        if record.label is None or record.label not in self.label_encoder:
            return -1
        return self.label_encoder.to_key(record.label)

    def __len__(self) -> int:
        return len(self.records)

    def __getitem__(self, idx : int) -> IndexedImageTensor:
        record = self.records[idx]
        try:
            tensor_image = run_stages(self.stages, record)
        except Exception as e:
            print(f"Error processing {record.path}: {e}")
            raise
        tensor_image = tensor_image.to(self.device)
        return IndexedImageTensor(image=tensor_image, label_idx=self.label_idx(record), source=record)
