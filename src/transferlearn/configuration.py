import torch

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class AssetPaths:
    root: Path
    images_folder: Path
    train_tags: Path
    test_tags: Path
    predict_image: Path
    weights_path: Path


class Configuration:
    def __init__(self, config_file : Optional[Path] = None):
        self.configuration = {}
        if config_file is not None:
            self.configuration = self.load(config_file)
        else:
            self.configuration = Configuration.defaults()
        Configuration.validate(self.configuration)
        self.configuration["model"]["dataset_device"] = torch.device(self.configuration["model"]["dataset_device"])
        self.configuration["model"]["model_device"] = torch.device(self.configuration["model"]["model_device"])

    def __getitem__(self, section : str) -> dict:
        return self.configuration[section]

    @staticmethod
    def validate(configuration):
        assert "assets" in configuration, "assets configuration is missing"
        assert "preprocessing" in configuration, "preprocessing configuration is missing"
        assert "model" in configuration, "model configuration is missing"
        assert "train" in configuration, "train configuration is missing"
        assert "tracking" in configuration, "tracking configuration is missing"

        for key in ["root", "images_folder", "train_tags", "test_tags", "predict_image"]:
            assert key in configuration["assets"], f"{key} is missing from assets configuration"
        for key in ["image_width", "image_height", "offset", "scale", "channel_order", "resizing"]:
            assert key in configuration["preprocessing"], f"{key} is missing from preprocessing configuration"
        assert configuration["preprocessing"]["channel_order"] in ("rgb", "bgr"), \
            f"channel_order must be 'rgb' or 'bgr', not {configuration['preprocessing']['channel_order']}"
        assert configuration["preprocessing"]["resizing"] in ("isocrop", "fill"), \
            f"resizing must be 'isocrop' or 'fill', not {configuration['preprocessing']['resizing']}"
        for key in ["backbone", "weights_path", "output_layers", "dataset_device", "model_device", "batch_size"]:
            assert key in configuration["model"], f"{key} is missing from model configuration"
        assert len(configuration["model"]["output_layers"]) > 0, "output_layers cannot be empty"
        for key in ["max_iterations", "history_size", "tolerance", "l1_weight", "l2_weight", "normalize_features"]:
            assert key in configuration["train"], f"{key} is missing from train configuration"
        assert "enabled" in configuration["tracking"], "enabled is missing from tracking configuration"

    @staticmethod
    def defaults():
        configuration = {}
        device = torch.device("cuda" if torch.cuda.is_available() else "mps" if torch.backends.mps.is_built() else "cpu")
        configuration["assets"] = {"root": "assets", "images_folder": "images", "train_tags": "tags.tsv",
                                   "test_tags": "test-tags.tsv", "predict_image": "toaster3.jpg"}

        # Pixel values stay in 0..255; the offset is subtracted and nothing is rescaled
        configuration["preprocessing"] = {"image_width": 224, "image_height": 224, "offset": 150.0, "scale": 1.0,
                                          "channel_order": "rgb", "resizing": "isocrop"}

        configuration["model"] = {"backbone": "resnet18", "weights_path": "backbone/resnet18.pth",
                                  "output_layers": ["fc"], "dataset_device": torch.device("cpu"),
                                  "model_device": device, "batch_size": 8}

        configuration["train"] = {"max_iterations": 100, "history_size": 20, "tolerance": 1e-7,
                                  "l1_weight": 0.0, "l2_weight": 1.0, "normalize_features": True}

        configuration["tracking"] = {"enabled": False, "tracking_uri": "sqlite:///mlflow.db",
                                     "experiment_name": "transferlearn", "artifact_location": None}
        return configuration

    def asset_paths(self) -> AssetPaths:
        assets = self.configuration["assets"]
        root = Path(assets["root"]).resolve()
        images_folder = root / assets["images_folder"]
        return AssetPaths(root=root,
                          images_folder=images_folder,
                          train_tags=images_folder / assets["train_tags"],
                          test_tags=images_folder / assets["test_tags"],
                          predict_image=images_folder / assets["predict_image"],
                          weights_path=root / self.configuration["model"]["weights_path"])

    def load(self, config_file : Path):
        with open(config_file, 'r') as f:
            configuration = json.load(f)
        return configuration

    def save(self, config_file : Path):
        # torch devices are not JSON serializable, so save their names
        serializable = {section: dict(values) for section, values in self.configuration.items()}
        for key in ["dataset_device", "model_device"]:
            device = serializable["model"][key]
            serializable["model"][key] = device.type if isinstance(device, torch.device) else device
        with open(config_file, 'w') as f:
            json.dump(serializable, f, indent=2)
