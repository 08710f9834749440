import torch
import torch.nn as nn

import numpy as np
import timm
from pathlib import Path
from typing import Dict, List, Tuple, Union

from transferlearn.configuration import Configuration
from transferlearn.preprocessing import Stage


class MissingLayerError(ValueError):
    pass


class FeatureExtractor(Stage):
    """Frozen pretrained backbone. The embedding is the flattened output of the
    configured `output_layers`, concatenated in order."""

    def __init__(self, model_configuration : dict, weights_path : Union[str, Path],
                 image_size : Tuple[int, int] = (224, 224)):
        self.backbone_name = model_configuration["backbone"]
        self.output_layers : List[str] = list(model_configuration["output_layers"])
        self.device = torch.device(model_configuration["model_device"])
        self.weights_path = Path(weights_path)

        if not self.weights_path.is_file():
            raise FileNotFoundError(f"Backbone weights not found: {self.weights_path}")
        self.backbone = timm.create_model(self.backbone_name, pretrained=False)
        self.backbone.load_state_dict(torch.load(self.weights_path, map_location="cpu", weights_only=True))
        self.backbone.requires_grad_(False)
        self.backbone.eval()
        self.backbone.to(self.device)

        self._captured : Dict[str, torch.Tensor] = {}
        modules = dict(self.backbone.named_modules())
        for layer_name in self.output_layers:
            if layer_name not in modules:
                raise MissingLayerError(f"{self.backbone_name} has no layer named '{layer_name}'")
            modules[layer_name].register_forward_hook(self._capture_hook(layer_name))
        self.embedding_size = self._probe_embedding_size(image_size)

    @classmethod
    def from_configuration(cls, configuration : Configuration) -> "FeatureExtractor":
        settings = configuration["preprocessing"]
        return cls(configuration["model"], configuration.asset_paths().weights_path,
                   (settings["image_width"], settings["image_height"]))

    def _capture_hook(self, layer_name : str):
        def hook(module : nn.Module, inputs, output : torch.Tensor) -> None:
            self._captured[layer_name] = output
        return hook

    def _probe_embedding_size(self, image_size : Tuple[int, int]) -> int:
        width, height = image_size
        probe = torch.zeros(1, 3, height, width)
        return self.embed_batch(probe).shape[1]

    def embed_batch(self, batch : torch.Tensor) -> np.ndarray:
        self._captured.clear()
        with torch.no_grad():
            self.backbone(batch.to(self.device))
            outputs = [self._captured[name].flatten(start_dim=1) for name in self.output_layers]
        return torch.cat(outputs, dim=1).detach().cpu().numpy().astype(np.float32)

    def transform(self, pixels : torch.Tensor) -> np.ndarray:
        # Single CxHxW tensor; the network expects a batch dimension
        return self.embed_batch(pixels.unsqueeze(0))[0]


def export_backbone(configuration : Configuration) -> Path:
    """Downloads the pretrained weights of the configured backbone into the assets folder."""
    weights_path = configuration.asset_paths().weights_path
    backbone = timm.create_model(configuration["model"]["backbone"], pretrained=True)
    weights_path.parent.mkdir(parents=True, exist_ok=True)
    torch.save(backbone.state_dict(), weights_path)
    return weights_path
