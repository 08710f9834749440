import torch
from torchvision import transforms as xforms
from torchvision.transforms import functional as xfunctional

from PIL import Image
from pathlib import Path
from typing import Any, List, Union

from transferlearn.configuration import Configuration
from transferlearn.taggedimage import ImageRecord


class Stage:
    """One step of the image pipeline. Stages are run in order by `run_stages`."""

    def transform(self, value : Any) -> Any:
        raise NotImplementedError

    def __call__(self, value : Any) -> Any:
        return self.transform(value)


def run_stages(stages : List[Stage], value : Any) -> Any:
    for stage in stages:
        value = stage.transform(value)
    return value


class LoadImage(Stage):
    def __init__(self, images_folder : Union[str, Path]):
        self.images_folder = Path(images_folder)

    def resolve(self, source : Union[ImageRecord, str, Path]) -> Path:
        path = source.path if isinstance(source, ImageRecord) else source
        # Joining an absolute path keeps it unchanged
        return self.images_folder / path

    def transform(self, source : Union[ImageRecord, str, Path]) -> Image.Image:
        img_path = self.resolve(source)
        if not img_path.is_file():
            raise FileNotFoundError(f"Image not found: {img_path}")
        initial_image = Image.open(img_path)
        try:
            pil_image = initial_image.convert('RGB')
        finally:
            initial_image.close()
        return pil_image


class ResizeImage(Stage):
    """Resizes to exactly `width` x `height`.

    `isocrop` scales the image until it covers the target, keeping its aspect
    ratio, then crops the center. `fill` stretches it.
    """

    def __init__(self, width : int, height : int, resizing : str = "isocrop"):
        assert resizing in ("isocrop", "fill"), f"Unsupported resizing: {resizing}"
        self.width = width
        self.height = height
        self.resizing = resizing
        self._crop = xforms.CenterCrop((height, width))

    def transform(self, image : Image.Image) -> Image.Image:
        if self.resizing == "fill":
            return xfunctional.resize(image, [self.height, self.width])
        image_width, image_height = image.size
        cover = max(self.width / image_width, self.height / image_height)
        size = [max(self.height, round(image_height * cover)), max(self.width, round(image_width * cover))]
        return self._crop(xfunctional.resize(image, size))


class ExtractPixels(Stage):
    """PIL image to a float CxHxW tensor of `(pixel - offset) * scale`, pixels in 0..255."""

    def __init__(self, offset : float, scale : float = 1.0, channel_order : str = "rgb"):
        assert channel_order in ("rgb", "bgr"), f"Unsupported channel order: {channel_order}"
        self.offset = offset
        self.scale = scale
        self.channel_order = channel_order
        self._to_tensor = xforms.PILToTensor()

    def transform(self, image : Image.Image) -> torch.Tensor:
        pixels = self._to_tensor(image).to(torch.float32)
        if self.channel_order == "bgr":
            pixels = pixels.flip(0)
        return (pixels - self.offset) * self.scale


def preprocessing_stages(configuration : Configuration) -> List[Stage]:
    settings = configuration["preprocessing"]
    return [
        LoadImage(configuration.asset_paths().images_folder),
        ResizeImage(settings["image_width"], settings["image_height"], settings["resizing"]),
        ExtractPixels(settings["offset"], settings["scale"], settings["channel_order"]),
    ]
