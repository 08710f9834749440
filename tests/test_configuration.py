import json
import tempfile
import unittest
from pathlib import Path

import torch

from transferlearn.configuration import Configuration
from imagefixtures import build_assets


class ConfigurationTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.tmp_dir = tempfile.TemporaryDirectory()
        cls.root = Path(cls.tmp_dir.name)
        cls.config_path = build_assets(cls.root)

    @classmethod
    def tearDownClass(cls):
        cls.tmp_dir.cleanup()

    def test_defaults(self):
        config = Configuration()
        assert config.configuration["assets"]["root"] == "assets"
        assert config.configuration["assets"]["train_tags"] == "tags.tsv"
        assert config.configuration["assets"]["test_tags"] == "test-tags.tsv"
        assert config.configuration["preprocessing"]["image_width"] == 224
        assert config.configuration["preprocessing"]["image_height"] == 224
        assert config.configuration["preprocessing"]["offset"] == 150.0
        assert config.configuration["preprocessing"]["scale"] == 1.0
        assert config.configuration["preprocessing"]["resizing"] == "isocrop"
        assert config.configuration["train"]["l1_weight"] == 0.0
        assert config.configuration["model"]["backbone"] == "resnet18"
        assert config.configuration["model"]["output_layers"] == ["fc"]
        assert config.configuration["model"]["dataset_device"] == torch.device("cpu")
        assert config.configuration["train"]["history_size"] == 20
        assert config.configuration["tracking"]["enabled"] == False

    def test_load(self):
        config = Configuration(self.config_path)
        assert config["model"]["batch_size"] == 4
        assert config["model"]["model_device"] == torch.device("cpu"), f"Device should be cpu but is {config['model']['model_device']}"
        assert isinstance(config["model"]["dataset_device"], torch.device)

    def test_asset_paths(self):
        paths = Configuration(self.config_path).asset_paths()
        self.assertEqual(paths.images_folder, self.root.resolve() / "images")
        self.assertEqual(paths.train_tags, self.root.resolve() / "images" / "tags.tsv")
        self.assertEqual(paths.test_tags, self.root.resolve() / "images" / "test-tags.tsv")
        self.assertEqual(paths.predict_image, self.root.resolve() / "images" / "toaster3.jpg")
        self.assertEqual(paths.weights_path, self.root.resolve() / "backbone" / "resnet18.pth")
        self.assertTrue(paths.train_tags.is_file())

    def test_save_round_trip(self):
        config = Configuration(self.config_path)
        saved_path = self.root / "saved_configuration.json"
        config.save(saved_path)
        with open(saved_path) as f:
            saved = json.load(f)
        self.assertEqual(saved["model"]["model_device"], "cpu")
        reloaded = Configuration(saved_path)
        self.assertEqual(reloaded["preprocessing"], config["preprocessing"])
        self.assertEqual(reloaded["model"]["dataset_device"], torch.device("cpu"))
        # Saving does not alter the live configuration
        self.assertIsInstance(config["model"]["model_device"], torch.device)

    def test_validate_missing_model(self):
        config = Configuration(self.config_path)
        config.configuration.pop("model")
        with self.assertRaises(AssertionError):
            Configuration.validate(config.configuration)

    def test_validate_bad_channel_order(self):
        configuration = Configuration.defaults()
        configuration["preprocessing"]["channel_order"] = "argb"
        with self.assertRaises(AssertionError):
            Configuration.validate(configuration)

    def test_validate_bad_resizing(self):
        configuration = Configuration.defaults()
        configuration["preprocessing"]["resizing"] = "pad"
        with self.assertRaises(AssertionError):
            Configuration.validate(configuration)


if __name__ == "__main__":
    unittest.main()
