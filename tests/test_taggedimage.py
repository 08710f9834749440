import tempfile
import unittest
from pathlib import Path

import numpy as np

from transferlearn.taggedimage import ImageRecord, MalformedTagFileError, PredictionResult, load_tags


class TaggedImageTests(unittest.TestCase):
    def setUp(self):
        self.tmp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp_dir.name)

    def tearDown(self):
        self.tmp_dir.cleanup()

    def _write(self, text):
        path = self.root / "tags.tsv"
        path.write_text(text)
        return path

    def test_load_tags(self):
        records = load_tags(self._write("toaster.jpg\ttoaster\nhotdog.jpg\thotdog\n\ntoaster2.jpg\ttoaster\n"))
        self.assertEqual(records, [ImageRecord("toaster.jpg", "toaster"),
                                   ImageRecord("hotdog.jpg", "hotdog"),
                                   ImageRecord("toaster2.jpg", "toaster")])

    def test_windows_line_endings(self):
        records = load_tags(self._write("toaster.jpg\ttoaster\r\nhotdog.jpg\thotdog\r\n"))
        self.assertEqual([r.label for r in records], ["toaster", "hotdog"])

    def test_wrong_field_count(self):
        path = self._write("toaster.jpg\ttoaster\nhotdog.jpg\thotdog\textra\n")
        with self.assertRaises(MalformedTagFileError) as context:
            load_tags(path)
        self.assertIn(":2:", str(context.exception))

    def test_missing_label(self):
        with self.assertRaises(MalformedTagFileError):
            load_tags(self._write("toaster.jpg\t\n"))

    def test_missing_path(self):
        with self.assertRaises(ValueError):
            load_tags(self._write("\ttoaster\n"))

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            load_tags(self.root / "nope.tsv")

    def test_prediction_result(self):
        prediction = PredictionResult(record=ImageRecord("/some/where/toaster3.jpg"),
                                      scores=np.array([0.9, 0.1]),
                                      predicted_label="toaster")
        self.assertAlmostEqual(prediction.probability, 0.9, places=6)
        self.assertTrue(str(prediction).startswith("toaster3.jpg class: toaster probability: 0.9"))
        self.assertIsNone(prediction.record.label)


if __name__ == "__main__":
    unittest.main()
