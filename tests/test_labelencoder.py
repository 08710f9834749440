import unittest

from transferlearn.labelencoder import LabelEncoder


class LabelEncoderTests(unittest.TestCase):
    def test_bijection(self):
        labels = ["toaster", "hotdog", "toaster", "teddy", "hotdog", "teddy"]
        encoder = LabelEncoder.fit(labels)
        self.assertEqual(len(encoder), 3)
        keys = sorted(encoder.to_key(label) for label in set(labels))
        self.assertEqual(keys, [0, 1, 2])
        for label in set(labels):
            self.assertEqual(encoder.to_label(encoder.to_key(label)), label)

    def test_first_appearance_order(self):
        encoder = LabelEncoder.fit(["toaster", "hotdog", "toaster"])
        self.assertEqual(encoder.labels, ["toaster", "hotdog"])
        self.assertEqual(encoder.to_key("toaster"), 0)
        self.assertEqual(encoder.to_key("hotdog"), 1)

    def test_stable_across_fits(self):
        labels = ["b", "a", "c", "a"]
        self.assertEqual(LabelEncoder.fit(labels).labels, LabelEncoder.fit(labels).labels)

    def test_unknown(self):
        encoder = LabelEncoder.fit(["toaster"])
        self.assertNotIn("hotdog", encoder)
        with self.assertRaises(KeyError):
            encoder.to_key("hotdog")
        with self.assertRaises(KeyError):
            encoder.to_label(1)
        with self.assertRaises(KeyError):
            encoder.to_label(-1)

    def test_empty(self):
        with self.assertRaises(ValueError):
            LabelEncoder.fit([])


if __name__ == "__main__":
    unittest.main()
