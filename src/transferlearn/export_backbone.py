import sys

from pathlib import Path

from transferlearn.configuration import Configuration
from transferlearn.featureextractor import export_backbone


def main():
    configuration = Configuration(Path(sys.argv[1])) if len(sys.argv) > 1 else Configuration()
    print(f"Downloading pretrained {configuration['model']['backbone']} weights...")
    weights_path = export_backbone(configuration)
    print(f"Saved backbone weights to {weights_path}")


if __name__ == '__main__':
    main()
