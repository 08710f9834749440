import os

# Recent mlflow releases refuse file-based tracking URIs (used by the tests) unless opted in.
os.environ.setdefault("MLFLOW_ALLOW_FILE_STORE", "true")
