from transferlearn.configuration import Configuration
from transferlearn.taggedimage import load_tags
from transferlearn.transferclassifier import TransferClassifier
from pathlib import Path

import streamlit as st
import sys
import tempfile
import traceback

configPathStr = sys.argv[1] if len(sys.argv) > 1 else None


@st.cache_resource
def train(config_path):
    configuration = Configuration(Path(config_path)) if config_path else Configuration()
    transfer_classifier = TransferClassifier.for_training(configuration)
    _, metrics = transfer_classifier.evaluate(load_tags(configuration.asset_paths().test_tags))
    return transfer_classifier, metrics


st.title("Transfer learning image classifier")

transfer_classifier = None
try:
    print("Training classifier from config %s" % (configPathStr or "defaults"))
    transfer_classifier, metrics = train(configPathStr)
except Exception as err:
    with st.container():
        st.error("An error occurred")
        st.code("%s\n%s" % (err, traceback.format_exc()))

if transfer_classifier:
    st.subheader("Classification metrics")
    st.metric("Log-loss", f"{metrics.log_loss:.4f}")
    st.table({"label": transfer_classifier.label_encoder.labels, "log-loss": metrics.per_class_log_loss})

    uploaded = st.file_uploader("Image to classify", type=["png", "jpg", "jpeg", "bmp", "gif", "tiff"])
    if uploaded is not None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            image_path = Path(tmp_dir) / uploaded.name
            image_path.write_bytes(uploaded.getvalue())
            prediction = transfer_classifier.predict(image_path)
        st.image(uploaded.getvalue(), caption=uploaded.name)
        st.text(str(prediction))
