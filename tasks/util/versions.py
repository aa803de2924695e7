# Interpreter used to freeze the guest's Python requirements (must match the
# Python version shipped in the guest image)
PYTHON_VERSION = "3.12"

# Guest Python packages
VLLM_VERSION = "0.13.0"
DOCLING_SERVE_VERSION = "1.11.0"

# PyTorch wheels index for the CUDA version in the guest
PYTORCH_INDEX_URL = "https://download.pytorch.org/whl/cu128"
