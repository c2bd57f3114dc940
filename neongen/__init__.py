"""NeonGen Studio - LoRA style training and generation backend."""

__version__ = "0.1.0"
