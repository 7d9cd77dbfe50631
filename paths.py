# paths.py

import os
from pathlib import Path

# Project root (this file lives in the root directory)
ROOT = Path(__file__).parent

# Local database and uploaded images
DATA_DIR = ROOT / "Data"
UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", str(DATA_DIR / "uploads")))

def data_file(filename: str) -> Path:
    return DATA_DIR / filename
