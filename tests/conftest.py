"""Shared fixtures: small synthetic images written to tmp_path."""
from pathlib import Path

import pytest
from PIL import Image


@pytest.fixture
def make_image(tmp_path):
    def _make(name: str, size=(800, 600), color=(200, 30, 30), directory: Path = None) -> Path:
        target_dir = directory or tmp_path
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / name
        img = Image.new("RGB", size, color=color)
        img.save(path, format=_format_for(path))
        return path

    return _make


def _format_for(path: Path) -> str:
    extension = path.suffix.lstrip(".").upper()
    return {"JPG": "JPEG", "TIF": "TIFF", "PNM": "PPM", "": "PNG"}.get(extension, extension)
