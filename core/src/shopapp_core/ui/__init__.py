"""Presentation shell serving.

The shell itself is a static page under ./frontend (./frontend/dist in
production); this package only serves it and owns the few server-rendered
helper pages (exit-iframe redirect).
"""

from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = BASE_DIR / "templates"
