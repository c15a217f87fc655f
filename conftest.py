"""Global pytest configuration."""

import os
from pathlib import Path

# Isolate settings from the developer's environment before any imports:
# an empty key selects the deterministic stub client
os.environ["OPENAI_API_KEY"] = ""
os.environ["PRECEDENTS_PATH"] = ""
os.environ["TEMPLATES_DIR"] = str(Path(__file__).parent / "templates")
os.environ.setdefault("PARALLEL_BY_DEFAULT", "false")
