"""YAML rule loading for closing task templates."""
import yaml
from functools import cache
from pathlib import Path

from closing.engine.stages import STAGE_DEFINITIONS

ROOT = Path(__file__).resolve().parent / "workflow"


@cache
def _load(path: Path):
    return yaml.safe_load(path.read_text())


def task_templates() -> list[dict]:
    return _load(ROOT / "closing_tasks.yaml")["tasks"]


def missing_stage_titles() -> list[str]:
    """Required stage titles that no task template creates."""
    titles = {t["title"] for t in task_templates()}
    return [req for s in STAGE_DEFINITIONS for req in s.required_task_titles if req not in titles]
