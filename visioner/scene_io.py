"""Load and save scene snapshots from/to JSON files.

A snapshot holds everything the engine reads from the host: scene darkness
and grid, tokens with their actors, placed lights, regions and walls (see
``types.Scene.from_dict`` for the schema). Hosts without a live canvas,
and the tests, drive the engine from these files.
"""

from __future__ import annotations

import json
from pathlib import Path

from .errors import SceneFormatError
from .types import Scene

# scenes/ sits next to the visioner package
_SCENES_DIR = Path(__file__).parent.parent / "scenes"


def bundled_scene_path(name: str) -> Path:
    """Return the path to a bundled test scene JSON file.

    Args:
        name: Scene name without extension (e.g. "torchlit_hall").

    Returns:
        Path to ``scenes/test/{name}.json``.
    """
    return _SCENES_DIR / "test" / f"{name}.json"


def load_scene(path: Path) -> Scene:
    """Load a JSON scene file and return a typed ``Scene``.

    Raises ``SceneFormatError`` when the file is not valid JSON or is
    missing required fields.
    """
    data = load_scene_dict(path)
    try:
        return Scene.from_dict(data)
    except (KeyError, TypeError, ValueError, IndexError) as e:
        raise SceneFormatError(f"{path}: malformed scene: {e}") from e


def load_scene_dict(path: Path) -> dict:
    """Load a JSON scene file and return the raw dict."""
    try:
        with open(path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise SceneFormatError(f"{path}: invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise SceneFormatError(f"{path}: top level must be an object")
    return data


def save_scene_dict(data: dict, path: Path) -> None:
    """Write a raw scene dict to a JSON file.

    Creates parent directories if they don't exist.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
        f.write("\n")


def save_scene(scene: Scene, path: Path) -> None:
    save_scene_dict(scene.to_dict(), path)
