#!/usr/bin/env python3
"""
File persistence helpers for the resource-control benchmark orchestrator.

Result and calibration files are JSON. Job files and base-arguments files
are loaded with PyYAML, which also accepts plain JSON, and are saved back in
the format their extension suggests.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar, Union

import yaml

from infra.errors import PersistenceError

logger = logging.getLogger(__name__)

DEBUG_DUMP_PATH = "/tmp/rb-debug-dump.json"

T = TypeVar("T")

PathLike = Union[str, Path]


def is_yaml_path(path: PathLike) -> bool:
    """Check whether a file should be written as YAML."""
    return Path(path).suffix.lower() in (".yaml", ".yml")


def read_json(path: PathLike) -> Any:
    """
    Read a JSON document.

    Raises:
        FileNotFoundError: If the file doesn't exist
        PersistenceError: If the file can't be read or parsed
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        raise
    except (OSError, json.JSONDecodeError) as e:
        raise PersistenceError(f"failed to read {str(path)!r} ({e})") from e


def read_yaml(path: PathLike) -> Any:
    """
    Read a YAML (or JSON) document.

    Raises:
        FileNotFoundError: If the file doesn't exist
        PersistenceError: If the file can't be read or parsed
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    except FileNotFoundError:
        raise
    except (OSError, yaml.YAMLError) as e:
        raise PersistenceError(f"failed to read {str(path)!r} ({e})") from e


def write_atomic(path: PathLike, content: str) -> None:
    """
    Write text to a file by renaming a temporary file over it.

    A crash mid-write leaves the previous content in place.
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
    except OSError as e:
        raise PersistenceError(f"failed to write {str(path)!r} ({e})") from e


def write_json(path: PathLike, obj: Any) -> None:
    """Write an object as indented JSON."""
    write_atomic(path, json.dumps(obj, indent=2) + "\n")


def write_yaml(path: PathLike, obj: Any) -> None:
    """Write an object as block-style YAML, keeping key order."""
    write_atomic(path, yaml.safe_dump(obj, default_flow_style=False, sort_keys=False))


def parse_or_dump(value: Any, parse: Callable[[Any], T], dump_path: Optional[str] = None) -> T:
    """
    Parse a loaded document, dumping it for inspection if parsing fails.

    Args:
        value: Loaded JSON value
        parse: Function converting the value, raising on malformed input
        dump_path: Where to write the offending value (default: DEBUG_DUMP_PATH)

    Returns:
        The parsed object

    Raises:
        PersistenceError: If parse fails; the message names the dump file
    """
    try:
        return parse(value)
    except (KeyError, TypeError, ValueError) as e:
        if dump_path is None:
            dump_path = DEBUG_DUMP_PATH
        try:
            with open(dump_path, "w", encoding="utf-8") as f:
                json.dump(value, f, indent=2)
        except OSError as dump_err:
            logger.warning(f"Failed to dump content to {dump_path!r} ({dump_err})")
            raise PersistenceError(f"{e}") from e
        raise PersistenceError(f"{e} (content dumped to {dump_path!r})") from e
