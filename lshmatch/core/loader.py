"""Reading entity corpora from CSV and JSON-lines files."""

import csv
import json
import logging
from pathlib import Path
from typing import List, Union

from ..errors import ConfigurationError
from .types import Entity, coerce_entities

logger = logging.getLogger(__name__)

JSONL_SUFFIXES = {".jsonl", ".ndjson"}


def load_entities(path: Union[str, Path]) -> List[Entity]:
    """
    Load ``(id, text)`` entities from a file.

    ``.jsonl``/``.ndjson`` files hold one ``{"id": ..., "text": ...}`` object
    per line; anything else is read as CSV with an ``id,text`` header.

    Raises:
        ConfigurationError: if the file is missing or a row is malformed
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Entity file not found: {path}", parameter="path", value=str(path))

    if path.suffix.lower() in JSONL_SUFFIXES:
        raw = _read_jsonl(path)
    else:
        raw = _read_csv(path)

    entities = coerce_entities(raw)
    logger.info(f"Loaded {len(entities)} entities from {path}")
    return entities


def _read_jsonl(path: Path) -> List[tuple]:
    rows = []
    with open(path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                obj = json.loads(line)
                rows.append((int(obj["id"]), obj["text"]))
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                raise ConfigurationError(
                    f"{path}:{lineno}: expected an object with 'id' and 'text' ({e})",
                    parameter="path",
                    value=str(path),
                ) from e
    return rows


def _read_csv(path: Path) -> List[tuple]:
    rows = []
    with open(path, "r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        if not reader.fieldnames or not {"id", "text"} <= set(reader.fieldnames):
            raise ConfigurationError(
                f"{path}: CSV header must contain 'id' and 'text' columns",
                parameter="path",
                value=str(path),
            )
        for lineno, row in enumerate(reader, start=2):
            try:
                rows.append((int(row["id"]), row["text"] or ""))
            except (TypeError, ValueError) as e:
                raise ConfigurationError(
                    f"{path}:{lineno}: invalid id {row.get('id')!r}", parameter="path", value=str(path)
                ) from e
    return rows
