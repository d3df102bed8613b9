from __future__ import annotations
import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List

from .eval.schema import ReferenceRecord
from .schema import CandidateOutput

LOG = logging.getLogger(__name__)

IMAGE_KEY_SEPARATOR = "__"


def _read_json(path: Path):
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def load_reference(path: str | Path) -> ReferenceRecord:
    """
    Load one reference annotation file.

    Expected keys: note (str), highlights (list of str), and optionally
    day, consultation, presenting_complaint.

    Raises:
        FileNotFoundError: file does not exist
        ValueError: not valid JSON or missing the reference note
    """
    path = Path(path)
    try:
        data = _read_json(path)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in reference {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Expected JSON object in reference {path}, got {type(data).__name__}")
    try:
        return ReferenceRecord.from_dict(data)
    except ValueError as exc:
        raise ValueError(f"{path}: {exc}") from exc


def load_references(reference_dir: str | Path, image_to_reference: Dict[str, str],
                    strict: bool = False) -> Dict[str, ReferenceRecord]:
    """
    Load the references for every mapped image.

    A mapped file that does not exist is logged and left out; the images it
    covers are then skipped by the batch run. An unreadable or malformed file
    is left out the same way, unless ``strict`` is set.

    Returns:
        image id -> ReferenceRecord
    """
    reference_dir = Path(reference_dir)
    references = {}
    for image, filename in image_to_reference.items():
        path = reference_dir / filename
        if not path.exists():
            LOG.warning("Reference not found for %s: %s", image, path)
            continue
        try:
            references[image] = load_reference(path)
        except (OSError, ValueError) as exc:
            if strict:
                raise
            LOG.warning("Skipping malformed reference for %s: %s", image, exc)
    return references


def load_candidate(path: str | Path) -> CandidateOutput:
    """
    Load one batch result file.

    Raises:
        FileNotFoundError: file does not exist
        ValueError: not valid JSON
        pydantic.ValidationError: metadata is missing or malformed
    """
    path = Path(path)
    try:
        data = _read_json(path)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in result file {path}: {exc}") from exc
    return CandidateOutput.from_dict(data)


def image_key(path: str | Path) -> str:
    """Image id of a result file: the file name part before ``__``."""
    return Path(path).name.split(IMAGE_KEY_SEPARATOR, 1)[0]


def discover_result_files(results_dir: str | Path, prefixes: Iterable[str]) -> List[Path]:
    """
    List result files (``*.json``) whose names start with one of ``prefixes``.

    Sorted by file name so runs are reproducible.
    """
    results_dir = Path(results_dir)
    if not results_dir.is_dir():
        raise FileNotFoundError(f"Results directory not found: {results_dir}")
    prefixes = tuple(prefixes)
    files = [
        p for p in results_dir.iterdir()
        if p.is_file() and p.suffix == ".json" and p.name.startswith(prefixes)
    ]
    return sorted(files, key=lambda p: p.name)
