"""Load JSON snapshots of products, batches and sales into the ledger store."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping

from ..persistence import LedgerRepository, chunked

logger = logging.getLogger(__name__)

# Keys under which exports nest the record list, checked in order.
_WRAPPER_KEYS = ("data", "items", "records", "results")


def read_snapshot(path: Path | str) -> list[dict[str, Any]]:
    """Return the records stored in a JSON snapshot file.

    The file may hold a bare list of objects or an object wrapping that list
    under ``data``, ``items``, ``records`` or ``results``.
    """

    with Path(path).open(encoding="utf-8") as handle:
        payload = json.load(handle)

    if isinstance(payload, dict):
        for key in _WRAPPER_KEYS:
            if isinstance(payload.get(key), list):
                payload = payload[key]
                break
        else:
            raise ValueError(f"{path}: expected a list of records or a wrapped list")
    if not isinstance(payload, list):
        raise ValueError(f"{path}: expected a list of records")
    return [record for record in payload if isinstance(record, dict)]


def load_snapshots(
    repo: LedgerRepository,
    snapshots: Mapping[str, Iterable[dict[str, Any]]],
    *,
    batch_size: int = 100,
) -> dict[str, int]:
    """Persist each resource's records in chunks; returns stored counts."""

    unknown = sorted(set(snapshots) - set(LedgerRepository.RESOURCES))
    if unknown:
        raise ValueError(f"Unknown resources requested: {', '.join(unknown)}")

    totals: dict[str, int] = {}
    for resource in LedgerRepository.RESOURCES:
        if resource not in snapshots:
            continue
        total = 0
        for batch in chunked(snapshots[resource], batch_size):
            saved = repo.upsert_records(resource, batch)
            total += saved
            logger.debug(
                "Stored chunk of %s (%s/%s records)", resource, saved, len(batch)
            )
        totals[resource] = total
        logger.info("%s load complete: %s records", resource, total)
    return totals


__all__ = ["load_snapshots", "read_snapshot"]
