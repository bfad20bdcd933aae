"""Lot persistence: the store interface and a YAML-file implementation."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Any, Callable, Iterable

import yaml

from tui_chantier.models import Company, Lot, LotStatus, parse_date

logger = logging.getLogger(__name__)

LOTS_FILE = "lots.yaml"

UPDATABLE_FIELDS = frozenset({"name", "start_date", "end_date", "status", "color", "company_id"})


class LotStoreError(Exception):
    """A store rejected or failed to persist a command."""


class LotStore(ABC):
    """Authoritative list of lots. The schedule reads snapshots and issues commands."""

    def __init__(self) -> None:
        self._listeners: list[Callable[[], None]] = []

    @abstractmethod
    def snapshot(self) -> tuple[Lot, ...]:
        """Current lots in store order."""

    def companies(self) -> tuple[Company, ...]:
        return ()

    @abstractmethod
    async def update_lot(self, lot_id: str, **fields: Any) -> Lot:
        """Partial update. Only the given fields change."""

    @abstractmethod
    async def create_lot(self, name: str, start_date: date, end_date: date) -> Lot:
        ...

    @abstractmethod
    async def delete_lot(self, lot_id: str) -> None:
        ...

    def subscribe(self, callback: Callable[[], None]) -> None:
        """Call *callback* after every completed mutation."""
        self._listeners.append(callback)

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback()


def _apply_fields(lot: Lot, fields: dict[str, Any]) -> Lot:
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise LotStoreError(f"cannot update field(s): {', '.join(sorted(unknown))}")
    changes: dict[str, Any] = {}
    for key, value in fields.items():
        if key in ("start_date", "end_date"):
            changes[key] = parse_date(value)
        elif key == "status":
            changes[key] = LotStatus.parse(value)
        elif key == "name":
            name = str(value or "").strip()
            if not name:
                raise LotStoreError("lot name cannot be empty")
            changes[key] = name
        else:
            changes[key] = value or None
    return replace(lot, **changes)


def _check_dates(lot: Lot) -> None:
    if lot.has_dates and lot.start_date > lot.end_date:
        raise LotStoreError(
            f"{lot.name}: start {lot.start_date} is after end {lot.end_date}"
        )


class MemoryLotStore(LotStore):
    """In-process store. Commands are serialized by an asyncio lock."""

    def __init__(self, lots: Iterable[Lot] = (), companies: Iterable[Company] = ()) -> None:
        super().__init__()
        self._lots: list[Lot] = list(lots)
        self._companies: tuple[Company, ...] = tuple(companies)
        self._lock = asyncio.Lock()

    def snapshot(self) -> tuple[Lot, ...]:
        return tuple(self._lots)

    def companies(self) -> tuple[Company, ...]:
        return self._companies

    def get(self, lot_id: str) -> Lot | None:
        for lot in self._lots:
            if lot.id == lot_id:
                return lot
        return None

    def _require(self, lot_id: str) -> Lot:
        lot = self.get(lot_id)
        if lot is None:
            raise LotStoreError(f"unknown lot: {lot_id}")
        return lot

    async def update_lot(self, lot_id: str, **fields: Any) -> Lot:
        async with self._lock:
            updated = _apply_fields(self._require(lot_id), fields)
            _check_dates(updated)
            lots = [updated if lot.id == lot_id else lot for lot in self._lots]
            await self._persist(lots)
            self._lots = lots
        logger.info("updated lot %s (%s)", lot_id, ", ".join(sorted(fields)))
        self._notify()
        return updated

    async def create_lot(self, name: str, start_date: date, end_date: date) -> Lot:
        name = (name or "").strip()
        if not name:
            raise LotStoreError("lot name cannot be empty")
        async with self._lock:
            sort_order = max((lot.sort_order for lot in self._lots), default=-1) + 1
            lot = Lot(name=name, start_date=start_date, end_date=end_date, sort_order=sort_order)
            _check_dates(lot)
            lots = [*self._lots, lot]
            await self._persist(lots)
            self._lots = lots
        logger.info("created lot %s (%s)", lot.id, name)
        self._notify()
        return lot

    async def delete_lot(self, lot_id: str) -> None:
        async with self._lock:
            self._require(lot_id)
            lots = [lot for lot in self._lots if lot.id != lot_id]
            await self._persist(lots)
            self._lots = lots
        logger.info("deleted lot %s", lot_id)
        self._notify()

    async def _persist(self, lots: list[Lot]) -> None:
        """Hook for durable stores. Raising here leaves the snapshot untouched."""


class YamlLotStore(MemoryLotStore):
    """Store backed by ``lots.yaml`` in the project directory."""

    def __init__(
        self,
        path: Path,
        lots: Iterable[Lot] = (),
        companies: Iterable[Company] = (),
    ) -> None:
        super().__init__(lots, companies)
        self.path = path

    async def _persist(self, lots: list[Lot]) -> None:
        try:
            await asyncio.to_thread(write_lots_file, self.path, lots, self._companies)
        except OSError as e:
            raise LotStoreError(f"could not write {self.path.name}: {e}") from e


def read_lots_file(path: Path) -> tuple[list[Lot], list[Company]]:
    """Parse ``lots.yaml``. Malformed entries are skipped with a warning."""
    if not path.is_file():
        return [], []
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise LotStoreError(f"{path.name} is not valid YAML: {e}") from e
    if not isinstance(data, dict):
        return [], []

    companies: list[Company] = []
    for item in data.get("companies") or []:
        if isinstance(item, dict) and item.get("id") and item.get("name"):
            companies.append(Company(id=str(item["id"]), name=str(item["name"])))
        else:
            logger.warning("%s: skipping malformed company entry %r", path.name, item)

    lots: list[Lot] = []
    for index, item in enumerate(data.get("lots") or []):
        if not isinstance(item, dict):
            logger.warning("%s: lot #%d is not a mapping", path.name, index)
            continue
        try:
            lot = Lot.from_dict(item)
        except (TypeError, ValueError) as e:
            logger.warning("%s: skipping lot #%d: %s", path.name, index, e)
            continue
        if lot.has_dates and lot.start_date > lot.end_date:
            logger.warning("%s: lot %r has start after end, swapping", path.name, lot.name)
            lot = lot.with_dates(lot.end_date, lot.start_date)
        lots.append(lot)
    return lots, companies


def write_lots_file(
    path: Path,
    lots: Iterable[Lot],
    companies: Iterable[Company] = (),
    backup: bool = True,
) -> None:
    """Write lots and companies with a .bak backup and an atomic rename."""
    data: dict[str, Any] = {}
    company_list = [{"id": c.id, "name": c.name} for c in companies]
    if company_list:
        data["companies"] = company_list
    data["lots"] = [lot.to_dict() for lot in lots]
    content = yaml.safe_dump(data, allow_unicode=True, sort_keys=False)

    if backup and path.exists():
        bak_path = path.with_suffix(path.suffix + ".bak")
        try:
            shutil.copyfile(path, bak_path)
        except OSError as e:
            logger.warning("could not back up %s: %s", path, e)

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp", prefix=".tui-chantier-")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def load_store(project_dir: Path) -> YamlLotStore:
    """Open the YAML store of *project_dir* (an empty store if no file yet)."""
    path = project_dir / LOTS_FILE
    lots, companies = read_lots_file(path)
    return YamlLotStore(path, lots, companies)
