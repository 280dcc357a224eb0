# file: clients/store.py
"""JSON-file document store.

Each collection is a list of dict documents persisted to one JSON file and
rewritten after every mutation. Filters follow the usual document-database
shape: ``{"field": value}`` for equality, ``{"field": {"$op": arg}}`` for the
operators below and ``{"$or": [...]}`` / ``{"$and": [...]}`` for composition.
"""
from __future__ import annotations
import asyncio
import copy
import json
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

log = logging.getLogger("store")

Document = Dict[str, Any]
Filter = Dict[str, Any]

ASCENDING = 1
DESCENDING = -1

_MISSING = object()


class StoreError(RuntimeError):
    """A store operation could not be completed."""


class DuplicateKeyError(StoreError):
    def __init__(self, field: str, value: Any):
        super().__init__(f"duplicate value for unique field {field!r}: {value!r}")
        self.field = field
        self.value = value


def _op_matches(value: Any, op: str, arg: Any) -> bool:
    present = value is not _MISSING
    if op == "$exists":
        return present == bool(arg)
    if op == "$ne":
        return not present or value != arg
    if op == "$in":
        return present and value in arg
    if op == "$nin":
        return not present or value not in arg
    if op in ("$gte", "$gt", "$lte", "$lt"):
        if not present or value is None:
            return False
        try:
            if op == "$gte":
                return value >= arg
            if op == "$gt":
                return value > arg
            if op == "$lte":
                return value <= arg
            return value < arg
        except TypeError:
            return False
    raise StoreError(f"unsupported filter operator {op}")


def matches(doc: Document, flt: Optional[Filter]) -> bool:
    if not flt:
        return True
    for key, cond in flt.items():
        if key == "$or":
            if not any(matches(doc, sub) for sub in cond):
                return False
        elif key == "$and":
            if not all(matches(doc, sub) for sub in cond):
                return False
        elif isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
            value = doc.get(key, _MISSING)
            if not all(_op_matches(value, op, arg) for op, arg in cond.items()):
                return False
        elif doc.get(key, _MISSING) != cond:
            return False
    return True


def _sort_key(field: str):
    # Missing / None sort first, like a document database does for ascending order
    def key(doc: Document) -> Tuple[int, Any]:
        value = doc.get(field)
        return (0, 0) if value is None else (1, value)
    return key


class Collection:
    """One persisted collection with optional unique fields."""

    def __init__(self, path: Path, unique: Iterable[str] = ()):
        self.path = Path(path)
        self.unique = tuple(unique)
        self.lock = asyncio.Lock()
        self.docs: List[Document] = self._load_json(self.path, [])

    @staticmethod
    def _load_json(path: Path, default):
        """Load JSON file; a corrupt file is a hard error rather than silent data loss."""
        if not path.exists():
            return default
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise StoreError(f"cannot load {path}: {e}") from e

    def _save(self, docs: Optional[List[Document]] = None) -> None:
        """Persist `docs` (default: current docs). Callers swap memory in only after this returns."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(self.docs if docs is None else docs, f, indent=2, default=str)
            tmp.replace(self.path)
        except OSError as e:
            raise StoreError(f"cannot write {self.path}: {e}") from e

    def _check_unique(self, doc: Document) -> None:
        for field in self.unique:
            value = doc.get(field)
            if value in (None, ""):
                continue
            if any(d.get(field) == value for d in self.docs):
                raise DuplicateKeyError(field, value)

    async def insert_one(self, doc: Document) -> str:
        async with self.lock:
            doc = copy.deepcopy(doc)
            doc.setdefault("id", uuid.uuid4().hex)
            self._check_unique(doc)
            docs = self.docs + [doc]
            self._save(docs)
            self.docs = docs
            return doc["id"]

    async def find_one(self, flt: Optional[Filter] = None) -> Optional[Document]:
        for d in self.docs:
            if matches(d, flt):
                return copy.deepcopy(d)
        return None

    async def find(
        self,
        flt: Optional[Filter] = None,
        sort: Optional[Sequence[Tuple[str, int]]] = None,
        limit: Optional[int] = None,
    ) -> List[Document]:
        out = [d for d in self.docs if matches(d, flt)]
        # Apply keys last-to-first so the first sort key dominates
        for field, direction in reversed(sort or ()):
            out.sort(key=_sort_key(field), reverse=direction == DESCENDING)
        if limit is not None:
            out = out[:limit]
        return copy.deepcopy(out)

    async def count(self, flt: Optional[Filter] = None) -> int:
        return sum(1 for d in self.docs if matches(d, flt))

    async def _update(self, flt: Optional[Filter], set_: Optional[Document],
                      unset: Iterable[str], many: bool) -> int:
        async with self.lock:
            modified = 0
            docs = []
            for d in self.docs:
                if (modified and not many) or not matches(d, flt):
                    docs.append(d)
                    continue
                d = copy.deepcopy(d)
                if set_:
                    d.update(copy.deepcopy(set_))
                for field in unset:
                    d.pop(field, None)
                docs.append(d)
                modified += 1
            if modified:
                self._save(docs)
                self.docs = docs
            return modified

    async def update_one(self, flt: Filter, set_: Optional[Document] = None,
                         unset: Iterable[str] = ()) -> int:
        return await self._update(flt, set_, tuple(unset), many=False)

    async def update_many(self, flt: Filter, set_: Optional[Document] = None,
                          unset: Iterable[str] = ()) -> int:
        return await self._update(flt, set_, tuple(unset), many=True)


class DocumentStore:
    """The record store: company records, dispatch run logs, counters."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.companies = Collection(self.data_dir / "companies.json", unique=("external_job_id",))
        self.run_logs = Collection(self.data_dir / "run_logs.json")
        self.counters = Collection(self.data_dir / "counters.json")
        log.info("document store ready at %s (%d records)", self.data_dir, len(self.companies.docs))

    async def next_sequence(self, name: str = "sequence_number") -> int:
        """Atomic increment-and-get, seeded from the current maximum on first use."""
        async with self.counters.lock:
            current = next((d for d in self.counters.docs if d.get("id") == name), None)
            if current is None:
                top = max((d.get(name) or 0 for d in self.companies.docs), default=0)
                current = {"id": name, "value": top}
            counter = {"id": name, "value": current["value"] + 1}
            docs = [d for d in self.counters.docs if d.get("id") != name] + [counter]
            self.counters._save(docs)
            self.counters.docs = docs
            return counter["value"]
