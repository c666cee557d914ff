# litedocstore.py
import os
import json
import time
import asyncio
import logging
import operator
import stat
import tempfile
from datetime import date, datetime
from functools import cmp_to_key, lru_cache
from pathlib import Path
from typing import Optional, List, Tuple, Any, Dict, Callable

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


# =========================
# Errors
# =========================
class LiteStoreError(Exception):
    """Base class for store errors."""
    pass

class InvalidQueryError(LiteStoreError):
    """Raised when query syntax is invalid."""
    pass

class InvalidPipelineError(LiteStoreError):
    """Raised when an aggregation pipeline is malformed."""
    pass

class InvalidDocumentError(LiteStoreError):
    """Raised when a document can't be stored in its collection."""
    pass

class UnknownCollectionError(LiteStoreError):
    """Raised when addressing a collection the store doesn't define."""
    pass

class CorruptSnapshotError(LiteStoreError):
    """Raised when the snapshot file can't be read or parsed."""
    pass

class PersistenceError(LiteStoreError):
    """Raised when the snapshot can't be written. In-memory state is kept."""
    pass


# =========================
# Configuration
# =========================
class Settings(BaseSettings):
    """Store configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="LITEDOCSTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    data_dir: Path = Path("data")
    snapshot_filename: str = "db.json"

    strict_queries: bool = Field(
        default=False,
        description="Reject unknown query operators and pipeline stages instead of ignoring them",
    )

    # None writes compact JSON
    snapshot_indent: Optional[int] = 2

    @property
    def snapshot_path(self) -> Path:
        return self.data_dir / self.snapshot_filename


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Collection name -> key field. None marks an append-only collection.
COLLECTIONS: Dict[str, Optional[str]] = {
    "users": "id",
    "dailyStates": "userId",
    "referrals": None,
    "orders": None,
    "notifications": None,
    "ambassadorWaitlist": None,
    "activities": None,
}


# =========================
# Utils
# =========================
_MISSING = object()

def _json_default(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")

def normalize_document(doc: dict) -> dict:
    """Return a JSON-clean deep copy of ``doc`` (datetimes become ISO strings)."""
    if not isinstance(doc, dict):
        raise InvalidDocumentError("Document must be a dict.")
    try:
        return json.loads(json.dumps(doc, default=_json_default, allow_nan=False))
    except (TypeError, ValueError) as e:
        raise InvalidDocumentError(f"Document is not JSON-compatible: {e}") from e

def copy_document(doc: dict) -> dict:
    return json.loads(json.dumps(doc))

def empty_baseline() -> Dict[str, Any]:
    return {name: ({} if key else []) for name, key in COLLECTIONS.items()}

def is_array(x):
    return isinstance(x, (list, tuple, set))


# =========================
# Query engine
# =========================
def _equal(a, b) -> bool:
    if isinstance(b, (datetime, date)):
        b = b.isoformat()
    # True == 1 in Python; documents keep booleans and numbers apart
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(_equal(a[k], b[k]) for k in a)
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(_equal(x, y) for x, y in zip(a, b))
    return a == b

def _ordered(val, arg):
    """Line up a stored value and an argument for <, >. None if not comparable."""
    if val is _MISSING or val is None or arg is None:
        return None
    if isinstance(arg, (datetime, date)) and isinstance(val, str):
        try:
            if isinstance(arg, datetime):
                val = datetime.fromisoformat(val)
            else:
                val = date.fromisoformat(val[:10])
        except ValueError:
            return None
    return val, arg

def _compare(val, arg, test: Callable[[Any, Any], bool]) -> bool:
    pair = _ordered(val, arg)
    if pair is None:
        return False
    try:
        return bool(test(*pair))
    except TypeError:
        return False

def _member(val, arg, op: str) -> bool:
    if not is_array(arg):
        raise InvalidQueryError(f"{op} requires a list.")
    if val is _MISSING:
        return False
    return any(_equal(val, item) for item in arg)

OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "$eq": lambda val, arg: val is not _MISSING and _equal(val, arg),
    "$ne": lambda val, arg: val is _MISSING or not _equal(val, arg),
    "$gt": lambda val, arg: _compare(val, arg, operator.gt),
    "$gte": lambda val, arg: _compare(val, arg, operator.ge),
    "$lt": lambda val, arg: _compare(val, arg, operator.lt),
    "$lte": lambda val, arg: _compare(val, arg, operator.le),
    "$in": lambda val, arg: _member(val, arg, "$in"),
    "$nin": lambda val, arg: not _member(val, arg, "$nin"),
    "$exists": lambda val, arg: (val is not _MISSING) == bool(arg),
}

def _is_operator_object(cond) -> bool:
    return isinstance(cond, dict) and bool(cond) and all(
        isinstance(k, str) and k.startswith("$") for k in cond
    )

def match_query(doc: dict, query: Optional[dict], strict: bool = False) -> bool:
    """True when every field constraint in ``query`` holds for ``doc``.

    Only top-level fields are addressed; a dotted key is looked up verbatim.
    Unknown operators are skipped unless ``strict`` is set.
    """
    if query is None:
        return True
    if not isinstance(query, dict):
        raise InvalidQueryError("Query must be a dict.")
    for key, cond in query.items():
        if isinstance(key, str) and key.startswith("$"):
            if strict:
                raise InvalidQueryError(f"Unsupported top-level operator: {key}")
            continue
        if not _eval_field(doc.get(key, _MISSING), cond, strict):
            return False
    return True

def _eval_field(value, cond, strict: bool) -> bool:
    if not _is_operator_object(cond):
        return value is not _MISSING and _equal(value, cond)
    for op, arg in cond.items():
        test = OPERATORS.get(op)
        if test is None:
            if strict:
                raise InvalidQueryError(f"Unsupported operator: {op}")
            continue
        if not test(value, arg):
            return False
    return True

def filter_docs(docs: List[dict], query: Optional[dict], strict: bool = False) -> List[dict]:
    return [d for d in docs if match_query(d, query, strict)]


# =========================
# Aggregation
# =========================
# Stages always run in this order, wherever they sit in the pipeline list.
STAGE_ORDER = ("$match", "$group", "$sort", "$limit")
DEFAULT_COUNT_FIELD = "referralsCount"

class Accumulator:
    """Folds the documents of one group into a single value.

    ``arg`` is either a ``$field`` reference or a constant.
    """

    def __init__(self, arg=None):
        self.arg = arg

    def value_of(self, doc: dict):
        if isinstance(self.arg, str) and self.arg.startswith("$"):
            return doc.get(self.arg[1:])
        return self.arg

    def add(self, doc: dict) -> None:
        raise NotImplementedError

    def result(self):
        raise NotImplementedError

def _is_number(val) -> bool:
    return isinstance(val, (int, float)) and not isinstance(val, bool)

class CountAccumulator(Accumulator):
    def __init__(self, arg=None):
        super().__init__(arg)
        self.count = 0

    def add(self, doc):
        self.count += 1

    def result(self):
        return self.count

class SumAccumulator(Accumulator):
    def __init__(self, arg=None):
        super().__init__(arg)
        self.total = 0

    def add(self, doc):
        val = self.value_of(doc)
        if _is_number(val):
            self.total += val

    def result(self):
        return self.total

class AvgAccumulator(Accumulator):
    def __init__(self, arg=None):
        super().__init__(arg)
        self.total = 0
        self.count = 0

    def add(self, doc):
        val = self.value_of(doc)
        if _is_number(val):
            self.total += val
            self.count += 1

    def result(self):
        return (self.total / self.count) if self.count else None

class _ExtremeAccumulator(Accumulator):
    pick: Callable[[Any, Any], Any] = min

    def __init__(self, arg=None):
        super().__init__(arg)
        self.best = None

    def add(self, doc):
        val = self.value_of(doc)
        if val is None:
            return
        if self.best is None:
            self.best = val
            return
        try:
            self.best = type(self).pick(self.best, val)
        except TypeError:
            pass  # incomparable values keep the current extreme

    def result(self):
        return self.best

class MinAccumulator(_ExtremeAccumulator):
    pick = min

class MaxAccumulator(_ExtremeAccumulator):
    pick = max

class PushAccumulator(Accumulator):
    def __init__(self, arg=None):
        super().__init__(arg)
        self.items = []

    def add(self, doc):
        self.items.append(self.value_of(doc))

    def result(self):
        return self.items

class AddToSetAccumulator(PushAccumulator):
    def add(self, doc):
        val = self.value_of(doc)
        if not any(_equal(item, val) for item in self.items):
            self.items.append(val)

ACCUMULATORS: Dict[str, type] = {
    "$count": CountAccumulator,
    "$sum": SumAccumulator,
    "$avg": AvgAccumulator,
    "$min": MinAccumulator,
    "$max": MaxAccumulator,
    "$push": PushAccumulator,
    "$addToSet": AddToSetAccumulator,
}

def _accumulator_factories(spec: dict, strict: bool) -> List[Tuple[str, type, Any]]:
    factories = []
    for field, acc in spec.items():
        if field == "_id":
            continue
        if not isinstance(acc, dict) or len(acc) != 1:
            if strict:
                raise InvalidPipelineError(f"Accumulator for '{field}' must be a single-key dict.")
            continue
        op, arg = next(iter(acc.items()))
        cls = ACCUMULATORS.get(op)
        if cls is None:
            if strict:
                raise InvalidPipelineError(f"Unsupported group accumulator: {op}")
            continue
        factories.append((field, cls, arg))
    if not factories:
        factories.append((DEFAULT_COUNT_FIELD, CountAccumulator, None))
    return factories

def _canonical(value):
    # one number type: 1 and 1.0 land in the same group
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, list):
        return [_canonical(v) for v in value]
    if isinstance(value, dict):
        return {k: _canonical(v) for k, v in value.items()}
    return value

def _agg_group(docs: List[dict], spec, strict: bool = False) -> List[dict]:
    if not isinstance(spec, dict):
        raise InvalidPipelineError("$group requires a dict.")
    id_expr = spec.get("_id")
    factories = _accumulator_factories(spec, strict)

    def key_for(d):
        if isinstance(id_expr, str) and id_expr.startswith("$"):
            return d.get(id_expr[1:])
        return id_expr

    # group values may be unhashable; bucket on their JSON form, first-seen order
    buckets: Dict[str, Tuple[Any, List[Tuple[str, Accumulator]]]] = {}
    for d in docs:
        k = key_for(d)
        bucket_key = json.dumps(_canonical(k), sort_keys=True)
        if bucket_key not in buckets:
            buckets[bucket_key] = (k, [(field, cls(arg)) for field, cls, arg in factories])
        for _, acc in buckets[bucket_key][1]:
            acc.add(d)

    out = []
    for k, accs in buckets.values():
        row = {"_id": k}
        for field, acc in accs:
            row[field] = acc.result()
        out.append(row)
    return out

def _greater(x, y) -> bool:
    if x is None or y is None:
        return False
    try:
        return bool(x > y)
    except TypeError:
        return False

def _agg_sort(docs: List[dict], spec) -> List[dict]:
    if not isinstance(spec, dict):
        raise InvalidPipelineError("$sort requires a dict of field -> 1 / -1.")
    keys = list(spec.items())

    def compare(a, b):
        for key, direction in keys:
            x, y = a.get(key), b.get(key)
            if _greater(x, y):
                return -1 if direction == -1 else 1
            if _greater(y, x):
                return 1 if direction == -1 else -1
        return 0

    # sorted() is stable: full ties keep their input order
    return sorted(docs, key=cmp_to_key(compare))

def _agg_limit(docs: List[dict], spec) -> List[dict]:
    if not isinstance(spec, int) or isinstance(spec, bool):
        raise InvalidPipelineError("$limit requires an integer.")
    if spec < 0:
        raise InvalidPipelineError("$limit must not be negative.")
    return docs[:spec]

def _collect_stages(pipeline, strict: bool) -> Dict[str, Any]:
    if not isinstance(pipeline, (list, tuple)):
        raise InvalidPipelineError("Pipeline must be a list of stages.")
    stages: Dict[str, Any] = {}
    for stage in pipeline:
        if not isinstance(stage, dict):
            raise InvalidPipelineError("Each pipeline stage must be a dict.")
        for op, spec in stage.items():
            if op not in STAGE_ORDER:
                if strict:
                    raise InvalidPipelineError(f"Unsupported aggregation stage: {op}")
                logger.debug(f"Ignoring aggregation stage {op}")
                continue
            if op in stages:
                if strict:
                    raise InvalidPipelineError(f"Duplicate aggregation stage: {op}")
                continue
            stages[op] = spec
    return stages

def aggregate_docs(docs: List[dict], pipeline: List[dict], strict: bool = False) -> List[dict]:
    """Run ``pipeline`` over ``docs`` as match, group, sort, limit.

    Each stage kind is applied at most once and in that fixed order,
    regardless of its position in ``pipeline``.
    """
    stages = _collect_stages(pipeline, strict)
    out = list(docs)
    if "$match" in stages:
        out = filter_docs(out, stages["$match"], strict)
    if "$group" in stages:
        out = _agg_group(out, stages["$group"], strict)
    if "$sort" in stages:
        out = _agg_sort(out, stages["$sort"])
    if "$limit" in stages:
        out = _agg_limit(out, stages["$limit"])
    return out


# =========================
# Collections
# =========================
class _Collection:
    def __init__(self, store: "Store", name: str):
        self.store = store
        self.name = name

    def _documents(self) -> List[dict]:
        raise NotImplementedError

    # ----- Read -----
    async def query(self, spec: Optional[dict] = None) -> List[dict]:
        matched = filter_docs(self._documents(), spec, self.store.strict)
        return [copy_document(d) for d in matched]

    async def find_one(self, spec: Optional[dict] = None) -> Optional[dict]:
        for d in self._documents():
            if match_query(d, spec, self.store.strict):
                return copy_document(d)
        return None

    async def count(self, spec: Optional[dict] = None) -> int:
        return len(filter_docs(self._documents(), spec, self.store.strict))

    async def aggregate(self, pipeline: List[dict]) -> List[dict]:
        out = aggregate_docs(self._documents(), pipeline, self.store.strict)
        return [copy_document(d) for d in out]

    def __len__(self) -> int:
        return len(self._documents())

    def __repr__(self):
        return f"{type(self).__name__}({self.name!r})"


class KeyedCollection(_Collection):
    """Documents addressed by a unique key field (``id`` unless configured)."""

    def __init__(self, store: "Store", name: str, key_field: str = "id"):
        super().__init__(store, name)
        self.key_field = key_field

    @property
    def _data(self) -> Dict[str, dict]:
        return self.store._data[self.name]

    def _documents(self) -> List[dict]:
        return list(self._data.values())

    @staticmethod
    def _key(doc_id) -> str:
        # snapshot object keys are strings
        return str(doc_id)

    # ----- Create -----
    async def create(self, document: dict) -> dict:
        """Insert or overwrite by key, persist, return the stored document."""
        doc = normalize_document(document)
        doc_id = doc.get(self.key_field)
        if doc_id is None:
            raise InvalidDocumentError(
                f"Missing key field '{self.key_field}' for collection '{self.name}'."
            )
        async with self.store._lock:
            self._data[self._key(doc_id)] = doc
            await self.store._persist_locked()
        return copy_document(doc)

    # ----- Find -----
    async def find_by_id(self, doc_id) -> Optional[dict]:
        doc = self._data.get(self._key(doc_id))
        return copy_document(doc) if doc is not None else None

    # ----- Update -----
    async def update(self, doc_id, patch: dict) -> Optional[dict]:
        """Shallow-merge ``patch`` into an existing document.

        Not an upsert: an absent id returns None and nothing is written.
        The key field can't be changed through a patch.
        """
        patch = normalize_document(patch)
        key = self._key(doc_id)
        async with self.store._lock:
            current = self._data.get(key)
            if current is None:
                return None
            merged = dict(current)
            merged.update(patch)
            merged[self.key_field] = current[self.key_field]
            self._data[key] = merged
            await self.store._persist_locked()
        return copy_document(merged)

    # ----- Delete -----
    async def delete(self, doc_id) -> bool:
        key = self._key(doc_id)
        async with self.store._lock:
            if key not in self._data:
                return False
            del self._data[key]
            await self.store._persist_locked()
        return True


class AppendOnlyCollection(_Collection):
    """Ordered documents with no uniqueness constraint."""

    @property
    def _data(self) -> List[dict]:
        return self.store._data[self.name]

    def _documents(self) -> List[dict]:
        return list(self._data)

    async def append(self, document: dict) -> dict:
        doc = normalize_document(document)
        async with self.store._lock:
            self._data.append(doc)
            await self.store._persist_locked()
        return copy_document(doc)


# =========================
# Persistence
# =========================
def _coerce_snapshot(raw) -> Dict[str, Any]:
    """Validate a parsed snapshot and fill in collections it lacks."""
    if not isinstance(raw, dict):
        raise CorruptSnapshotError("Snapshot root must be an object.")
    data = empty_baseline()
    for name, contents in raw.items():
        if name not in COLLECTIONS:
            logger.warning(f"Dropping unknown collection '{name}' from snapshot")
            continue
        if COLLECTIONS[name]:
            if not isinstance(contents, dict) or not all(isinstance(d, dict) for d in contents.values()):
                raise CorruptSnapshotError(f"Collection '{name}' must map ids to documents.")
            contents = _rekey(name, COLLECTIONS[name], contents)
        else:
            if not isinstance(contents, list) or not all(isinstance(d, dict) for d in contents):
                raise CorruptSnapshotError(f"Collection '{name}' must be a list of documents.")
        data[name] = contents
    return data

def _rekey(name: str, key_field: str, contents: Dict[str, dict]) -> Dict[str, dict]:
    """Index a keyed collection by its documents' own key field."""
    out: Dict[str, dict] = {}
    for map_key, doc in contents.items():
        doc_id = doc.get(key_field)
        if doc_id is None:
            raise CorruptSnapshotError(f"Document '{map_key}' in '{name}' has no '{key_field}'.")
        key = str(doc_id)
        if key in out:
            raise CorruptSnapshotError(f"Duplicate {key_field} '{key}' in '{name}'.")
        if key != map_key:
            logger.warning(f"Re-keying '{map_key}' as '{key}' in collection '{name}'")
        out[key] = doc
    return out

def load_snapshot(path) -> Optional[Dict[str, Any]]:
    """Read the snapshot at ``path``. None if the file doesn't exist."""
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError, ValueError) as e:
        raise CorruptSnapshotError(f"Can't read snapshot {path}: {e}") from e
    return _coerce_snapshot(raw)

def dump_snapshot(data: Dict[str, Any], indent: Optional[int] = 2) -> str:
    return json.dumps(data, indent=indent, ensure_ascii=False, default=_json_default, allow_nan=False)

DEFAULT_SNAPSHOT_MODE = 0o644

def _fsync_dir(directory: Path) -> None:
    if not hasattr(os, "O_DIRECTORY"):
        return
    fd = os.open(directory, os.O_RDONLY | os.O_DIRECTORY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)

def _atomic_write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        # mkstemp creates 0600; keep the snapshot's existing mode
        mode = stat.S_IMODE(os.stat(path).st_mode) if path.exists() else DEFAULT_SNAPSHOT_MODE
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
        _fsync_dir(path.parent)
    except Exception:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise

def write_snapshot(path, data: Dict[str, Any], indent: Optional[int] = 2) -> None:
    """Atomically replace the snapshot at ``path`` with ``data``."""
    _atomic_write(Path(path), dump_snapshot(data, indent))

def _quarantine(path: Path) -> Optional[Path]:
    target = path.with_name(f"{path.name}.corrupt-{time.strftime('%Y%m%d%H%M%S')}")
    try:
        os.replace(path, target)
    except OSError as e:
        logger.warning(f"Could not move corrupt snapshot {path} aside: {e}")
        return None
    return target


# =========================
# Store
# =========================
class Store:
    """
    All collections of the process, mirrored to one JSON snapshot.
    Usage:
        store = await Store.open("data/db.json")
        await store.users.create({"id": "u1", "name": "A"})
        await store.referrals.append({"referrerUserId": "u1", "status": "pending"})
        top = await store.aggregate("referrals", [{"$group": {"_id": "$referrerUserId"}}])

    Every mutation persists the whole snapshot before returning.
    """

    def __init__(self, path, data: Optional[Dict[str, Any]] = None,
                 strict: bool = False, indent: Optional[int] = 2):
        self.path = Path(path)
        self.strict = strict
        self.indent = indent
        self._data = data if data is not None else empty_baseline()
        self._lock = asyncio.Lock()
        self._collections: Dict[str, _Collection] = {}
        for name, key_field in COLLECTIONS.items():
            if key_field:
                self._collections[name] = KeyedCollection(self, name, key_field)
            else:
                self._collections[name] = AppendOnlyCollection(self, name)

    @classmethod
    async def open(cls, path=None, *, strict: Optional[bool] = None) -> "Store":
        """Load the snapshot, or start from an empty one and write it out.

        A missing or malformed snapshot never fails startup; a malformed one
        is moved aside and logged.
        """
        settings = get_settings()
        path = Path(path) if path is not None else settings.snapshot_path
        if strict is None:
            strict = settings.strict_queries
        try:
            data = await asyncio.to_thread(load_snapshot, path)
        except CorruptSnapshotError as e:
            logger.warning(f"{e}; resetting to an empty store")
            moved = await asyncio.to_thread(_quarantine, path)
            if moved is not None:
                logger.warning(f"Corrupt snapshot kept at {moved}")
            data = None
        store = cls(path, data, strict=strict, indent=settings.snapshot_indent)
        if data is None:
            logger.info(f"Bootstrapping empty store at {path}")
            await store.persist()
        else:
            logger.info(f"Loaded store from {path}")
        return store

    # ----- Collections -----
    def __getitem__(self, name: str) -> _Collection:
        try:
            return self._collections[name]
        except KeyError:
            raise UnknownCollectionError(f"Unknown collection: {name}") from None

    def collection(self, name: str) -> _Collection:
        return self[name]

    def collection_names(self) -> List[str]:
        return list(self._collections)

    @property
    def users(self) -> KeyedCollection:
        return self._collections["users"]

    @property
    def daily_states(self) -> KeyedCollection:
        return self._collections["dailyStates"]

    @property
    def referrals(self) -> AppendOnlyCollection:
        return self._collections["referrals"]

    @property
    def orders(self) -> AppendOnlyCollection:
        return self._collections["orders"]

    @property
    def notifications(self) -> AppendOnlyCollection:
        return self._collections["notifications"]

    @property
    def ambassador_waitlist(self) -> AppendOnlyCollection:
        return self._collections["ambassadorWaitlist"]

    @property
    def activities(self) -> AppendOnlyCollection:
        return self._collections["activities"]

    async def aggregate(self, collection_name: str, pipeline: List[dict]) -> List[dict]:
        return await self[collection_name].aggregate(pipeline)

    def snapshot(self) -> Dict[str, Any]:
        """Deep copy of every collection, shaped like the file on disk."""
        return json.loads(json.dumps(self._data))

    # ----- Persistence -----
    async def persist(self) -> None:
        """Write the whole store to disk. Safe to call again after a failure."""
        async with self._lock:
            await self._persist_locked()

    async def _persist_locked(self) -> None:
        # serialize on the loop so the written view is consistent
        text = dump_snapshot(self._data, self.indent)
        try:
            await asyncio.to_thread(_atomic_write, self.path, text)
        except OSError as e:
            logger.error(f"Failed to write snapshot {self.path}: {e}")
            raise PersistenceError(f"Failed to write snapshot {self.path}: {e}") from e
        logger.debug(f"Persisted snapshot {self.path} ({len(text)} chars)")


async def open_store(path=None, *, strict: Optional[bool] = None) -> Store:
    return await Store.open(path, strict=strict)
