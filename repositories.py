"""
Resource repositories.

Every collection lives under one store key as a whole JSON document. All
mutations read the full collection, transform it in memory and write it
back. One generic Repository carries the CRUD, filter and sort plumbing;
the per-resource subclasses add their own filters, sorts and status
lifecycle.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple, Type, get_args

from pydantic import BaseModel, TypeAdapter, ValidationError

from database import KeyValueStore
from errors import CorruptedStateError, InvalidQueryError, InvalidTransitionError, NotFoundError
from schemas import (
    Announcement,
    AnnouncementPayload,
    AnnouncementVersion,
    Department,
    DepartmentPayload,
    Event,
    EventPayload,
    EventStatus,
    GalleryItem,
    GalleryItemPayload,
    Message,
    MessagePayload,
    ReplyPayload,
    Teacher,
    TeacherPayload,
    TeacherStatus,
    dump,
    utcnow,
)
from seed import SCHEMA_VERSION, envelope, reseed

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)
_RECORD_FIELDS = ("id", "createdAt", "updatedAt")
_IMPORT_ADAPTER = TypeAdapter(List[Dict[str, Any]])
EVENT_STATUSES = get_args(EventStatus)
TEACHER_STATUSES = get_args(TeacherStatus)


def _is_unset(value: Any) -> bool:
    return value is None or value == "" or value == "all"


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def _lookup(record: BaseModel, path: str) -> Any:
    value: Any = record
    for part in path.split("."):
        value = getattr(value, part, None)
        if value is None:
            return None
    return value


class Repository:
    key: str = ""
    resource: str = ""
    payload_model: Type[BaseModel] = BaseModel
    record_model: Type[BaseModel] = BaseModel
    search_fields: Tuple[str, ...] = ()
    # set by the repository only; dropped from submitted payloads
    server_fields: Tuple[str, ...] = ()
    # status -> statuses it may move to
    transitions: Dict[str, Set[str]] = {}

    def __init__(self, store: KeyValueStore, clock: Clock = utcnow, on_corrupt: str = "reseed"):
        self.store = store
        self.clock = clock
        self.on_corrupt = on_corrupt

    # Persistence

    def _parse(self, raw: Any) -> List[Any]:
        if isinstance(raw, list):
            items = raw
        elif isinstance(raw, dict) and isinstance(raw.get("items"), list):
            version = raw.get("schemaVersion", 0)
            if not isinstance(version, int) or version > SCHEMA_VERSION:
                raise CorruptedStateError(self.key, f"unsupported schema version {version!r}")
            items = raw["items"]
        else:
            raise CorruptedStateError(self.key, "expected a collection")
        try:
            return [self.record_model.model_validate(item) for item in items]
        except ValidationError as e:
            raise CorruptedStateError(self.key, f"invalid record ({e.error_count()} errors)") from e

    def _load(self) -> List[Any]:
        try:
            raw = self.store.get(self.key)
            if raw is None:
                return []
            return self._parse(raw)
        except CorruptedStateError as e:
            if self.on_corrupt != "reseed":
                raise
            logger.warning("%s; falling back to the default collection", e)
            reseed(self.store, self.key)
            return self._parse(self.store.get(self.key))

    def _save(self, records: Iterable[Any]) -> None:
        self.store.set(self.key, envelope([dump(r) for r in records]))

    def _find(self, records: List[Any], item_id: str) -> Tuple[int, Any]:
        for index, record in enumerate(records):
            if record.id == item_id:
                return index, record
        raise NotFoundError(self.resource, item_id)

    def _new_id(self, records: List[Any], now: datetime) -> str:
        taken = {r.id for r in records}
        candidate = int(now.timestamp() * 1000)
        while str(candidate) in taken:
            candidate += 1
        return str(candidate)

    # Hooks

    def _validation_context(self, current: Optional[Any]) -> Dict[str, Any]:
        return {"now": self.clock()}

    def _on_create(self, payload: BaseModel, now: datetime) -> Dict[str, Any]:
        return {}

    def _on_update(self, current: Any, payload: BaseModel, now: datetime) -> Dict[str, Any]:
        return {}

    def _on_transition(self, current: Any, status: str, now: datetime) -> Dict[str, Any]:
        return {}

    def _filters(self) -> Dict[str, Callable[[Any, Any], bool]]:
        return {}

    def _sort_keys(self) -> Dict[str, Tuple[Callable[[Any], Any], bool]]:
        return {}

    # Reads

    def list(self) -> List[Any]:
        return self._load()

    def get(self, item_id: str) -> Any:
        return self._find(self.list(), item_id)[1]

    def count(self) -> int:
        return len(self.list())

    def filter(self, items: Iterable[Any], criteria: Optional[Dict[str, Any]] = None) -> List[Any]:
        """AND-combine the given criteria over items.

        A criterion set to None, "" or "all" is ignored. `search` is a
        case-insensitive substring match over the repository's search fields.
        """
        result = list(items)
        filters = self._filters()
        for name, value in (criteria or {}).items():
            if _is_unset(value):
                continue
            if name == "search":
                needle = str(value).lower()
                result = [r for r in result if self._matches(r, needle)]
                continue
            predicate = filters.get(name)
            if predicate is None:
                raise InvalidQueryError(f"Unknown filter '{name}' for {self.key}")
            result = [r for r in result if predicate(r, value)]
        return result

    def _matches(self, record: Any, needle: str) -> bool:
        for path in self.search_fields:
            value = _lookup(record, path)
            if isinstance(value, str) and needle in value.lower():
                return True
        return False

    def sort(self, items: Iterable[Any], sort_by: Optional[str] = None) -> List[Any]:
        items = list(items)
        ordering = self._sort_keys().get(sort_by or "")
        if ordering is None:
            return items
        key, reverse = ordering
        return sorted(items, key=key, reverse=reverse)

    def query(self, criteria: Optional[Dict[str, Any]] = None, sort_by: Optional[str] = None) -> List[Any]:
        return self.sort(self.filter(self.list(), criteria), sort_by)

    # Writes

    def _validate(self, data: Any, current: Optional[Any] = None) -> BaseModel:
        if isinstance(data, BaseModel):
            data = data.model_dump()
        return self.payload_model.model_validate(data, context=self._validation_context(current))

    def _submitted_fields(self, payload: BaseModel) -> Dict[str, Any]:
        fields = dump(payload)
        for name in (*_RECORD_FIELDS, *self.server_fields):
            fields.pop(name, None)
        return fields

    def create(self, data: Any) -> Any:
        payload = self._validate(data)
        now = self.clock()
        records = self.list()
        fields = self._submitted_fields(payload)
        fields.update(self._on_create(payload, now))
        fields.update(id=self._new_id(records, now), createdAt=now, updatedAt=now)
        record = self.record_model.model_validate(fields)
        records.append(record)
        self._save(records)
        logger.info("Created %s %s", self.resource, record.id)
        return record

    def update(self, item_id: str, data: Any) -> Any:
        records = self.list()
        index, current = self._find(records, item_id)
        payload = self._validate(data, current)
        now = self.clock()
        fields = self._submitted_fields(payload)
        fields.update(self._on_update(current, payload, now))
        fields.update(id=current.id, createdAt=current.createdAt, updatedAt=now)
        record = self.record_model.model_validate(fields)
        records[index] = record
        self._save(records)
        logger.info("Updated %s %s", self.resource, item_id)
        return record

    def delete(self, item_id: str) -> None:
        records = self.list()
        index, _ = self._find(records, item_id)
        del records[index]
        self._save(records)
        logger.info("Deleted %s %s", self.resource, item_id)

    def delete_many(self, ids: Iterable[str]) -> int:
        doomed = set(ids)
        records = self.list()
        kept = [r for r in records if r.id not in doomed]
        removed = len(records) - len(kept)
        if removed:
            self._save(kept)
            logger.info("Deleted %d %s records", removed, self.resource)
        return removed

    def _replace(self, item_id: str, changes: Callable[[Any, datetime], Dict[str, Any]]) -> Any:
        records = self.list()
        index, current = self._find(records, item_id)
        now = self.clock()
        record = current.model_copy(update={**changes(current, now), "updatedAt": now})
        records[index] = record
        self._save(records)
        return record

    def transition(self, item_id: str, status: str) -> Any:
        def changes(current, now):
            current_status = getattr(current, "status", None) or ""
            if status not in self.transitions.get(current_status, set()):
                raise InvalidTransitionError(self.resource, item_id, current_status, status)
            return {"status": status, **self._on_transition(current, status, now)}

        record = self._replace(item_id, changes)
        logger.info("Moved %s %s to %s", self.resource, item_id, status)
        return record


class AnnouncementRepository(Repository):
    key = "announcements"
    resource = "announcement"
    payload_model = AnnouncementPayload
    record_model = Announcement
    search_fields = ("title", "content")
    server_fields = ("publishedAt", "archivedAt", "views", "version", "previousVersions", "readConfirmations")
    transitions = {
        "draft": {"pending", "published", "archived"},
        "pending": {"draft", "published", "archived"},
        "published": {"archived"},
        "archived": {"draft", "published"},
    }

    def list(self) -> List[Announcement]:
        """Stored announcements, minus expired ones that were never archived.

        Evicted entries are removed from the stored collection as well.
        """
        records = self._load()
        now = self.clock()
        kept = [r for r in records if not (r.is_expired(now) and r.status != "archived")]
        if len(kept) != len(records):
            self._save(kept)
            logger.info("Evicted %d expired announcements", len(records) - len(kept))
        return kept

    def _filters(self):
        return {
            "category": lambda r, v: r.category == v,
            "priority": lambda r, v: r.priority == v,
            "status": lambda r, v: r.status == v,
            "audience": lambda r, v: v in r.targetAudience or "All" in r.targetAudience,
        }

    def _sort_keys(self):
        return {
            "newest": (lambda r: r.createdAt or _EPOCH, True),
            "oldest": (lambda r: r.createdAt or _EPOCH, False),
            "title": (lambda r: r.title.lower(), False),
        }

    def _validation_context(self, current):
        context = super()._validation_context(current)
        if current is not None:
            context["stored_publish_date"] = current.publishDate
        return context

    def _on_create(self, payload, now):
        return {
            "version": 1,
            "views": 0,
            "readConfirmations": [],
            "previousVersions": [],
            "publishedAt": now if payload.status == "published" else None,
        }

    def _on_update(self, current, payload, now):
        snapshot = AnnouncementVersion(
            id=current.id,
            title=current.title,
            content=current.content,
            updatedAt=current.updatedAt,
            version=current.version,
        )
        published_at = current.publishedAt
        if published_at is None and payload.status == "published":
            published_at = now
        return {
            "version": current.version + 1,
            "previousVersions": [*current.previousVersions, snapshot],
            "publishedAt": published_at,
            "archivedAt": current.archivedAt,
            "views": current.views,
            "readConfirmations": current.readConfirmations,
        }

    def _on_transition(self, current, status, now):
        if status == "published":
            return {"publishedAt": now}
        if status == "archived":
            return {"archivedAt": now}
        return {}

    def publish(self, item_id: str) -> Announcement:
        return self.transition(item_id, "published")

    def archive(self, item_id: str) -> Announcement:
        return self.transition(item_id, "archived")

    def record_view(self, item_id: str) -> Announcement:
        return self._replace(item_id, lambda current, now: {"views": current.views + 1})


class EventRepository(Repository):
    key = "events"
    resource = "event"
    payload_model = EventPayload
    record_model = Event
    search_fields = ("title", "description", "location")
    server_fields = ("status",)
    transitions = {s: set(EVENT_STATUSES) - {s} for s in EVENT_STATUSES}
    priority_order = {"urgent": 0, "high": 1, "normal": 2}

    def display_status(self, event: Event) -> Optional[str]:
        return event.display_status(self.clock())

    def _filters(self):
        now = self.clock()
        return {
            "category": lambda r, v: r.category == v,
            "status": lambda r, v: r.display_status(now) == v,
            "grade": lambda r, v: v in r.targetGrades,
        }

    def _sort_keys(self):
        return {
            "date": (lambda r: r.startTime or _EPOCH, False),
            "date-desc": (lambda r: r.startTime or _EPOCH, True),
            "title": (lambda r: (r.title or "").lower(), False),
            "priority": (lambda r: self.priority_order.get(r.priority, 2), False),
            "category": (lambda r: (r.category or "").lower(), False),
        }

    def _on_create(self, payload, now):
        return {"status": "upcoming"}

    def _on_update(self, current, payload, now):
        return {"status": current.status}

    def cancel(self, item_id: str) -> Event:
        return self.transition(item_id, "cancelled")

    def reactivate(self, item_id: str) -> Event:
        return self.transition(item_id, "upcoming")


class TeacherRepository(Repository):
    key = "teachers"
    resource = "teacher"
    payload_model = TeacherPayload
    record_model = Teacher
    search_fields = (
        "basicInfo.firstName",
        "basicInfo.lastName",
        "professionalInfo.employeeId",
        "contactInfo.email",
    )
    transitions = {s: set(TEACHER_STATUSES) - {s} for s in TEACHER_STATUSES}

    def _filters(self):
        return {
            "department": lambda r, v: r.professionalInfo.department == v,
            "subject": lambda r, v: v in r.professionalInfo.subjects,
            "gradeLevel": lambda r, v: v in r.professionalInfo.gradeLevels,
            "employmentType": lambda r, v: r.employmentDetails.employmentType == v,
            "status": lambda r, v: r.status == v,
        }

    def _sort_keys(self):
        return {
            "name": (lambda r: r.full_name.lower(), False),
            "employeeId": (lambda r: r.professionalInfo.employeeId, False),
            "department": (lambda r: r.professionalInfo.department.lower(), False),
        }

    def archive(self, item_id: str) -> Teacher:
        return self.transition(item_id, "Archived")

    def statistics(self, departments: Optional[Iterable[str]] = None) -> Dict[str, Any]:
        teachers = self.list()
        if departments is None:
            departments = sorted({t.professionalInfo.department for t in teachers if t.professionalInfo.department})
        return {
            "total": len(teachers),
            "active": sum(1 for t in teachers if t.status == "Active"),
            "onLeave": sum(1 for t in teachers if t.status == "On Leave"),
            "byDepartment": {
                dept: sum(1 for t in teachers if t.professionalInfo.department == dept)
                for dept in departments
            },
        }

    def export(self) -> str:
        return json.dumps([dump(t) for t in self.list()], indent=2)

    def import_records(self, payload: Any) -> List[Teacher]:
        """Append teachers from an exported document.

        Imported ids are kept unless they collide with a stored one.
        """
        if isinstance(payload, (str, bytes)):
            items = _IMPORT_ADAPTER.validate_json(payload)
        else:
            items = _IMPORT_ADAPTER.validate_python(payload)
        records = self.list()
        now = self.clock()
        imported = []
        for item in items:
            fields = dict(item)
            taken = {r.id for r in records}
            if not fields.get("id") or str(fields["id"]) in taken:
                fields["id"] = self._new_id(records, now)
            fields["id"] = str(fields["id"])
            fields.setdefault("createdAt", now)
            fields["updatedAt"] = now
            record = Teacher.model_validate(fields)
            records.append(record)
            imported.append(record)
        self._save(records)
        logger.info("Imported %d teachers", len(imported))
        return imported


class DepartmentRepository(Repository):
    key = "departments"
    resource = "department"
    payload_model = DepartmentPayload
    record_model = Department
    search_fields = ("name", "description")

    def _sort_keys(self):
        return {"name": (lambda r: r.name.lower(), False)}


class GalleryRepository(Repository):
    key = "gallery"
    resource = "gallery item"
    payload_model = GalleryItemPayload
    record_model = GalleryItem
    search_fields = ("caption",)


class MessageRepository(Repository):
    key = "messages"
    resource = "message"
    payload_model = MessagePayload
    record_model = Message
    search_fields = ("name", "email", "subject", "message")
    server_fields = ("read", "replied", "replyContent", "repliedAt")

    def _filters(self):
        return {
            "read": lambda r, v: r.read == _as_bool(v),
            "replied": lambda r, v: r.replied == _as_bool(v),
        }

    def _sort_keys(self):
        return {
            "newest": (lambda r: r.createdAt or _EPOCH, True),
            "oldest": (lambda r: r.createdAt or _EPOCH, False),
        }

    def _on_create(self, payload, now):
        return {"read": False, "replied": False}

    def _on_update(self, current, payload, now):
        return {
            "read": current.read,
            "replied": current.replied,
            "replyContent": current.replyContent,
            "repliedAt": current.repliedAt,
        }

    def mark_read(self, item_id: str, read: bool = True) -> Message:
        return self._replace(item_id, lambda current, now: {"read": read})

    def mark_all_read(self) -> int:
        records = self.list()
        unread = sum(1 for r in records if not r.read)
        self._save(r.model_copy(update={"read": True}) for r in records)
        return unread

    def reply(self, item_id: str, content: str) -> Message:
        """Record a reply. No email is sent; the would-be email is logged."""
        reply = ReplyPayload(content=content)

        def changes(current, now):
            return {
                "replied": True,
                "repliedAt": now,
                "replyContent": reply.content,
                "read": True,
            }

        record = self._replace(item_id, changes)
        logger.info("Reply email would be sent to %s: Re: %s", record.email, record.subject)
        return record

    def clear(self) -> int:
        removed = self.count()
        self._save([])
        logger.info("Cleared %d messages", removed)
        return removed

    def counts(self) -> Dict[str, int]:
        messages = self.list()
        return {
            "total": len(messages),
            "unread": sum(1 for m in messages if not m.read),
            "replied": sum(1 for m in messages if m.replied),
        }


REPOSITORY_CLASSES: Dict[str, Type[Repository]] = {
    cls.key: cls
    for cls in (
        AnnouncementRepository,
        EventRepository,
        TeacherRepository,
        DepartmentRepository,
        GalleryRepository,
        MessageRepository,
    )
}


def build_repositories(store: KeyValueStore, settings=None, clock: Clock = utcnow) -> Dict[str, Repository]:
    on_corrupt = settings.CORRUPT_STATE_POLICY if settings is not None else "reseed"
    return {key: cls(store, clock=clock, on_corrupt=on_corrupt) for key, cls in REPOSITORY_CLASSES.items()}


def dashboard_stats(repositories: Dict[str, Repository]) -> Dict[str, int]:
    return {key: repo.count() for key, repo in repositories.items()}
