"""
Record normalization pipeline.

Turns a raw GET_ALL payload into a canonical Snapshot:

1. per record: resolve fields through the alias tables, parse values,
   assign the deterministic id and derive the status;
2. per collection: merge the search flag, which depends on notes and on the
   source's search-process list rather than on a column of the record.

Normalizing the same payload twice yields equal records (ids included).
"""

import json
import logging
import time
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set

from .config import settings
from .fields import (
    CONFIG_KEYS,
    NOTE_KEYS,
    RECORD_KEYS,
    USER_KEYS,
    get_flag,
    get_prop,
    get_string,
    get_trimmed_string,
)
from .identity import note_id, record_id
from .models import (
    DEFAULT_SOURCE_STATUS,
    SEARCHING_STATUS,
    AppConfig,
    Attachment,
    Note,
    PendencyRecord,
    Profile,
    Snapshot,
    User,
)
from .parsers import classify_payment_type, format_date, parse_currency
from .status import MAX_CRITICAL_DAYS, business_today, calculate_status

logger = logging.getLogger(__name__)

PAYLOAD_KEYS: Dict[str, List[str]] = {
    "records": ["ctes", "records", "pendencias"],
    "search_process": ["processData", "searchProcess", "emBusca"],
    "config": ["config", "configuracao"],
    "users": ["users", "usuarios"],
    "profiles": ["profiles", "perfis"],
    "notes": ["notes", "notas"],
}


def _as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def _to_int(value: Any, default: int = 0) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(float(str(value).strip().replace(",", ".")))
    except (ValueError, OverflowError):
        return default


# =============================================================================
# Records
# =============================================================================


def normalize_record(
    raw: Mapping[str, Any],
    config: Optional[AppConfig] = None,
    today: Optional[date] = None,
) -> PendencyRecord:
    """First pass: one raw row to a canonical record (search flag not merged yet)."""
    document_number = get_string(raw, RECORD_KEYS["document_number"])
    series = get_string(raw, RECORD_KEYS["series"])

    record = PendencyRecord(
        id=record_id(document_number, series),
        document_number=document_number,
        series=series,
        emission_date=format_date(get_prop(raw, RECORD_KEYS["emission_date"])),
        deadline_date=format_date(get_prop(raw, RECORD_KEYS["deadline_date"])),
        limit_date=format_date(get_prop(raw, RECORD_KEYS["limit_date"])),
        source_status=get_string(
            raw, RECORD_KEYS["status"], DEFAULT_SOURCE_STATUS
        ).upper(),
        collection_unit=get_string(raw, RECORD_KEYS["collection_unit"], "N/A").upper(),
        delivery_unit=get_string(raw, RECORD_KEYS["delivery_unit"], "N/A").upper(),
        value=max(parse_currency(get_prop(raw, RECORD_KEYS["value"])), 0.0),
        freight_paid=get_flag(raw, RECORD_KEYS["freight_paid"]),
        recipient=get_string(raw, RECORD_KEYS["recipient"], "Consumidor").upper(),
        justification=get_string(raw, RECORD_KEYS["justification"]),
        payment_type=classify_payment_type(get_prop(raw, RECORD_KEYS["payment_type"])),
        has_notes=get_flag(raw, RECORD_KEYS["has_notes"]),
        notes_count=max(_to_int(get_prop(raw, RECORD_KEYS["notes_count"])), 0),
        is_search=get_flag(raw, RECORD_KEYS["is_search"]),
    )
    return record.with_updates(status=calculate_status(record, config, today))


def merge_search_flags(
    records: Iterable[PendencyRecord],
    notes: Optional[Iterable[Note]] = None,
    search_refs: Optional[Iterable[Any]] = None,
) -> List[PendencyRecord]:
    """Second pass: OR together every source of the search flag.

    A record is under search when the row says so, when any of its notes was
    filed as a search process, when its raw status is the searching literal,
    or when the source's search-process list references its number.
    """
    searching_refs: Set[str] = set()
    for note in notes or []:
        if note.is_search_process:
            searching_refs.add(note.record_id)
    for ref in search_refs or []:
        if isinstance(ref, Mapping):
            ref = get_prop(ref, ["cte", "cteNumber", "documentNumber", "recordId"])
        if ref is not None and str(ref).strip():
            searching_refs.add(str(ref).strip())

    merged = []
    for record in records:
        is_search = (
            record.is_search
            or record.id in searching_refs
            or record.document_number in searching_refs
            or record.source_status == SEARCHING_STATUS
        )
        merged.append(record.with_updates(is_search=is_search))
    return merged


def normalize_records(
    raw_rows: Iterable[Mapping[str, Any]],
    config: Optional[AppConfig] = None,
    notes: Optional[Iterable[Note]] = None,
    search_refs: Optional[Iterable[Any]] = None,
    today: Optional[date] = None,
) -> List[PendencyRecord]:
    """Normalize a raw record collection (both passes)."""
    today = today or business_today()
    records = []
    for raw in raw_rows or []:
        if not isinstance(raw, Mapping):
            logger.debug(f"Skipping non-object record row: {raw!r}")
            continue
        records.append(normalize_record(raw, config, today))
    return merge_search_flags(records, notes, search_refs)


def refresh_statuses(
    records: Iterable[PendencyRecord],
    config: Optional[AppConfig],
    today: Optional[date] = None,
) -> List[PendencyRecord]:
    """Recompute status for already-normalized records ("today" moves on)."""
    today = today or business_today()
    return [
        record.with_updates(status=calculate_status(record, config, today))
        for record in records
    ]


# =============================================================================
# Notes
# =============================================================================


def _attachment_from(item: Any) -> Optional[Attachment]:
    if isinstance(item, Mapping):
        data = get_prop(item, ["data", "url", "link"])
        if data is None:
            return None
        return Attachment(
            name=get_string(item, ["name", "nome"], "Anexo"),
            mime_type=get_string(item, ["mimeType", "mime_type", "type"], "image/jpeg"),
            data=str(data),
        )
    if isinstance(item, str) and item.strip():
        return Attachment(name="Anexo", mime_type="image/jpeg", data=item.strip())
    return None


def normalize_attachments(raw_attachments: Any, image_url: Any = None) -> List[Attachment]:
    """Collapse the attachment variants into one list.

    The source sends either a list, a JSON-encoded list, or (legacy notes)
    a single image URL.
    """
    items: List[Any] = []
    if isinstance(raw_attachments, (list, tuple)):
        items = list(raw_attachments)
    elif isinstance(raw_attachments, str) and raw_attachments.strip().startswith("["):
        try:
            decoded = json.loads(raw_attachments)
        except json.JSONDecodeError:
            logger.debug("Discarding malformed attachment list")
            decoded = []
        items = _as_list(decoded)

    attachments = [a for a in (_attachment_from(item) for item in items) if a]
    if not attachments and image_url:
        attachments = [
            Attachment(name="Anexo", mime_type="image/jpeg", data=str(image_url))
        ]
    return attachments


def normalize_note(raw: Mapping[str, Any], record_ref: str) -> Note:
    """One raw note row to a Note, deriving a stable id when absent."""
    author = get_string(raw, NOTE_KEYS["author"], "Sistema")
    raw_date = get_string(raw, NOTE_KEYS["date"])
    text = get_string(raw, NOTE_KEYS["text"])
    source_id = get_trimmed_string(raw, NOTE_KEYS["id"])

    return Note(
        id=source_id or note_id(record_ref, author, raw_date, text),
        record_id=get_string(raw, NOTE_KEYS["record_id"], record_ref),
        date=format_date(raw_date) or raw_date,
        author=author,
        text=text,
        attachments=normalize_attachments(
            get_prop(raw, NOTE_KEYS["attachments"]),
            get_prop(raw, NOTE_KEYS["image_url"]),
        ),
        is_search_process=get_flag(raw, NOTE_KEYS["is_search_process"]),
    )


def normalize_notes(raw_notes: Any, record_ref: str) -> List[Note]:
    return [
        normalize_note(raw, record_ref)
        for raw in _as_list(raw_notes)
        if isinstance(raw, Mapping)
    ]


# =============================================================================
# Users, profiles, config
# =============================================================================


def normalize_user(raw: Mapping[str, Any]) -> Optional[User]:
    username = get_trimmed_string(raw, USER_KEYS["username"])
    if not username:
        return None
    return User(
        id=get_string(raw, USER_KEYS["id"], username),
        username=username,
        role=get_string(raw, USER_KEYS["role"], "USER"),
        name=get_trimmed_string(raw, USER_KEYS["name"]),
        linked_origin_unit=get_trimmed_string(raw, USER_KEYS["linked_origin_unit"]),
        linked_dest_unit=get_trimmed_string(raw, USER_KEYS["linked_dest_unit"]),
    )


def normalize_users(raw_users: Any) -> List[User]:
    users = []
    for raw in _as_list(raw_users):
        if not isinstance(raw, Mapping):
            continue
        user = normalize_user(raw)
        if user is None:
            logger.debug("Skipping user row without username")
            continue
        users.append(user)
    return users


def _permissions(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [str(p) for p in value]
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.startswith("["):
            try:
                return [str(p) for p in _as_list(json.loads(text))]
            except json.JSONDecodeError:
                return []
        return [p.strip() for p in text.split(",") if p.strip()]
    return []


def normalize_profiles(raw_profiles: Any) -> List[Profile]:
    profiles = []
    for raw in _as_list(raw_profiles):
        if not isinstance(raw, Mapping):
            continue
        name = get_trimmed_string(raw, ["name", "nome"])
        if not name:
            continue
        profiles.append(
            Profile(
                name=name,
                description=get_string(raw, ["description", "descricao"]),
                permissions=_permissions(get_prop(raw, ["permissions", "permissoes"])),
            )
        )
    return profiles


def normalize_config(
    raw_config: Any, clock: Callable[[], float] = time.time
) -> AppConfig:
    raw = raw_config if isinstance(raw_config, Mapping) else {}
    limit = _to_int(
        get_prop(raw, CONFIG_KEYS["critical_days_limit"]),
        settings.default_critical_days_limit,
    )
    if limit < 0:
        limit = settings.default_critical_days_limit
    return AppConfig(
        critical_days_limit=min(limit, MAX_CRITICAL_DAYS),
        upload_folder_url=get_string(raw, CONFIG_KEYS["upload_folder_url"]),
        api_url=settings.api_url,
        last_update=clock(),
    )


# =============================================================================
# Snapshot
# =============================================================================


def normalize_snapshot(
    data: Mapping[str, Any],
    today: Optional[date] = None,
    clock: Callable[[], float] = time.time,
) -> Snapshot:
    """Normalize a full GET_ALL payload."""
    config = normalize_config(get_prop(data, PAYLOAD_KEYS["config"]), clock)
    notes: List[Note] = []
    for raw in _as_list(get_prop(data, PAYLOAD_KEYS["notes"])):
        if isinstance(raw, Mapping):
            notes.append(normalize_note(raw, get_string(raw, NOTE_KEYS["record_id"])))

    records = normalize_records(
        _as_list(get_prop(data, PAYLOAD_KEYS["records"])),
        config=config,
        notes=notes,
        search_refs=_as_list(get_prop(data, PAYLOAD_KEYS["search_process"])),
        today=today,
    )

    snapshot = Snapshot(
        records=records,
        notes=notes,
        users=normalize_users(get_prop(data, PAYLOAD_KEYS["users"])),
        profiles=normalize_profiles(get_prop(data, PAYLOAD_KEYS["profiles"])),
        config=config,
    )
    logger.info(
        f"Normalized snapshot: {len(snapshot.records)} records, "
        f"{len(snapshot.users)} users, {len(snapshot.profiles)} profiles"
    )
    return snapshot


PLACEHOLDER_ROWS: List[Dict[str, Any]] = [
    {
        "CTE": "123456",
        "SERIE": "1",
        "DATA EMISSAO": "2023-10-01",
        "PRAZO PARA BAIXA (DIAS)": "2023-10-05",
        "DATA LIMITE DE BAIXA": "2023-10-10",
        "STATUS": DEFAULT_SOURCE_STATUS,
        "COLETA": "SAO PAULO",
        "ENTREGA": "RIO DE JANEIRO",
        "VALOR DO CTE": 1500.50,
        "DESTINATARIO": "CLIENTE EXEMPLO LTDA",
        "FRETE_PAGO": "CIF",
    }
]


def placeholder_snapshot(
    today: Optional[date] = None, clock: Callable[[], float] = time.time
) -> Snapshot:
    """Minimal built-in dataset served when the remote source is unreachable."""
    config = AppConfig(
        critical_days_limit=settings.default_critical_days_limit,
        api_url=settings.api_url,
        last_update=clock(),
    )
    return Snapshot(
        records=normalize_records(PLACEHOLDER_ROWS, config=config, today=today),
        config=config,
        is_placeholder=True,
    )
