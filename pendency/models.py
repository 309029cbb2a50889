"""
Canonical data model for pendency records and their satellites.

Records arrive from the spreadsheet with arbitrary column names; everything in
this module is the shape *after* reconciliation, so downstream code never has
to guess keys again.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional


class PendencyStatus(Enum):
    """Derived urgency classification (values are the display labels)"""

    CRITICAL = "CRÍTICO"
    LATE = "FORA DO PRAZO"
    PRIORITY = "PRIORIDADE"
    TOMORROW = "VENCE AMANHÃ"
    ON_TIME = "NO PRAZO"


class PaymentType(Enum):
    """Freight payment modality"""

    CIF = "CIF"
    FOB = "FOB"
    SENDER = "FATURAR_REMETENTE"
    DEST = "FATURAR_DEST"
    OTHER = "OUTROS"


# Source-side status literal for goods under investigation. Not a PendencyStatus.
SEARCHING_STATUS = "EM BUSCA"
DEFAULT_SOURCE_STATUS = "PENDENTE"


@dataclass
class Attachment:
    """A file attached to a note (data is a URL or base64 payload)"""

    name: str
    mime_type: str
    data: str

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "mimeType": self.mime_type, "data": self.data}

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image")


@dataclass
class PendencyRecord:
    """A shipment document awaiting resolution"""

    id: str
    document_number: str
    series: str
    emission_date: Optional[str] = None
    deadline_date: Optional[str] = None
    limit_date: Optional[str] = None
    status: PendencyStatus = PendencyStatus.ON_TIME
    source_status: str = DEFAULT_SOURCE_STATUS
    collection_unit: str = "N/A"
    delivery_unit: str = "N/A"
    value: float = 0.0
    freight_paid: bool = False
    recipient: str = ""
    justification: str = ""
    payment_type: PaymentType = PaymentType.OTHER
    has_notes: bool = False
    notes_count: int = 0
    is_search: bool = False

    @property
    def is_critical(self) -> bool:
        return self.status is PendencyStatus.CRITICAL

    def with_updates(self, **changes: Any) -> "PendencyRecord":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dictionary (camelCase, as the UI consumes it)"""
        return {
            "id": self.id,
            "documentNumber": self.document_number,
            "series": self.series,
            "emissionDate": self.emission_date,
            "deadlineDate": self.deadline_date,
            "limitDate": self.limit_date,
            "status": self.status.value,
            "sourceStatus": self.source_status,
            "collectionUnit": self.collection_unit,
            "deliveryUnit": self.delivery_unit,
            "value": self.value,
            "freightPaid": self.freight_paid,
            "recipient": self.recipient,
            "justification": self.justification,
            "paymentType": self.payment_type.value,
            "hasNotes": self.has_notes,
            "notesCount": self.notes_count,
            "isSearch": self.is_search,
        }


@dataclass
class Note:
    """A justification/history entry attached to a record"""

    id: str
    record_id: str
    date: str
    author: str
    text: str
    attachments: List[Attachment] = field(default_factory=list)
    is_search_process: bool = False

    @property
    def image_url(self) -> Optional[str]:
        """First image attachment, for endpoints that still take a single image."""
        for attachment in self.attachments:
            if attachment.is_image:
                return attachment.data
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "recordId": self.record_id,
            "date": self.date,
            "author": self.author,
            "text": self.text,
            "attachments": [a.to_dict() for a in self.attachments],
            "isSearchProcess": self.is_search_process,
        }


@dataclass
class User:
    """A system user as listed by the remote source"""

    id: str
    username: str
    role: str = "USER"
    name: Optional[str] = None
    linked_origin_unit: Optional[str] = None
    linked_dest_unit: Optional[str] = None

    @property
    def is_unit_user(self) -> bool:
        return bool(self.linked_origin_unit or self.linked_dest_unit)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role,
            "name": self.name,
            "linkedOriginUnit": self.linked_origin_unit,
            "linkedDestUnit": self.linked_dest_unit,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        """Create from a stored dictionary (client state)"""
        return cls(
            id=str(data["id"]),
            username=str(data["username"]),
            role=str(data.get("role") or "USER"),
            name=data.get("name"),
            linked_origin_unit=data.get("linkedOriginUnit"),
            linked_dest_unit=data.get("linkedDestUnit"),
        )


@dataclass
class Profile:
    """A named permission set"""

    name: str
    description: str = ""
    permissions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "permissions": list(self.permissions),
        }


@dataclass
class AppConfig:
    """Configuration values published by the remote source"""

    critical_days_limit: int = 5
    upload_folder_url: str = ""
    api_url: str = ""
    last_update: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "criticalDaysLimit": self.critical_days_limit,
            "uploadFolderUrl": self.upload_folder_url,
            "apiUrl": self.api_url,
            "lastUpdate": self.last_update,
        }


@dataclass
class Snapshot:
    """The full normalized dataset held by the cache at a point in time"""

    records: List[PendencyRecord] = field(default_factory=list)
    notes: List[Note] = field(default_factory=list)
    users: List[User] = field(default_factory=list)
    profiles: List[Profile] = field(default_factory=list)
    config: AppConfig = field(default_factory=AppConfig)
    is_placeholder: bool = False

    def find_record(self, record_id: str) -> Optional[PendencyRecord]:
        for record in self.records:
            if record.id == record_id:
                return record
        return None
