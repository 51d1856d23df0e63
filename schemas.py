"""
Record schemas for the School Admin Console

Each resource has a payload model (what a form submits, with the form's
validation rules) and a record model (what is stored). Field names are the
persisted JSON names. Records accept older or partial documents and fill in
defaults at construction, so nothing downstream needs `field or default`
reads. Unknown fields are kept so a rewrite never drops data.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional
from urllib.parse import urlparse

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    EmailStr,
    Field,
    StringConstraints,
    ValidationInfo,
    field_validator,
    model_validator,
)
from typing_extensions import Annotated


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v


def _ensure_utc(v: Optional[datetime]) -> Optional[datetime]:
    if v is not None and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


def _check_http_url(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    parsed = urlparse(v)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("Please enter a valid URL")
    return v


Timestamp = Annotated[
    Optional[datetime], BeforeValidator(_blank_to_none), AfterValidator(_ensure_utc)
]
RequiredTimestamp = Annotated[datetime, AfterValidator(_ensure_utc)]
NonBlank = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
OptionalEmail = Annotated[Optional[EmailStr], BeforeValidator(_blank_to_none)]
HttpUrlStr = Annotated[NonBlank, AfterValidator(_check_http_url)]
OptionalHttpUrl = Annotated[
    Optional[str], BeforeValidator(_blank_to_none), AfterValidator(_check_http_url)
]


class StoredModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class Attachment(StoredModel):
    id: Optional[str] = None
    name: str = ""
    type: str = ""
    size: int = 0

    @field_validator("id", mode="before")
    def stringify_id(cls, v):
        return None if v is None else str(v)


# Announcements

AnnouncementStatus = Literal["draft", "pending", "published", "archived"]
AnnouncementCategory = Literal[
    "academic", "event", "sports", "clubs", "holiday", "emergency", "general"
]
AnnouncementPriority = Literal["critical", "important", "regular", "informational"]


class AnnouncementBase(StoredModel):
    title: str = ""
    content: str = ""
    category: str = "general"
    priority: str = "regular"
    targetAudience: List[str] = Field(default_factory=lambda: ["All"])
    status: str = "draft"
    publishDate: Timestamp = None
    expiryDate: Timestamp = None
    tags: List[str] = Field(default_factory=list)
    attachments: List[Attachment] = Field(default_factory=list)
    isRecurring: bool = False
    recurrencePattern: str = ""
    featured: bool = False
    notifyUsers: bool = True

    @field_validator("targetAudience", mode="before")
    def normalize_audience(cls, v):
        if v is None:
            return ["All"]
        if isinstance(v, str):
            v = [v]
        if "All" in v:
            return ["All"]
        return list(v)

    @field_validator("tags", mode="before")
    def split_tags(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [tag.strip() for tag in v.split(",") if tag.strip()]
        return v


class AnnouncementPayload(AnnouncementBase):
    title: NonBlank
    content: NonBlank
    category: AnnouncementCategory = "general"
    priority: AnnouncementPriority = "regular"
    status: AnnouncementStatus = "draft"

    @model_validator(mode="after")
    def check_schedule(self, info: ValidationInfo):
        context = info.context or {}
        now = context.get("now") or utcnow()
        unchanged = context.get("stored_publish_date")
        if (
            self.publishDate is not None
            and self.publishDate != unchanged
            and self.publishDate < now
        ):
            raise ValueError("Publish date cannot be in the past")
        if self.expiryDate is not None and self.publishDate is not None:
            if self.expiryDate <= self.publishDate:
                raise ValueError("Expiry date must be after publish date")
        if self.publishDate is None and self.status == "published":
            self.publishDate = now
        return self


class AnnouncementVersion(StoredModel):
    id: str
    title: str = ""
    content: str = ""
    updatedAt: Timestamp = None
    version: int = 1


class Announcement(AnnouncementBase):
    id: str
    createdAt: Timestamp = None
    updatedAt: Timestamp = None
    publishedAt: Timestamp = None
    archivedAt: Timestamp = None
    views: int = 0
    version: int = 1
    previousVersions: List[AnnouncementVersion] = Field(default_factory=list)
    readConfirmations: List[Any] = Field(default_factory=list)

    def is_expired(self, now: datetime) -> bool:
        return self.expiryDate is not None and self.expiryDate < now


# Events

EventCategory = Literal[
    "academic", "sports", "cultural", "parent-teacher", "holiday",
    "exam", "workshop", "field-trip", "ceremony", "other",
]
EventPriority = Literal["urgent", "high", "normal"]
EventStatus = Literal["upcoming", "cancelled"]


class EventBase(StoredModel):
    title: str = ""
    description: str = ""
    startTime: Timestamp = None
    endTime: Timestamp = None
    category: str = "academic"
    eventType: str = "general"
    location: str = ""
    room: str = ""
    imageUrl: Optional[str] = None
    dressCode: str = ""
    requirements: str = ""
    contactPerson: str = ""
    contactEmail: Optional[str] = None
    targetGrades: List[str] = Field(default_factory=list)
    registrationRequired: str = "no"
    registrationDeadline: Timestamp = None
    fee: Optional[float] = None
    maxParticipants: Optional[int] = None
    permissionSlipRequired: bool = False
    parentAttendance: bool = False
    transportationProvided: bool = False
    priority: str = "normal"
    visibility: str = "public"
    isRecurring: bool = False
    recurrencePattern: str = "weekly"
    recurrenceEndDate: Timestamp = None
    attachments: List[Attachment] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def lift_event_date(cls, data):
        # older documents carry a single eventDate
        if isinstance(data, dict) and data.get("eventDate") and not data.get("startTime"):
            data = dict(data)
            data["startTime"] = data["eventDate"]
            data.setdefault("endTime", data["eventDate"])
        return data

    @field_validator("fee", "maxParticipants", mode="before")
    def blank_numbers(cls, v):
        return _blank_to_none(v)


class EventPayload(EventBase):
    title: NonBlank
    description: NonBlank
    startTime: RequiredTimestamp
    endTime: RequiredTimestamp
    category: EventCategory = "academic"
    priority: EventPriority = "normal"
    registrationRequired: Literal["yes", "no", "optional"] = "no"
    contactEmail: OptionalEmail = None
    imageUrl: OptionalHttpUrl = None
    targetGrades: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_times(self):
        if self.endTime <= self.startTime:
            raise ValueError("End time must be after start time")
        if self.registrationRequired == "yes" and self.registrationDeadline is not None:
            if self.registrationDeadline > self.startTime:
                raise ValueError("Registration deadline must be before event start")
        return self


class Event(EventBase):
    id: str
    status: str = "upcoming"
    createdAt: Timestamp = None
    updatedAt: Timestamp = None

    def display_status(self, now: datetime) -> Optional[str]:
        """Status shown in the console, derived from the clock.

        Returns None for a record without usable times.
        """
        if self.status == "cancelled":
            return "cancelled"
        if self.startTime is None or self.endTime is None:
            return None
        if self.startTime > now:
            return "upcoming"
        if self.endTime < now:
            return "past"
        return "ongoing"


# Teachers

TeacherStatus = Literal["Active", "On Leave", "Resigned", "Retired", "Archived"]


class BasicInfo(StoredModel):
    title: str = "Mr."
    firstName: str = ""
    lastName: str = ""
    dateOfBirth: str = ""
    gender: str = "Male"
    nationality: str = ""
    photoUrl: str = ""
    signature: str = ""


class ContactInfo(StoredModel):
    email: str = ""
    phone: str = ""
    emergencyContact: str = ""
    address: str = ""
    city: str = ""
    postalCode: str = ""


class ProfessionalInfo(StoredModel):
    employeeId: str = ""
    department: str = ""
    subjects: List[str] = Field(default_factory=list)
    gradeLevels: List[str] = Field(default_factory=list)
    specialization: str = ""
    qualification: str = ""
    degree: str = ""
    university: str = ""
    yearOfGraduation: str = ""
    teachingLicenseNumber: str = ""
    licenseExpiry: str = ""


class BankDetails(StoredModel):
    accountName: str = ""
    accountNumber: str = ""
    bankName: str = ""
    branch: str = ""


class EmploymentDetails(StoredModel):
    employmentType: str = "Full-time"
    joinDate: str = ""
    contractEndDate: str = ""
    salaryScale: str = ""
    payrollNumber: str = ""
    bankDetails: BankDetails = Field(default_factory=BankDetails)


class AcademicResponsibilities(StoredModel):
    homeroomTeacher: bool = False
    classTeacherOf: str = ""
    clubSponsor: str = ""
    committeeMembership: List[str] = Field(default_factory=list)


class TeacherDocuments(StoredModel):
    resume: str = ""
    certificates: List[str] = Field(default_factory=list)
    policeClearance: str = ""
    medicalReport: str = ""


class AdditionalInfo(StoredModel):
    bio: str = ""
    teachingPhilosophy: str = ""
    achievements: str = ""
    professionalGoals: str = ""


class TeacherBase(StoredModel):
    basicInfo: BasicInfo = Field(default_factory=BasicInfo)
    contactInfo: ContactInfo = Field(default_factory=ContactInfo)
    professionalInfo: ProfessionalInfo = Field(default_factory=ProfessionalInfo)
    employmentDetails: EmploymentDetails = Field(default_factory=EmploymentDetails)
    academicResponsibilities: AcademicResponsibilities = Field(
        default_factory=AcademicResponsibilities
    )
    documents: TeacherDocuments = Field(default_factory=TeacherDocuments)
    additionalInfo: AdditionalInfo = Field(default_factory=AdditionalInfo)
    status: str = "Active"

    @model_validator(mode="before")
    @classmethod
    def lift_flat_fields(cls, data):
        # older documents are flat: name, department, bio, photoUrl
        if not isinstance(data, dict) or "basicInfo" in data:
            return data
        data = dict(data)
        first, _, last = (data.pop("name", "") or "").partition(" ")
        data["basicInfo"] = {
            "firstName": first,
            "lastName": last,
            "photoUrl": data.pop("photoUrl", "") or "",
        }
        if "department" in data:
            data.setdefault("professionalInfo", {})
            data["professionalInfo"] = {
                **data["professionalInfo"],
                "department": data.pop("department") or "",
            }
        if "bio" in data:
            data["additionalInfo"] = {
                **data.get("additionalInfo", {}),
                "bio": data.pop("bio") or "",
            }
        return data

    @property
    def full_name(self) -> str:
        return f"{self.basicInfo.firstName} {self.basicInfo.lastName}".strip()


class BasicInfoPayload(BasicInfo):
    firstName: NonBlank
    lastName: NonBlank


class ContactInfoPayload(ContactInfo):
    email: EmailStr


class ProfessionalInfoPayload(ProfessionalInfo):
    employeeId: NonBlank
    department: NonBlank


class TeacherPayload(TeacherBase):
    basicInfo: BasicInfoPayload
    contactInfo: ContactInfoPayload
    professionalInfo: ProfessionalInfoPayload
    status: TeacherStatus = "Active"


class Teacher(TeacherBase):
    id: str
    createdAt: Timestamp = None
    updatedAt: Timestamp = None


# Departments, gallery

class DepartmentBase(StoredModel):
    name: str = ""
    description: str = ""


class DepartmentPayload(DepartmentBase):
    name: NonBlank
    description: NonBlank


class Department(DepartmentBase):
    id: str
    createdAt: Timestamp = None
    updatedAt: Timestamp = None


class GalleryItemBase(StoredModel):
    imageUrl: str = ""
    caption: str = ""


class GalleryItemPayload(GalleryItemBase):
    imageUrl: HttpUrlStr
    caption: NonBlank


class GalleryItem(GalleryItemBase):
    id: str
    createdAt: Timestamp = None
    updatedAt: Timestamp = None


# Contact messages

class MessageBase(StoredModel):
    name: str = ""
    email: str = ""
    subject: str = ""
    message: str = ""


class MessagePayload(MessageBase):
    name: NonBlank
    email: EmailStr
    subject: NonBlank
    message: NonBlank


class Message(MessageBase):
    id: str
    read: bool = False
    replied: bool = False
    replyContent: str = ""
    repliedAt: Timestamp = None
    createdAt: Timestamp = None
    updatedAt: Timestamp = None


class ReplyPayload(BaseModel):
    content: NonBlank


# Administrator and session

class AdminCredentials(BaseModel):
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class StatusChange(BaseModel):
    status: str


class BulkDelete(BaseModel):
    ids: List[str]


def dump(record: BaseModel) -> Dict[str, Any]:
    """JSON-ready dict of a record, as it is persisted."""
    return record.model_dump(mode="json")
