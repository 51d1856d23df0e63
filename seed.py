"""
Default dataset written on first run.

Only keys that are absent get written, so running this on every start is safe.
"""
import copy
import logging
from typing import Any, Dict, List

from config import DEFAULT_ADMIN_EMAIL, DEFAULT_ADMIN_PASSWORD
from database import KeyValueStore

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

RESOURCE_KEYS = ["announcements", "events", "teachers", "departments", "gallery", "messages"]
ADMIN_KEY = "admin"
SESSION_KEY = "adminToken"

INITIAL_DATA: Dict[str, List[Dict[str, Any]]] = {
    "announcements": [
        {
            "id": "1",
            "title": "School Reopening Announcement",
            "content": "All students are requested to return to school on Monday, September 1st. "
                       "Please ensure you have completed all your holiday assignments.",
            "category": "emergency",
            "priority": "critical",
            "targetAudience": ["All"],
            "status": "published",
            "publishedAt": "2024-01-15T10:30:00Z",
            "views": 0,
            "version": 1,
            "createdAt": "2024-01-15T10:30:00Z",
            "updatedAt": "2024-01-15T10:30:00Z",
        },
        {
            "id": "2",
            "title": "Sports Day Celebration",
            "content": "Annual Sports Day will be held on January 25th. "
                       "All students must participate in at least one event.",
            "category": "event",
            "priority": "important",
            "targetAudience": ["Students", "Parents"],
            "status": "published",
            "publishedAt": "2024-01-10T14:20:00Z",
            "views": 0,
            "version": 1,
            "createdAt": "2024-01-10T14:20:00Z",
            "updatedAt": "2024-01-12T09:15:00Z",
        },
        {
            "id": "3",
            "title": "Parent-Teacher Meeting",
            "content": "Quarterly parent-teacher meeting scheduled for January 30th. "
                       "Parents are requested to attend.",
            "category": "general",
            "priority": "regular",
            "targetAudience": ["Parents", "Teachers"],
            "status": "draft",
            "views": 0,
            "version": 1,
            "createdAt": "2024-01-05T11:00:00Z",
            "updatedAt": "2024-01-05T11:00:00Z",
        },
    ],
    "events": [
        {
            "id": "1",
            "title": "Annual Science Fair",
            "description": "Showcase of student science projects with guest judges from local universities.",
            "startTime": "2024-02-15T09:00:00Z",
            "endTime": "2024-02-15T15:00:00Z",
            "category": "academic",
            "location": "Main Hall",
            "imageUrl": "https://images.unsplash.com/photo-1532094349884-543bc11b234d?w=400&h=300&fit=crop",
            "targetGrades": ["6th", "7th", "8th"],
            "status": "upcoming",
        },
        {
            "id": "2",
            "title": "Cultural Festival",
            "description": "Annual cultural festival featuring dance, music, and drama performances.",
            "startTime": "2024-03-10T14:00:00Z",
            "endTime": "2024-03-10T18:00:00Z",
            "category": "cultural",
            "location": "Auditorium",
            "imageUrl": "https://images.unsplash.com/photo-1511795409834-ef04bbd61622?w=400&h=300&fit=crop",
            "status": "upcoming",
        },
    ],
    "teachers": [
        {
            "id": "1",
            "basicInfo": {
                "title": "Dr.",
                "firstName": "Sarah",
                "lastName": "Johnson",
                "gender": "Female",
                "photoUrl": "https://images.unsplash.com/photo-1582750433449-648ed127bb54?w=200&h=200&fit=crop",
            },
            "contactInfo": {"email": "sarah.johnson@school.com"},
            "professionalInfo": {
                "employeeId": "T-001",
                "department": "Mathematics",
                "subjects": ["Calculus", "Algebra"],
                "gradeLevels": ["11th", "12th"],
            },
            "additionalInfo": {
                "bio": "PhD in Mathematics with 15 years of teaching experience. "
                       "Specializes in Calculus and Algebra.",
            },
            "status": "Active",
        },
        {
            "id": "2",
            "basicInfo": {
                "title": "Mr.",
                "firstName": "David",
                "lastName": "Chen",
                "photoUrl": "https://images.unsplash.com/photo-1568602471122-7832951cc4c5?w=200&h=200&fit=crop",
            },
            "contactInfo": {"email": "david.chen@school.com"},
            "professionalInfo": {
                "employeeId": "T-002",
                "department": "Science",
                "subjects": ["Physics"],
                "gradeLevels": ["9th", "10th"],
            },
            "additionalInfo": {
                "bio": "MSc in Physics. Passionate about making science fun and accessible to all students.",
            },
            "status": "Active",
        },
    ],
    "departments": [
        {
            "id": "1",
            "name": "Science Department",
            "description": "Focuses on Physics, Chemistry, Biology, and Environmental Science education.",
        },
        {
            "id": "2",
            "name": "Mathematics Department",
            "description": "Dedicated to developing mathematical thinking and problem-solving skills.",
        },
        {
            "id": "3",
            "name": "Humanities Department",
            "description": "Covers History, Geography, Languages, and Social Studies.",
        },
    ],
    "gallery": [
        {
            "id": "1",
            "imageUrl": "https://images.unsplash.com/photo-1523050854058-8df90110c9f1?w=400&h=300&fit=crop",
            "caption": "Annual Sports Day 2023",
        },
        {
            "id": "2",
            "imageUrl": "https://images.unsplash.com/photo-1503676260728-1c00da094a0b?w=400&h=300&fit=crop",
            "caption": "Science Lab Session",
        },
    ],
    "messages": [
        {
            "id": "1",
            "name": "John Smith",
            "email": "john@example.com",
            "subject": "Admission Inquiry",
            "message": "I would like to inquire about the admission process for grade 10.",
            "read": False,
            "replied": False,
            "createdAt": "2024-01-15T09:30:00Z",
        },
        {
            "id": "2",
            "name": "Maria Garcia",
            "email": "maria@example.com",
            "subject": "Teacher Feedback",
            "message": "I wanted to provide feedback about my child's progress this semester.",
            "read": False,
            "replied": False,
            "createdAt": "2024-01-14T14:45:00Z",
        },
    ],
}


def envelope(items: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"schemaVersion": SCHEMA_VERSION, "items": items}


def default_for(key: str) -> Dict[str, Any]:
    if key not in INITIAL_DATA:
        raise KeyError(key)
    return envelope(copy.deepcopy(INITIAL_DATA[key]))


def reseed(store: KeyValueStore, key: str) -> None:
    store.set(key, default_for(key))
    logger.warning("Reseeded '%s' with its default collection", key)


def admin_record(settings=None) -> Dict[str, str]:
    if settings is None:
        return {"email": DEFAULT_ADMIN_EMAIL, "password": DEFAULT_ADMIN_PASSWORD}
    return {"email": settings.ADMIN_EMAIL, "password": settings.ADMIN_PASSWORD}


def reseed_admin(store: KeyValueStore, settings=None) -> None:
    store.set(ADMIN_KEY, admin_record(settings))
    logger.warning("Rewrote the admin record from settings")


def initialize_storage(store: KeyValueStore, settings) -> List[str]:
    """Write defaults for every absent key; return the keys written."""
    written = []
    present = set(store.keys())
    for key in RESOURCE_KEYS:
        if key not in present:
            store.set(key, default_for(key))
            written.append(key)

    if ADMIN_KEY not in present:
        store.set(ADMIN_KEY, admin_record(settings))
        written.append(ADMIN_KEY)

    if written:
        logger.info("Seeded keys: %s", ", ".join(written))
    return written
