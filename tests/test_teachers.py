"""
Tests for teacher records: nested profile, legacy documents, statistics and
export/import.
"""
import json

import pytest
from pydantic import ValidationError

from conftest import teacher_data
from database import MemoryStore
from errors import InvalidTransitionError
from repositories import build_repositories
from schemas import Teacher, TeacherPayload


@pytest.fixture
def teachers(repos):
    return repos["teachers"]


@pytest.fixture
def seeded_teachers(seeded_repos):
    return seeded_repos["teachers"]


class TestProfile:
    def test_nested_defaults(self, teachers):
        record = teachers.create(teacher_data())
        assert record.basicInfo.title == "Mr."
        assert record.employmentDetails.employmentType == "Full-time"
        assert record.employmentDetails.bankDetails.bankName == ""
        assert record.academicResponsibilities.homeroomTeacher is False
        assert record.documents.certificates == []
        assert record.status == "Active"
        assert record.full_name == "Ada Lovelace"

    def test_legacy_flat_record(self):
        record = Teacher.model_validate({
            "id": "1",
            "name": "John Smith",
            "department": "Science",
            "bio": "Loves labs",
            "photoUrl": "https://example.com/john.jpg",
        })
        assert record.basicInfo.firstName == "John"
        assert record.basicInfo.lastName == "Smith"
        assert record.basicInfo.photoUrl == "https://example.com/john.jpg"
        assert record.professionalInfo.department == "Science"
        assert record.additionalInfo.bio == "Loves labs"
        assert record.status == "Active"

    def test_legacy_single_name(self):
        record = Teacher.model_validate({"id": "1", "name": "Plato"})
        assert record.full_name == "Plato"
        assert record.basicInfo.lastName == ""


class TestValidation:
    @pytest.mark.parametrize("section,field,value", [
        ("basicInfo", "firstName", ""),
        ("basicInfo", "lastName", "  "),
        ("contactInfo", "email", "nobody"),
        ("professionalInfo", "employeeId", ""),
        ("professionalInfo", "department", ""),
    ])
    def test_required_fields(self, section, field, value):
        data = teacher_data()
        data[section] = {**data[section], field: value}
        with pytest.raises(ValidationError):
            TeacherPayload.model_validate(data)

    def test_unknown_status(self, teachers):
        with pytest.raises(ValidationError):
            teachers.create(teacher_data(status="Fired"))

    def test_missing_section(self, teachers):
        data = teacher_data()
        del data["contactInfo"]
        with pytest.raises(ValidationError):
            teachers.create(data)


class TestStatus:
    def test_archive(self, teachers):
        record = teachers.create(teacher_data())
        assert teachers.archive(record.id).status == "Archived"
        assert teachers.transition(record.id, "Active").status == "Active"

    def test_same_status_is_rejected(self, teachers):
        record = teachers.create(teacher_data())
        with pytest.raises(InvalidTransitionError):
            teachers.transition(record.id, "Active")

    def test_unknown_status(self, teachers):
        record = teachers.create(teacher_data())
        with pytest.raises(InvalidTransitionError):
            teachers.transition(record.id, "Fired")


class TestQueries:
    @pytest.fixture
    def staff(self, teachers):
        teachers.create(teacher_data())
        teachers.create(teacher_data(
            basicInfo={"firstName": "Alan", "lastName": "Turing"},
            contactInfo={"email": "alan@school.com"},
            professionalInfo={
                "employeeId": "T-050",
                "department": "Computing",
                "subjects": ["Logic"],
                "gradeLevels": ["11th"],
            },
            employmentDetails={"employmentType": "Part-time"},
            status="On Leave",
        ))
        return teachers

    def test_filters(self, staff):
        assert [t.full_name for t in staff.query({"department": "Computing"})] == ["Alan Turing"]
        assert [t.full_name for t in staff.query({"subject": "Algebra"})] == ["Ada Lovelace"]
        assert [t.full_name for t in staff.query({"gradeLevel": "11th"})] == ["Alan Turing"]
        assert [t.full_name for t in staff.query({"employmentType": "Full-time"})] == ["Ada Lovelace"]
        assert [t.full_name for t in staff.query({"status": "On Leave"})] == ["Alan Turing"]

    def test_search_nested_fields(self, staff):
        assert [t.full_name for t in staff.query({"search": "t-050"})] == ["Alan Turing"]
        assert [t.full_name for t in staff.query({"search": "ADA@"})] == ["Ada Lovelace"]

    def test_sorts(self, staff):
        assert [t.full_name for t in staff.query(sort_by="name")] == ["Ada Lovelace", "Alan Turing"]
        assert [t.full_name for t in staff.query(sort_by="employeeId")] == ["Alan Turing", "Ada Lovelace"]
        assert [t.full_name for t in staff.query(sort_by="department")] == ["Alan Turing", "Ada Lovelace"]

    def test_statistics(self, staff):
        assert staff.statistics() == {
            "total": 2,
            "active": 1,
            "onLeave": 1,
            "byDepartment": {"Computing": 1, "Mathematics": 1},
        }

    def test_statistics_for_given_departments(self, staff):
        stats = staff.statistics(departments=["Mathematics", "Arts"])
        assert stats["byDepartment"] == {"Mathematics": 1, "Arts": 0}


class TestExportImport:
    def test_export_is_a_json_list(self, seeded_teachers):
        exported = json.loads(seeded_teachers.export())
        assert [t["id"] for t in exported] == ["1", "2"]
        assert exported[0]["basicInfo"]["firstName"] == "Sarah"

    def test_import_into_empty_profile_keeps_ids(self, seeded_teachers, settings, clock):
        fresh = build_repositories(MemoryStore(), settings, clock=clock)["teachers"]
        imported = fresh.import_records(seeded_teachers.export())
        assert [t.id for t in imported] == ["1", "2"]
        assert [t.full_name for t in fresh.list()] == ["Sarah Johnson", "David Chen"]

    def test_import_colliding_ids(self, seeded_teachers):
        imported = seeded_teachers.import_records(seeded_teachers.export())
        ids = [t.id for t in seeded_teachers.list()]
        assert len(ids) == 4
        assert len(set(ids)) == 4
        assert all(t.id not in ("1", "2") for t in imported)

    def test_import_list_and_legacy_records(self, teachers, clock):
        imported = teachers.import_records([{"name": "Grace Hopper", "department": "Computing"}])
        assert imported[0].full_name == "Grace Hopper"
        assert imported[0].professionalInfo.department == "Computing"
        assert imported[0].createdAt == clock.now

    def test_import_rejects_non_list(self, teachers):
        with pytest.raises(ValidationError):
            teachers.import_records('{"teachers": []}')
        assert teachers.list() == []

    def test_import_rejects_bad_json(self, teachers):
        with pytest.raises(ValidationError):
            teachers.import_records("[{")
