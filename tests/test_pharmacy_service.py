"""
Pharmacy Directory Backend — Pharmacy Service Unit Tests
=========================================================

What:  Tests for PharmacyService business logic.
Why:   The service owns id parsing, merge-update, soft delete, and every
       translation from store errors to application errors.
How:   Uses mock DB sessions (no real DB). Query results are transient
       Pharmacy rows built by the make_pharmacy fixture.

What we test:
    ✅ Create applies defaults and maps unique violations to DuplicateKeyError
    ✅ Get / update / delete map malformed and unknown ids to NotFoundError
    ✅ Get hides inactive listings; update and delete still find them
    ✅ Update merges over the stored document and re-validates it
    ✅ Store failures become DatabaseError
    ✅ Optional email uniqueness
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, OperationalError

from pharmacy_directory.exceptions import (
    DatabaseError,
    DuplicateKeyError,
    NotFoundError,
    ValidationError,
)
from pharmacy_directory.schemas.pharmacy import PharmacyCreate
from pharmacy_directory.services.pharmacy_service import (
    PharmacyService,
    is_unique_violation,
    service_offered_matches,
    substring_pattern,
)


def _returning(session, row):
    """Make the next db.execute() resolve to `row`."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = row
    session.execute.return_value = result


def _unique_violation() -> IntegrityError:
    return IntegrityError("INSERT INTO pharmacies ...", {}, Exception("UNIQUE constraint failed"))


class TestHelpers:

    def test_substring_pattern_escapes_like_wildcards(self):
        assert substring_pattern("50%_off") == "%50\\%\\_off%"

    def test_substring_pattern_escapes_backslash(self):
        assert substring_pattern("a\\b") == "%a\\\\b%"

    def test_unique_violation_detected_by_sqlstate(self):
        orig = Exception("duplicate key value violates constraint")
        orig.sqlstate = "23505"
        assert is_unique_violation(IntegrityError("stmt", {}, orig))

    def test_other_sqlstate_is_not_unique_violation(self):
        orig = Exception("null value in column violates not-null constraint")
        orig.sqlstate = "23502"
        assert not is_unique_violation(IntegrityError("stmt", {}, orig))

    def test_unique_violation_detected_by_message(self):
        assert is_unique_violation(_unique_violation())

    def test_service_match_unnests_jsonb_on_postgres(self):
        sql = str(service_offered_matches("vacc", "postgresql").compile(dialect=postgresql.dialect()))
        assert "EXISTS" in sql
        assert "jsonb_array_elements_text(pharmacies.services_offered)" in sql
        assert "CAST" not in sql

    def test_service_match_uses_json_each_on_sqlite(self):
        sql = str(service_offered_matches("vacc", "sqlite").compile(dialect=sqlite.dialect()))
        assert "json_each(pharmacies.services_offered)" in sql


class TestCreatePharmacy:

    def setup_method(self):
        self.service = PharmacyService()

    @pytest.mark.asyncio
    async def test_create_returns_stored_record(self, mock_db_session, sample_pharmacy_payload):
        """Flush assigns id and timestamps; the response reflects them."""
        assigned_id = uuid4()
        now = datetime.now(timezone.utc)

        async def mock_flush():
            added = mock_db_session.add.call_args.args[0]
            added.id = assigned_id
            added.is_active = True
            added.created_at = now
            added.updated_at = now

        mock_db_session.flush.side_effect = mock_flush

        data = PharmacyCreate.model_validate(sample_pharmacy_payload)
        result = await self.service.create_pharmacy(mock_db_session, data)

        assert result.id == assigned_id
        assert result.is_active is True
        assert result.address.country == "USA"
        assert result.email == "contact@harborpharmacy.com"
        mock_db_session.add.assert_called_once()
        mock_db_session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_create_stores_camel_case_documents(self, mock_db_session, sample_pharmacy_payload):
        mock_db_session.flush.side_effect = _unique_violation()
        data = PharmacyCreate.model_validate(sample_pharmacy_payload)

        with pytest.raises(DuplicateKeyError):
            await self.service.create_pharmacy(mock_db_session, data)

        added = mock_db_session.add.call_args.args[0]
        assert added.address["zipCode"] == "02108"
        assert added.address["coordinates"] == {"latitude": 42.3588, "longitude": -71.0578}
        assert added.opening_hours[0] == {"dayOfWeek": 1, "openTime": "09:00", "closeTime": "18:00"}

    @pytest.mark.asyncio
    async def test_duplicate_license_raises_duplicate_key(self, mock_db_session, sample_pharmacy_payload):
        mock_db_session.flush.side_effect = _unique_violation()
        data = PharmacyCreate.model_validate(sample_pharmacy_payload)

        with pytest.raises(DuplicateKeyError) as exc_info:
            await self.service.create_pharmacy(mock_db_session, data)

        assert exc_info.value.message == "Pharmacy with this license number already exists."
        assert exc_info.value.field == "licenseNumber"

    @pytest.mark.asyncio
    async def test_store_failure_raises_database_error(self, mock_db_session, sample_pharmacy_payload):
        mock_db_session.flush.side_effect = OperationalError("stmt", {}, Exception("connection lost"))
        data = PharmacyCreate.model_validate(sample_pharmacy_payload)

        with pytest.raises(DatabaseError):
            await self.service.create_pharmacy(mock_db_session, data)

    @pytest.mark.asyncio
    async def test_taken_email_rejected_when_enforced(self, mock_db_session, sample_pharmacy_payload):
        service = PharmacyService(unique_email=True)
        _returning(mock_db_session, uuid4())
        data = PharmacyCreate.model_validate(sample_pharmacy_payload)

        with pytest.raises(DuplicateKeyError) as exc_info:
            await service.create_pharmacy(mock_db_session, data)

        assert exc_info.value.field == "email"
        mock_db_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_email_not_checked_by_default(self, mock_db_session, sample_pharmacy_payload):
        data = PharmacyCreate.model_validate(sample_pharmacy_payload)
        mock_db_session.flush.side_effect = _unique_violation()

        with pytest.raises(DuplicateKeyError):
            await self.service.create_pharmacy(mock_db_session, data)

        mock_db_session.execute.assert_not_awaited()


class TestGetPharmacy:

    def setup_method(self):
        self.service = PharmacyService()

    @pytest.mark.asyncio
    async def test_get_active_pharmacy(self, mock_db_session, make_pharmacy):
        row = make_pharmacy()
        _returning(mock_db_session, row)

        result = await self.service.get_pharmacy(mock_db_session, str(row.id))

        assert result.id == row.id
        assert result.name == "Harbor Pharmacy"

    @pytest.mark.asyncio
    async def test_unknown_id_raises_not_found(self, mock_db_session):
        _returning(mock_db_session, None)

        with pytest.raises(NotFoundError) as exc_info:
            await self.service.get_pharmacy(mock_db_session, str(uuid4()))

        assert exc_info.value.message == "Pharmacy not found"

    @pytest.mark.asyncio
    async def test_malformed_id_raises_not_found_without_query(self, mock_db_session):
        with pytest.raises(NotFoundError) as exc_info:
            await self.service.get_pharmacy(mock_db_session, "not-an-id")

        assert exc_info.value.message == "Pharmacy not found (Invalid ID format)"
        mock_db_session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_inactive_pharmacy_raises_not_found(self, mock_db_session, make_pharmacy):
        row = make_pharmacy(is_active=False)
        _returning(mock_db_session, row)

        with pytest.raises(NotFoundError):
            await self.service.get_pharmacy(mock_db_session, str(row.id))

    @pytest.mark.asyncio
    async def test_query_failure_raises_database_error(self, mock_db_session):
        mock_db_session.execute.side_effect = OperationalError("stmt", {}, Exception("down"))

        with pytest.raises(DatabaseError):
            await self.service.get_pharmacy(mock_db_session, str(uuid4()))


class TestListPharmacies:

    def setup_method(self):
        self.service = PharmacyService()

    @pytest.mark.asyncio
    async def test_list_returns_rows(self, mock_db_session, make_pharmacy):
        rows = [make_pharmacy(name="Alpha", license_number="A"), make_pharmacy(name="Beta", license_number="B")]
        result = MagicMock()
        result.scalars.return_value.all.return_value = rows
        mock_db_session.execute.return_value = result

        pharmacies = await self.service.list_pharmacies(mock_db_session, city="bos", service="vacc")

        assert [p.name for p in pharmacies] == ["Alpha", "Beta"]
        mock_db_session.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_list_failure_raises_database_error(self, mock_db_session):
        mock_db_session.execute.side_effect = OperationalError("stmt", {}, Exception("down"))

        with pytest.raises(DatabaseError):
            await self.service.list_pharmacies(mock_db_session)


class TestUpdatePharmacy:

    def setup_method(self):
        self.service = PharmacyService()

    @pytest.mark.asyncio
    async def test_partial_update_preserves_other_fields(self, mock_db_session, make_pharmacy):
        row = make_pharmacy()
        _returning(mock_db_session, row)

        result = await self.service.update_pharmacy(
            mock_db_session, str(row.id), {"phoneNumber": "617-555-0199"}
        )

        assert result.phone_number == "617-555-0199"
        assert result.name == "Harbor Pharmacy"
        assert result.license_number == "LIC-1"
        assert row.address["city"] == "Boston"
        mock_db_session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_snake_case_payload_keys_applied(self, mock_db_session, make_pharmacy):
        row = make_pharmacy()
        _returning(mock_db_session, row)

        result = await self.service.update_pharmacy(
            mock_db_session, str(row.id), {"license_number": "LIC-9"}
        )

        assert result.license_number == "LIC-9"

    @pytest.mark.asyncio
    async def test_nested_address_replaced_whole(self, mock_db_session, make_pharmacy):
        row = make_pharmacy()
        _returning(mock_db_session, row)

        with pytest.raises(ValidationError) as exc_info:
            await self.service.update_pharmacy(
                mock_db_session, str(row.id), {"address": {"city": "Chicago"}}
            )

        assert "address.street" in exc_info.value.errors
        mock_db_session.flush.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_merged_document_raises_validation_error(self, mock_db_session, make_pharmacy):
        row = make_pharmacy()
        _returning(mock_db_session, row)

        with pytest.raises(ValidationError) as exc_info:
            await self.service.update_pharmacy(
                mock_db_session, str(row.id), {"email": "not-an-email", "name": ""}
            )

        assert exc_info.value.errors["email"] == "is invalid"
        assert "name" in exc_info.value.errors
        assert row.name == "Harbor Pharmacy"

    @pytest.mark.asyncio
    async def test_read_only_fields_ignored(self, mock_db_session, make_pharmacy):
        row = make_pharmacy()
        original_id = row.id
        _returning(mock_db_session, row)

        result = await self.service.update_pharmacy(
            mock_db_session, str(row.id), {"id": str(uuid4()), "createdAt": "1999-01-01T00:00:00Z"}
        )

        assert result.id == original_id

    @pytest.mark.asyncio
    async def test_update_can_reactivate_inactive_pharmacy(self, mock_db_session, make_pharmacy):
        row = make_pharmacy(is_active=False)
        _returning(mock_db_session, row)

        result = await self.service.update_pharmacy(mock_db_session, str(row.id), {"isActive": True})

        assert result.is_active is True
        assert row.is_active is True

    @pytest.mark.asyncio
    async def test_update_bumps_updated_at(self, mock_db_session, make_pharmacy):
        earlier = datetime(2024, 1, 1, tzinfo=timezone.utc)
        row = make_pharmacy(created_at=earlier, updated_at=earlier)
        _returning(mock_db_session, row)

        result = await self.service.update_pharmacy(mock_db_session, str(row.id), {"name": "Renamed"})

        assert result.updated_at > earlier
        assert result.created_at == earlier

    @pytest.mark.asyncio
    async def test_duplicate_license_on_update(self, mock_db_session, make_pharmacy):
        row = make_pharmacy()
        _returning(mock_db_session, row)
        mock_db_session.flush.side_effect = _unique_violation()

        with pytest.raises(DuplicateKeyError) as exc_info:
            await self.service.update_pharmacy(mock_db_session, str(row.id), {"licenseNumber": "LIC-2"})

        assert exc_info.value.message == "Update failed: duplicate key violation (license number)."

    @pytest.mark.asyncio
    async def test_unknown_id_raises_not_found(self, mock_db_session):
        _returning(mock_db_session, None)

        with pytest.raises(NotFoundError):
            await self.service.update_pharmacy(mock_db_session, str(uuid4()), {"name": "X"})

    @pytest.mark.asyncio
    async def test_malformed_id_raises_not_found(self, mock_db_session):
        with pytest.raises(NotFoundError):
            await self.service.update_pharmacy(mock_db_session, "abc", {"name": "X"})


class TestDeletePharmacy:

    def setup_method(self):
        self.service = PharmacyService()

    @pytest.mark.asyncio
    async def test_delete_marks_inactive(self, mock_db_session, make_pharmacy):
        row = make_pharmacy()
        _returning(mock_db_session, row)

        result = await self.service.delete_pharmacy(mock_db_session, str(row.id))

        assert result.msg == "Pharmacy marked as inactive"
        assert row.is_active is False
        mock_db_session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_delete_already_inactive_succeeds(self, mock_db_session, make_pharmacy):
        row = make_pharmacy(is_active=False)
        _returning(mock_db_session, row)

        result = await self.service.delete_pharmacy(mock_db_session, str(row.id))

        assert result.msg == "Pharmacy marked as inactive"
        assert row.is_active is False

    @pytest.mark.asyncio
    async def test_unknown_id_raises_not_found(self, mock_db_session):
        _returning(mock_db_session, None)

        with pytest.raises(NotFoundError):
            await self.service.delete_pharmacy(mock_db_session, str(uuid4()))

    @pytest.mark.asyncio
    async def test_malformed_id_raises_not_found(self, mock_db_session):
        with pytest.raises(NotFoundError):
            await self.service.delete_pharmacy(mock_db_session, "123")

    @pytest.mark.asyncio
    async def test_flush_failure_raises_database_error(self, mock_db_session, make_pharmacy):
        row = make_pharmacy()
        _returning(mock_db_session, row)
        mock_db_session.flush.side_effect = OperationalError("stmt", {}, Exception("down"))

        with pytest.raises(DatabaseError):
            await self.service.delete_pharmacy(mock_db_session, str(row.id))
