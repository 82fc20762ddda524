import pytest

from ipd_core.models.ipd import BED_AVAILABLE, BED_OCCUPIED, BED_CLEANING
from ipd_core.services import bed_registry
from ipd_core.services.errors import NotFoundError, ValidationError


class TestNormalizeBedType:
    @pytest.mark.parametrize("raw,expected", [
        ("PRIVATE", "private"),
        ("vip", "private"),
        ("ICU", "icu"),
        ("intensive", "icu"),
        ("Paediatric", "pediatric"),
        ("general", "general"),
        ("Pediatric", "pediatric"),
        (" icu ", "icu"),
        ("semi-private", "general"),
        (None, "general"),
    ])
    def test_aliases(self, raw, expected):
        assert bed_registry.normalize_bed_type(raw) == expected


class TestBedLookup:
    def test_get_bed_carries_ward_name(self, db, seed):
        bed = bed_registry.get_bed(db, seed.bed_ids[3])
        assert bed.bed_number == "ICU-1"
        assert bed.ward_name == "ICU"

    def test_missing_bed(self, db):
        with pytest.raises(NotFoundError):
            bed_registry.get_bed(db, 9999)
        with pytest.raises(NotFoundError):
            bed_registry.lock_bed(db, 9999)


class TestSetStatus:
    def test_occupying_stamps_last_occupied(self, db, seed):
        bed = bed_registry.lock_bed(db, seed.bed_ids[0])
        assert bed.last_occupied_at is None

        bed_registry.set_status(db, bed, BED_OCCUPIED)
        stamped = bed.last_occupied_at
        assert bed.status == BED_OCCUPIED
        assert stamped is not None

        bed_registry.set_status(db, bed, BED_AVAILABLE)
        assert bed.status == BED_AVAILABLE
        assert bed.last_occupied_at == stamped

    def test_unknown_status_rejected(self, db, seed):
        bed = bed_registry.lock_bed(db, seed.bed_ids[0])
        with pytest.raises(ValidationError) as exc:
            bed_registry.set_status(db, bed, "reserved")
        assert "status" in exc.value.field_errors


class TestListing:
    def test_available_excludes_maintenance_and_occupied(self, db, seed):
        bed = bed_registry.lock_bed(db, seed.bed_ids[1])
        bed_registry.set_status(db, bed, BED_CLEANING)

        numbers = [b.bed_number for b in bed_registry.list_available_beds(db)]
        assert numbers == ["G-101", "G-103", "ICU-1"]

    def test_filter_by_ward(self, db, seed):
        beds = bed_registry.list_beds(db, ward_id=seed.icu_ward_id)
        assert [b.bed_number for b in beds] == ["ICU-1", "ICU-2"]
