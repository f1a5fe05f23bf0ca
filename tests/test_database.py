"""
Tests for gate pass persistence.
"""

from datetime import datetime


class TestGatePassDatabase:
    def test_create_and_get(self, gatepass_db, sample_gatepass):
        assert gatepass_db.create(sample_gatepass) is True
        stored = gatepass_db.get("GP-1")

        assert stored["gatepassNo"] == "GP/2024/0001"
        assert stored["items"] == sample_gatepass["items"]
        assert isinstance(stored["createdAt"], datetime)
        assert isinstance(stored["updatedAt"], datetime)

    def test_duplicate_id_is_rejected(self, gatepass_db, sample_gatepass):
        assert gatepass_db.create(sample_gatepass) is True
        assert gatepass_db.create(dict(sample_gatepass, destination="Elsewhere")) is False
        assert gatepass_db.get("GP-1")["destination"] == "Site A"

    def test_get_missing(self, gatepass_db):
        assert gatepass_db.get("GP-404") is None

    def test_update_replaces_payload(self, gatepass_db, sample_gatepass):
        gatepass_db.create(sample_gatepass)
        assert gatepass_db.update(dict(sample_gatepass, destination="Site B")) is True
        assert gatepass_db.get("GP-1")["destination"] == "Site B"

    def test_update_keeps_unset_audit_fields(self, gatepass_db, sample_gatepass):
        gatepass_db.create(sample_gatepass)
        gatepass_db.update(dict(sample_gatepass, createdBy=None, modifiedBy="gate@example.com"))

        stored = gatepass_db.get("GP-1")
        assert stored["createdBy"] == "stores@example.com"
        assert stored["modifiedBy"] == "gate@example.com"

    def test_update_missing(self, gatepass_db, sample_gatepass):
        assert gatepass_db.update(sample_gatepass) is False

    def test_list_newest_first(self, gatepass_db, sample_gatepass):
        for gatepass_id in ("GP-1", "GP-2", "GP-3"):
            gatepass_db.create(dict(sample_gatepass, id=gatepass_id))
        assert [row["id"] for row in gatepass_db.list()] == ["GP-3", "GP-2", "GP-1"]

    def test_delete(self, gatepass_db, sample_gatepass):
        gatepass_db.create(sample_gatepass)
        assert gatepass_db.delete("GP-1") is True
        assert gatepass_db.get("GP-1") is None
        assert gatepass_db.delete("GP-1") is False


class TestDestinations:
    def test_create_and_list(self, gatepass_db):
        destination_id = gatepass_db.create_destination("Site A", "SA")
        destinations = gatepass_db.list_destinations()

        assert len(destinations) == 1
        assert destinations[0]["destinationId"] == destination_id
        assert destinations[0]["destinationName"] == "Site A"
        assert destinations[0]["destinationCode"] == "SA"
        assert isinstance(destinations[0]["createdAt"], datetime)

    def test_duplicate_code_is_rejected(self, gatepass_db):
        assert gatepass_db.create_destination("Site A", "SA") is not None
        assert gatepass_db.create_destination("Site A annex", "SA") is None
        assert len(gatepass_db.list_destinations()) == 1

    def test_listed_by_name(self, gatepass_db):
        gatepass_db.create_destination("Warehouse", "WH")
        gatepass_db.create_destination("Depot", "DP")
        assert [row["destinationName"] for row in gatepass_db.list_destinations()] == ["Depot", "Warehouse"]
