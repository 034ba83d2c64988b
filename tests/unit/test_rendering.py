"""
Unit tests for JSON rendering of certificate records and decoded values.
"""

from __future__ import annotations

import base64
import json
from datetime import UTC, datetime, timedelta, timezone

import pytest

from certificate_info.adapters.x509_records import der_to_certificate_record
from certificate_info.domain.values import (
    ArrayValue,
    BooleanValue,
    DataValue,
    DateValue,
    DictValue,
    IntegerValue,
    RealValue,
    StringValue,
)
from certificate_info.rendering import certificate_to_json, certificates_to_json, decoded_value_to_json
from tests.builders import der


class TestCertificateToJson:
    """
    GIVEN a certificate record decoded from a real certificate
    WHEN rendered
    THEN every field has its textual JSON encoding.
    """

    @pytest.fixture()
    def rendered(self, ca_chain) -> dict:
        leaf = ca_chain[2]
        record = der_to_certificate_record(der(leaf), friendly_name="leaf", local_key_id="0a0b")
        return certificate_to_json(record)

    def test_is_json_serializable(self, rendered: dict) -> None:
        assert json.loads(json.dumps(rendered)) == rendered

    def test_certificate_is_base64_der(self, rendered: dict, ca_chain) -> None:
        assert base64.b64decode(rendered["certificate"]) == der(ca_chain[2])

    def test_dates_are_rfc3339_utc(self, rendered: dict) -> None:
        assert rendered["not_before"] == "2024-01-01T00:00:00Z"
        assert rendered["not_after"] == "2034-01-01T00:00:00Z"

    def test_names_and_identity(self, rendered: dict) -> None:
        assert rendered["common_name"] == "Leaf"
        assert {"oid": "2.5.4.3", "name": "CN", "value": "Intermediate CA"} in rendered["issuer"]
        assert rendered["serial_number"] == 12
        assert rendered["self_issued"] is False

    def test_bag_attributes(self, rendered: dict) -> None:
        assert rendered["friendly_name"] == "leaf"
        assert rendered["local_key_id"] == "0a0b"

    def test_extensions_are_lists(self, rendered: dict) -> None:
        assert rendered["extensions"]["basic_constraints"] == ["CA:FALSE"]

    def test_public_key(self, rendered: dict) -> None:
        assert rendered["public_key"]["algorithm"] == "ec"
        assert rendered["public_key"]["curve"] == "secp256r1"
        assert base64.b64decode(rendered["public_key"]["der"])

    def test_list_keeps_order(self, ca_chain) -> None:
        records = [der_to_certificate_record(der(cert)) for cert in ca_chain]
        assert [item["serial_number"] for item in certificates_to_json(records)] == [10, 11, 12]


class TestDecodedValueToJson:
    def test_scalars(self) -> None:
        assert decoded_value_to_json(StringValue("s")) == "s"
        assert decoded_value_to_json(IntegerValue(2**70)) == 2**70
        assert decoded_value_to_json(BooleanValue(True)) is True
        assert decoded_value_to_json(RealValue(1.5)) == 1.5

    def test_data_is_base64(self) -> None:
        assert decoded_value_to_json(DataValue(b"\x00\x01\x02")) == "AAEC"

    def test_date_is_normalized_to_utc(self) -> None:
        moment = datetime(2030, 6, 30, 14, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        assert decoded_value_to_json(DateValue(moment)) == "2030-06-30T12:00:00Z"

    def test_date_keeps_fractional_seconds(self) -> None:
        moment = datetime(2030, 6, 30, 12, 0, 0, 500000, tzinfo=UTC)
        assert decoded_value_to_json(DateValue(moment)) == "2030-06-30T12:00:00.500000Z"

    @pytest.mark.parametrize(
        ("number", "expected"),
        [(float("nan"), "NaN"), (float("inf"), "Infinity"), (float("-inf"), "-Infinity")],
    )
    def test_non_finite_reals(self, number: float, expected: str) -> None:
        assert decoded_value_to_json(RealValue(number)) == expected

    def test_nested_tree(self) -> None:
        tree = DictValue(
            {
                "list": ArrayValue((IntegerValue(1), StringValue("two"))),
                "inner": DictValue({"flag": BooleanValue(False)}),
            }
        )
        assert decoded_value_to_json(tree) == {"list": [1, "two"], "inner": {"flag": False}}

    def test_rejects_foreign_objects(self) -> None:
        with pytest.raises(TypeError):
            decoded_value_to_json("plain string")  # type: ignore[arg-type]
