from datetime import datetime, timezone
import os

import pytest
import yaml

import service_yaml
from service_tags import parse_dataset
from service_yaml import (
    address_space,
    categorize_prefixes,
    generate,
    sanitize_filename,
    transform,
)

NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


def test_categorize_prefixes():
    ipv4, ipv6 = categorize_prefixes(["10.0.0.0/8", "2603:1000::/24", "not-an-ip", "::ffff:1.2.3.4/128"])
    assert ipv4 == ["10.0.0.0/8"]
    assert ipv6 == ["2603:1000::/24", "::ffff:1.2.3.4/128"]


@pytest.mark.parametrize("service_id, expected", [
    ("AzureCloud.westeurope", "azurecloud_westeurope"),
    ("Storage", "storage"),
    ("A.B.C", "a_b_c"),
    ("already_fine", "already_fine"),
])
def test_sanitize_filename(service_id, expected):
    assert sanitize_filename(service_id) == expected


def test_two_service_scenario(make_raw, make_service):
    dataset = parse_dataset(make_raw([
        make_service("A", ["1.2.3.0/24"]),
        make_service("B", ["::1/128"]),
    ], change_number=100))

    records, summary = transform(dataset, now=NOW)

    assert [key for key, _ in records] == ["a", "b"]
    assert records[0][1]["address_prefixes"]["counts"] == {"total": 1, "ipv4": 1, "ipv6": 0}
    assert records[1][1]["address_prefixes"]["counts"] == {"total": 1, "ipv4": 0, "ipv6": 1}
    assert summary == {
        "change_number": 100,
        "cloud": "Public",
        "service_count": 2,
        "generated_at": NOW,
    }


def test_record_layout(make_raw, make_service):
    dataset = parse_dataset(make_raw([
        make_service("Sql.WestEurope", ["10.0.0.0/8", "2603:1000::/24", "not-an-ip"],
                     name="Sql.WestEurope", change_number=7, region="westeurope", systemService="AzureSQL"),
    ], change_number=300, cloud="Public"))

    (key, record), = transform(dataset, now=NOW)[0]

    assert key == "sql_westeurope"
    assert list(record) == ["id", "name", "metadata", "address_prefixes"]
    assert record["metadata"] == {
        "change_number": 7,
        "region": "westeurope",
        "platform": "Azure",
        "system_service": "AzureSQL",
        "network_features": ["API", "NSG"],
        "global_change_number": 300,
        "cloud": "Public",
    }
    prefixes = record["address_prefixes"]
    assert prefixes["all"] == ["10.0.0.0/8", "2603:1000::/24", "not-an-ip"]
    assert prefixes["ipv4"] == ["10.0.0.0/8"]
    assert prefixes["ipv6"] == ["2603:1000::/24"]
    counts = prefixes["counts"]
    assert counts["total"] == 3
    assert counts["ipv4"] + counts["ipv6"] < counts["total"]


def test_empty_ids_are_skipped_but_counted(make_raw, make_service):
    dataset = parse_dataset(make_raw([
        make_service("", ["1.0.0.0/8"]),
        make_service("A", ["2.0.0.0/8"]),
    ]))

    records, summary = transform(dataset, now=NOW)

    assert [record["id"] for _, record in records] == ["A"]
    assert summary["service_count"] == 2


def test_transform_is_repeatable(make_raw, make_service):
    dataset = parse_dataset(make_raw([make_service("A", ["1.0.0.0/8", "::/0"]), make_service("B")]))
    assert transform(dataset, now=NOW) == transform(dataset, now=NOW)


def test_summary_defaults_to_current_utc_time(make_raw):
    before = datetime.now(timezone.utc)
    _, summary = transform(parse_dataset(make_raw([])))
    after = datetime.now(timezone.utc)

    assert summary["generated_at"].tzinfo is not None
    assert before <= summary["generated_at"] <= after


def test_generate_writes_files(tmp_path, make_raw, make_service):
    out_dir = tmp_path / "data" / "services"
    dataset = parse_dataset(make_raw([
        make_service("AzureCloud.westeurope", ["13.69.0.0/17", "2603:1020:200::/46"]),
        make_service("", ["1.0.0.0/8"]),
        make_service("Storage", ["20.38.0.0/16"]),
    ], change_number=55))

    written = generate(dataset, str(out_dir), now=NOW)

    assert written == 2
    assert sorted(os.listdir(out_dir)) == ["azurecloud_westeurope.yaml", "metadata.yaml", "storage.yaml"]

    with open(out_dir / "metadata.yaml") as f:
        metadata = yaml.safe_load(f)
    assert metadata["change_number"] == 55
    assert metadata["service_count"] == 3

    text = (out_dir / "azurecloud_westeurope.yaml").read_text()
    assert text.startswith("id: AzureCloud.westeurope\n")
    assert "\n  global_change_number: 55\n" in text
    record = yaml.safe_load(text)
    assert record["address_prefixes"]["ipv6"] == ["2603:1020:200::/46"]


def test_colliding_keys_last_write_wins(tmp_path, make_raw, make_service):
    dataset = parse_dataset(make_raw([
        make_service("Foo.Bar", ["1.0.0.0/8"]),
        make_service("foo_bar", ["::/0"]),
    ]))

    assert generate(dataset, str(tmp_path), now=NOW) == 2

    with open(tmp_path / "foo_bar.yaml") as f:
        assert yaml.safe_load(f)["id"] == "foo_bar"


def test_failed_service_file_does_not_stop_the_rest(tmp_path, monkeypatch, make_raw, make_service):
    real_write = service_yaml.write_yaml

    def flaky_write(path, data):
        if path.endswith("broken.yaml"):
            raise OSError("disk full")
        real_write(path, data)

    monkeypatch.setattr(service_yaml, "write_yaml", flaky_write)
    dataset = parse_dataset(make_raw([
        make_service("Broken", ["1.0.0.0/8"]),
        make_service("Fine", ["2.0.0.0/8"]),
    ]))

    assert generate(dataset, str(tmp_path), now=NOW) == 1
    assert (tmp_path / "fine.yaml").exists()
    assert not (tmp_path / "broken.yaml").exists()


def test_failed_metadata_write_is_fatal(tmp_path, monkeypatch, make_raw):
    def broken_write(path, data):
        raise OSError("read-only file system")

    monkeypatch.setattr(service_yaml, "write_yaml", broken_write)

    with pytest.raises(OSError):
        generate(parse_dataset(make_raw([])), str(tmp_path), now=NOW)


def test_address_space(make_raw, make_service):
    dataset = parse_dataset(make_raw([
        make_service("A", ["10.0.0.0/24", "10.0.0.0/25", "not-an-ip"]),
        make_service("B", ["10.0.1.0/24", "2603:1000::/126", "1.2.3.4/99"]),
    ]))

    assert address_space(dataset) == (512, 4)


def test_yaml_layout(tmp_path, make_raw, make_service):
    dataset = parse_dataset(make_raw([make_service("A", ["1.2.3.0/24", "2603:1000::/24"])], change_number=9))

    generate(dataset, str(tmp_path), now=NOW)

    text = (tmp_path / "a.yaml").read_text()
    assert "\n  all:\n    - 1.2.3.0/24\n    - 2603:1000::/24\n" in text
    assert "\n  network_features:\n    - API\n    - NSG\n" in text

    metadata = (tmp_path / "metadata.yaml").read_text()
    assert metadata == (
        "change_number: 9\n"
        "cloud: Public\n"
        "service_count: 1\n"
        "generated_at: 2026-10-19T12:00:00Z\n"
    )
    assert yaml.safe_load(metadata)["generated_at"] == NOW


def test_naive_timestamp_is_written_as_utc(tmp_path):
    path = tmp_path / "when.yaml"
    service_yaml.write_yaml(str(path), {"at": datetime(2026, 1, 2, 3, 4, 5, 600000)})
    assert path.read_text() == "at: 2026-01-02T03:04:05.600000Z\n"
