#!/usr/bin/env python3

# Turn a service tags Dataset into one YAML file per service, along with a
# metadata.yaml file that describes the snapshot as a whole.

from datetime import datetime
from delaymsg import NullLog
from netaddr import AddrFormatError, IPNetwork, IPSet
import os
import sys
import yaml
if sys.version_info >= (3, 11): from datetime import UTC
else: import datetime as datetime_fix; UTC=datetime_fix.timezone.utc

METADATA_FILE = "metadata.yaml"

def is_ipv4(prefix):
    return "." in prefix and ":" not in prefix

def is_ipv6(prefix):
    return ":" in prefix

def categorize_prefixes(prefixes):
    # Anything that looks like neither is left out of both lists
    ipv4, ipv6 = [], []
    for prefix in prefixes:
        if is_ipv4(prefix):
            ipv4.append(prefix)
        elif is_ipv6(prefix):
            ipv6.append(prefix)
    return ipv4, ipv6

def sanitize_filename(service_id):
    # "AzureCloud.westeurope" -> "azurecloud_westeurope"
    return service_id.replace(".", "_").lower()

def service_record(service, global_change_number, cloud):
    props = service.properties
    ipv4, ipv6 = categorize_prefixes(props.address_prefixes)
    return {
        "id": service.id,
        "name": service.name,
        "metadata": {
            "change_number": props.change_number,
            "region": props.region,
            "platform": props.platform,
            "system_service": props.system_service,
            "network_features": list(props.network_features),
            "global_change_number": global_change_number,
            "cloud": cloud,
        },
        "address_prefixes": {
            "all": list(props.address_prefixes),
            "ipv4": ipv4,
            "ipv6": ipv6,
            "counts": {
                "total": len(props.address_prefixes),
                "ipv4": len(ipv4),
                "ipv6": len(ipv6),
            },
        },
    }

def transform(dataset, now=None):
    if now is None:
        now = datetime.now(UTC)

    records = []
    for service in dataset.services:
        if service.id == "":
            continue
        records.append((
            sanitize_filename(service.id),
            service_record(service, dataset.change_number, dataset.cloud),
        ))

    # The count includes any services skipped above
    summary = {
        "change_number": dataset.change_number,
        "cloud": dataset.cloud,
        "service_count": len(dataset.services),
        "generated_at": now,
    }

    return records, summary

class IndentDumper(yaml.SafeDumper):
    # PyYAML puts list items flush with their key, indent them instead:
    #   all:
    #     - 10.0.0.0/8
    def increase_indent(self, flow=False, indentless=False):
        return super().increase_indent(flow, False)

def represent_datetime(dumper, value):
    # RFC 3339, with naive times taken to be UTC already
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    text = value.astimezone(UTC).isoformat().replace("+00:00", "Z")
    return dumper.represent_scalar("tag:yaml.org,2002:timestamp", text)

IndentDumper.add_representer(datetime, represent_datetime)

def write_yaml(path, data):
    with open(path, "wt", newline="", encoding="utf-8") as f:
        yaml.dump(data, f, Dumper=IndentDumper, indent=2, sort_keys=False, default_flow_style=False, allow_unicode=True)

def generate(dataset, output_dir, log=None, now=None):
    log = log or NullLog()
    records, summary = transform(dataset, now=now)

    os.makedirs(output_dir, exist_ok=True)

    log.info("Processing services",
        count=len(dataset.services),
        change_number=dataset.change_number,
        cloud=dataset.cloud,
    )

    metadata_file = os.path.join(output_dir, METADATA_FILE)
    write_yaml(metadata_file, summary)
    log.info("Generated metadata file", file=metadata_file)

    written = 0
    for key, record in records:
        filename = f"{key}.yaml"
        try:
            write_yaml(os.path.join(output_dir, filename), record)
        except (OSError, yaml.YAMLError) as e:
            # One bad file shouldn't stop the rest from being written
            log.warning("Failed to write service file", filename=filename, error=e)
            continue

        written += 1
        counts = record["address_prefixes"]["counts"]
        log.debug("Generated service file",
            filename=filename,
            prefixes=counts["total"],
            ipv4=counts["ipv4"],
            ipv6=counts["ipv6"],
        )

    log.info("YAML generation complete",
        total_services=len(dataset.services),
        successful_files=written,
        output_dir=output_dir,
    )

    return written

def address_space(dataset):
    # Total number of IPv4 and IPv6 addresses covered by the dataset,
    # overlapping prefixes are only counted once
    v4, v6 = IPSet(), IPSet()
    for service in dataset.services:
        ipv4, ipv6 = categorize_prefixes(service.properties.address_prefixes)
        for target, prefixes in ((v4, ipv4), (v6, ipv6)):
            for prefix in prefixes:
                try:
                    target.add(IPNetwork(prefix))
                except (AddrFormatError, ValueError):
                    # netaddr won't take it, so it adds nothing
                    pass
    return v4.size, v6.size

if __name__ == "__main__":
    print("This module is not meant to be run directly")
