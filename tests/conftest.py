import json

import pytest


def service(id, prefixes=(), name=None, change_number=1, **props):
    return {
        "id": id,
        "name": id if name is None else name,
        "properties": dict({
            "changeNumber": change_number,
            "region": "",
            "platform": "Azure",
            "systemService": "",
            "addressPrefixes": list(prefixes),
            "networkFeatures": ["API", "NSG"],
        }, **props),
    }


def raw_dataset(services, change_number=100, cloud="Public"):
    return json.dumps({
        "changeNumber": change_number,
        "cloud": cloud,
        "values": list(services),
    }, indent=2).encode("utf-8")


@pytest.fixture
def make_service():
    return service


@pytest.fixture
def make_raw():
    return raw_dataset
