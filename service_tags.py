#!/usr/bin/env python3

# The Azure "Service Tags" file, as published by Microsoft.  It's a single
# JSON document that looks something like this:
#
#   {
#     "changeNumber": 123,
#     "cloud": "Public",
#     "values": [
#       {
#         "name": "ActionGroup",
#         "id": "ActionGroup",
#         "properties": {
#           "changeNumber": 45,
#           "region": "",
#           "platform": "Azure",
#           "systemService": "ActionGroup",
#           "addressPrefixes": ["4.145.74.52/30", "2603:1000:4::10/128"],
#           "networkFeatures": ["API", "NSG", "UDR", "FW"]
#         }
#       },
#       ...
#     ]
#   }

from collections import namedtuple
import json

Dataset = namedtuple("Dataset", ["change_number", "cloud", "services"])
Service = namedtuple("Service", ["id", "name", "properties"])
ServiceProperties = namedtuple("ServiceProperties", [
    "change_number",
    "region",
    "platform",
    "system_service",
    "address_prefixes",
    "network_features",
])

class ParseError(Exception):
    pass

def parse_dataset(raw):
    # Turn the raw bytes into a Dataset, anything that doesn't look like
    # the published format is a ParseError
    try:
        data = json.loads(raw)
    except (ValueError, TypeError, RecursionError) as e:
        # Deeply nested documents blow the stack in the json module
        raise ParseError(f"Unable to decode JSON: {e}") from e

    if not isinstance(data, dict):
        raise ParseError("Expected a JSON object at the top level")

    services = []
    for i, value in enumerate(_get(data, "values", list, [])):
        if not isinstance(value, dict):
            raise ParseError(f"values[{i}]: expected an object")
        try:
            services.append(_parse_service(value))
        except ParseError as e:
            raise ParseError(f"values[{i}]: {e}") from e

    return Dataset(
        change_number=_get(data, "changeNumber", int, 0),
        cloud=_get(data, "cloud", str, ""),
        services=tuple(services),
    )

def _parse_service(value):
    props = _get(value, "properties", dict, {})
    return Service(
        id=_get(value, "id", str, ""),
        name=_get(value, "name", str, ""),
        properties=ServiceProperties(
            change_number=_get(props, "changeNumber", int, 0),
            region=_get(props, "region", str, ""),
            platform=_get(props, "platform", str, ""),
            system_service=_get(props, "systemService", str, ""),
            address_prefixes=_get_strings(props, "addressPrefixes"),
            network_features=_get_strings(props, "networkFeatures"),
        ),
    )

def _get(data, key, kind, default):
    # Missing and null values both become the default
    value = data.get(key)
    if value is None:
        return default
    # bool is a subclass of int, but "changeNumber": true isn't a number
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise ParseError(f"{key}: expected {kind.__name__}, got {type(value).__name__}")
    return value

def _get_strings(data, key):
    value = _get(data, key, list, [])
    for x in value:
        if not isinstance(x, str):
            raise ParseError(f"{key}: expected a list of strings")
    return tuple(value)

if __name__ == "__main__":
    print("This module is not meant to be run directly")
