#!/usr/bin/env python3

# Decide if a freshly downloaded service tags file is any different from
# the one we saved last time, and if so, what changed.

from delaymsg import NullLog
from service_tags import ParseError, parse_dataset
import os

class ChangeReport:
    __slots__ = (
        'is_new',
        'old_change_number', 'new_change_number',
        'old_service_count', 'new_service_count',
        'added_ids', 'removed_ids', 'modified_ids',
    )
    def __init__(self, is_new=False, old_change_number=0, new_change_number=0,
            old_service_count=0, new_service_count=0,
            added_ids=frozenset(), removed_ids=frozenset(), modified_ids=frozenset()):
        self.is_new = is_new
        self.old_change_number = old_change_number
        self.new_change_number = new_change_number
        self.old_service_count = old_service_count
        self.new_service_count = new_service_count
        self.added_ids = frozenset(added_ids)
        self.removed_ids = frozenset(removed_ids)
        self.modified_ids = frozenset(modified_ids)

    def __eq__(self, other):
        if not isinstance(other, ChangeReport):
            return NotImplemented
        return all(getattr(self, x) == getattr(other, x) for x in self.__slots__)

    def __repr__(self):
        return "ChangeReport(" + ", ".join(f"{x}={getattr(self, x)!r}" for x in self.__slots__) + ")"

def load_previous(path):
    # Returns None if there's no previous snapshot to compare against
    if not os.path.isfile(path):
        return None
    with open(path, "rb") as f:
        return f.read()

def has_changed(previous_raw, new_raw, log=None):
    log = log or NullLog()

    # The new data must parse, but a missing or broken old copy just means
    # we start over
    new = parse_dataset(new_raw)
    if previous_raw is None:
        log.info("No previous data file found, treating as new data")
        return True
    try:
        old = parse_dataset(previous_raw)
    except ParseError as e:
        log.warning("Failed to parse old JSON, treating as changed", error=e)
        return True

    if old.change_number != new.change_number:
        log.info("Change number differs", old=old.change_number, new=new.change_number)
        return True

    # The change number can stay the same while the file itself differs
    if _as_bytes(previous_raw) != _as_bytes(new_raw):
        log.info("Change numbers match but content differs, treating as changed")
        return True

    log.info("No changes detected", change_number=old.change_number)
    return False

def diff(previous_raw, new_raw, log=None):
    log = log or NullLog()

    new = parse_dataset(new_raw)
    if previous_raw is None:
        return ChangeReport(is_new=True)
    try:
        old = parse_dataset(previous_raw)
    except ParseError as e:
        log.warning("Failed to parse old JSON", error=e)
        return ChangeReport(is_new=True)

    # If an id shows up more than once, the last one wins
    old_services = {x.id: x for x in old.services}
    new_services = {x.id: x for x in new.services}

    old_ids = set(old_services)
    new_ids = set(new_services)

    modified = {
        x for x in old_ids & new_ids
        if not services_equal(old_services[x], new_services[x])
    }

    return ChangeReport(
        old_change_number=old.change_number,
        new_change_number=new.change_number,
        old_service_count=len(old.services),
        new_service_count=len(new.services),
        added_ids=new_ids - old_ids,
        removed_ids=old_ids - new_ids,
        modified_ids=modified,
    )

def services_equal(a, b):
    # Note: This is a cheap check, not a real comparison.  Two services with
    # the same change number and the same number of prefixes are considered
    # the same, even if the prefixes themselves differ.
    if a.id != b.id or a.name != b.name:
        return False
    if len(a.properties.address_prefixes) != len(b.properties.address_prefixes):
        return False
    return a.properties.change_number == b.properties.change_number

def log_change_details(report, log):
    if report.is_new:
        log.info("This is a new dataset")
        return

    log.info("Change details",
        old_change_number=report.old_change_number,
        new_change_number=report.new_change_number,
        old_service_count=report.old_service_count,
        new_service_count=report.new_service_count,
    )

    if len(report.added_ids) > 0:
        log.info("Services added", count=len(report.added_ids), services=report.added_ids)
    if len(report.removed_ids) > 0:
        log.info("Services removed", count=len(report.removed_ids), services=report.removed_ids)
    if len(report.modified_ids) > 0:
        log.info("Services modified", count=len(report.modified_ids))
        if len(report.modified_ids) <= 10:
            log.debug("Modified services", services=report.modified_ids)

def _as_bytes(value):
    if isinstance(value, str):
        return value.encode("utf-8")
    return value

if __name__ == "__main__":
    print("This module is not meant to be run directly")
