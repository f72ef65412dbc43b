#!/usr/bin/env python3

# Pull down the latest Azure service tags file, and if it's changed since
# the last time we looked, write out a YAML file for each service.

from change_detector import diff, has_changed, load_previous, log_change_details
from delaymsg import RunLog
from service_tags import ParseError, parse_dataset
from service_yaml import address_space, generate
import azure_source
import os
import sys

DEFAULT_OUTPUT_DIR = os.path.join("data", "services")
HELP_FLAGS = {"--help", "-h", "/?", "/h"}

USAGE = [
    "Usage: get_azure.py --json-input-file <path> [options]",
    "",
    "--json-input-file <path> - Where the last downloaded JSON is kept, required",
    "--output <dir>           - Output directory for YAML files (default: data/services)",
    "--force                  - Generate even if no changes are detected",
    "--verbose                - Show debug messages",
]

def show_usage():
    for row in USAGE:
        print(row)

def parse_args(args):
    # Returns the options, or None if the args don't make sense
    opts = {
        "output": DEFAULT_OUTPUT_DIR,
        "json_input_file": "",
        "force": False,
        "verbose": False,
        "help": False,
    }
    takes_value = {"--output": "output", "--json-input-file": "json_input_file"}
    flags = {"--force": "force", "--verbose": "verbose"}

    args = list(args)
    while len(args):
        arg = args.pop(0)
        if arg in HELP_FLAGS:
            opts["help"] = True
            continue
        value = None
        if "=" in arg:
            arg, value = arg.split("=", 1)
        if arg in takes_value:
            if value is None:
                if len(args) == 0:
                    return None
                value = args.pop(0)
            opts[takes_value[arg]] = value
        elif arg in flags and value is None:
            opts[flags[arg]] = True
        else:
            return None
    return opts

def summarize(dataset, log):
    v4, v6 = address_space(dataset)
    log.info("Address space", ipv4=f"{v4:,}", ipv6=f"{v6:,}")

def main(args=None):
    if args is None:
        args = sys.argv[1:]

    opts = parse_args(args)
    if opts is None:
        show_usage()
        return 1
    if opts["help"]:
        show_usage()
        return 0

    log = RunLog(verbose=opts["verbose"])
    log.info("Azure IP Ranges Generator")

    if opts["json_input_file"] == "":
        log.error("json-input-file flag is required")
        return 1

    # Download the JSON
    try:
        url = azure_source.find_json_url(log=log)
    except azure_source.SourceError as e:
        log.error("Failed to find JSON URL", error=e)
        return 1
    try:
        json_data = azure_source.download_json(url, log=log)
    except azure_source.SourceError as e:
        log.error("Failed to download JSON", error=e)
        return 1

    # Check for changes
    try:
        previous = load_previous(opts["json_input_file"])
    except OSError as e:
        log.error("Failed to read old data", error=e)
        return 1
    try:
        changed = has_changed(previous, json_data, log=log)
    except ParseError as e:
        log.error("Failed to check for changes", error=e)
        return 1

    if not changed and not opts["force"]:
        log.info("No changes detected, skipping generation")
        return 0

    # The details are only informational, so don't fail if we can't get them
    try:
        log_change_details(diff(previous, json_data, log=log), log)
    except ParseError as e:
        log.warning("Failed to get change details", error=e)

    # Save the JSON for the next run to compare against
    try:
        with open(opts["json_input_file"], "wb") as f:
            f.write(json_data)
    except OSError as e:
        log.error("Failed to save JSON file", error=e)
        return 1
    log.info("Saved JSON file", path=opts["json_input_file"])

    # And generate the YAML files
    dataset = parse_dataset(json_data)
    try:
        generate(dataset, opts["output"], log=log)
    except OSError as e:
        log.error("Failed to generate YAML files", error=e)
        return 1

    summarize(dataset, log)
    log.info("Process complete")
    return 0

if __name__ == "__main__":
    sys.exit(main())
