#!/usr/bin/env python3

from delaymsg import NullLog
from requests import RequestException, get
import re

# MS doesn't publish a stable URL for the data file, instead it's linked
# from this page, and the link changes every week.
DOWNLOAD_PAGE_URL = "https://www.microsoft.com/en-us/download/details.aspx?id=56519"
JSON_LINK_PATTERN = re.compile(r'href="(https://download\.microsoft\.com/download/[^"]+\.json)"')
TIMEOUT = 60

class SourceError(Exception):
    pass

def _fetch(url, what):
    try:
        resp = get(url, timeout=TIMEOUT)
    except RequestException as e:
        raise SourceError(f"Failed to fetch {what}: {e}") from e
    if resp.status_code != 200:
        raise SourceError(f"Unexpected status code for {what}: {resp.status_code}")
    return resp

def find_json_url(log=None, page_url=DOWNLOAD_PAGE_URL):
    log = log or NullLog()
    log.info("Fetching download page", url=page_url)

    html = _fetch(page_url, "download page").text
    matches = JSON_LINK_PATTERN.findall(html)

    if len(matches) == 0:
        raise SourceError("No JSON download link found on page")
    if len(matches) > 1:
        raise SourceError(f"Multiple JSON download links found ({len(matches)}), expected exactly one")

    url = matches[0].replace("&amp;", "&")
    log.info("Found JSON download URL", url=url)
    return url

def download_json(url, log=None):
    log = log or NullLog()
    log.info("Downloading JSON file", url=url)

    # Keep the raw bytes, they're compared byte for byte with the last copy
    data = _fetch(url, "JSON file").content

    log.info("Successfully downloaded JSON", size=len(data))
    return data

def get_raw(log=None):
    return download_json(find_json_url(log=log), log=log)

def test():
    from service_tags import parse_dataset
    data = parse_dataset(get_raw())
    print(f"Results for Azure ({data.cloud}):")
    print(f"  Change number: {data.change_number}")
    print(f"  Services: {len(data.services):,}")
    print(f"  Prefixes: {sum(len(x.properties.address_prefixes) for x in data.services):,}")

if __name__ == "__main__":
    test()
