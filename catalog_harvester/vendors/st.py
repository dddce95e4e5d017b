"""STMicroelectronics: product grid data pages, datasheets and design resources."""

import logging
import os
from typing import Dict, List, Optional

from bs4 import BeautifulSoup

from ..cache import write_json_atomic
from ..errors import DecodeError
from ..fetcher import extract_path
from ..merger import Record
from ..models import DownloadTask
from .base import BaseVendor, safe_name

logger = logging.getLogger("catalog_harvester")

BASE_URL = "https://www.st.com"

EXCLUDED_SECTIONS = (
    "/applications/",
    "/development-tools/",
    "/embedded-software/",
    "/evaluation-tools/",
)


def parse_menu_links(doc: BeautifulSoup) -> List[str]:
    links = []
    for a in doc.select(".st-nav__blockmenu-link[href]"):
        href = a["href"]
        if not href.startswith("/en/") or any(s in href for s in EXCLUDED_SECTIONS):
            continue
        link = f"{BASE_URL}{href}"
        if link not in links:
            links.append(link)
    return links


def parse_data_pages(doc: BeautifulSoup, page_url: str) -> Dict[str, str]:
    """product id -> URL of the JSON grid listing that category's parts."""
    stem = page_url[:-len(".html")] if page_url.endswith(".html") else page_url
    pages = {}
    for node in doc.select('input[name="didyouknow.productId"][value]'):
        product_id = node["value"]
        pages[product_id] = f"{stem}.cxst-ps-grid.html/{product_id}.json"
    return pages


def part_number(row: dict) -> str:
    for cell in row.get("cells") or []:
        if isinstance(cell, dict) and cell.get("columnId") == "1":
            return cell.get("value") or ""
    return ""


def find_sdi_include(html: str, kind: str) -> Optional[str]:
    """Path named by the first ``<!-- SDI include`` comment mentioning ``kind``."""
    for line in html.split("\n"):
        line = line.lstrip()
        if not line.startswith("<!-- SDI include") or kind not in line:
            continue
        for part in line.split(" "):
            if part.startswith("/"):
                return part[:-1] if part.endswith(",") else part
    return None


def parse_design_resources(doc: BeautifulSoup) -> Dict[str, str]:
    """document title -> href, leaving out datasheets."""
    docs = {}
    for span in doc.find_all("span", attrs={"data-translation-app-exclude": True}):
        title = span.get_text().strip()
        parent = span.parent
        href = parent.get("href") if parent is not None else None
        if not title or not href or "/datasheet/" in href:
            continue
        docs[title] = href.strip()
    return docs


class STVendor(BaseVendor):
    name = "st"
    home_url = BASE_URL
    key_field = "partNumber"
    default_max_in_flight = 8

    DATASHEET_URL = "https://www.st.com/resource/en/datasheet/{key}.pdf"
    DATASHEET_PATH = "pdf/st/datasheets/{name}.pdf"
    TECHDOC_URL = "https://www.st.com{href}"
    TECHDOC_PATH = "pdf/st/techdocs/{name}.pdf"

    def collect_links(self) -> List[str]:
        return parse_menu_links(self.fetcher.get_doc(self.home_url))

    def collect_categories(self, links: List[str]) -> Dict[str, str]:
        categories: Dict[str, str] = {}
        for page, result in self.gather(
            links,
            lambda page: parse_data_pages(self.fetcher.get_doc(page), page),
            "Fetching all sub-categories...",
        ):
            if isinstance(result, Exception):
                logger.warning(f"[{self.name}] {page}: {result}")
                continue
            categories.update(result)
        return categories

    def fetch_category(self, label: str, category_id: str) -> List[Record]:
        """Fetch one data page, cache it raw, and turn its rows into records."""
        page = self.fetcher.get_json(category_id, (), dict)
        write_json_atomic(
            os.path.join(self.json_path("datapages"), f"{safe_name(label)}.json"), page, pretty=True
        )

        rows = extract_path(page, ("rows",), list, source=category_id)
        records = []
        for row in rows:
            if not isinstance(row, dict):
                raise DecodeError(f"{category_id}: row is not an object: {row!r:.100}")
            pn = part_number(row)
            if not pn:
                continue
            record = dict(row)
            record[self.key_field] = pn
            records.append(record)
        return records

    def datasheet_task(self, key: str, record: Record) -> Optional[DownloadTask]:
        return DownloadTask(
            self.DATASHEET_URL.format(key=key),
            self.DATASHEET_PATH.format(name=safe_name(key)),
        )

    def collect_techdocs(self, key: str, record: Record) -> Dict[str, str]:
        folder = record.get("productFolderUrl")
        if not folder:
            return {}
        return parse_design_resources(self.get_sdi_doc(f"{BASE_URL}{folder}", "design-resources.html"))

    def get_sdi_doc(self, link: str, kind: str) -> BeautifulSoup:
        """Follow the page's server-side include of type ``kind`` and parse it."""
        path = find_sdi_include(self.fetcher.get_text(link), kind)
        if path is None:
            raise DecodeError(f"{link}: no SDI include for {kind}")
        return self.fetcher.get_doc(f"{BASE_URL}{path}")

    def techdoc_tasks(self, techdocs: Dict[str, str]) -> List[DownloadTask]:
        return [
            DownloadTask(self.TECHDOC_URL.format(href=href), self.TECHDOC_PATH.format(name=safe_name(title)))
            for title, href in sorted(techdocs.items())
        ]
