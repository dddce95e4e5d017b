"""Texas Instruments: parametric selection tool data and /lit/ documents.

Category tree: megamenu on the home page -> family overview pages -> left
navigation links -> products.html pages carrying the family id. Each family
has a criteria JSON (column definitions) and a results JSON (one row per
part, keyed by the orderable part number in field ``o1``).
"""

import logging
from typing import Dict, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from ..cache import write_json_atomic
from ..errors import DecodeError
from ..merger import Record, merge_mappings
from ..models import DownloadTask
from .base import BaseVendor, safe_name

logger = logging.getLogger("catalog_harvester")


def parse_menu_links(doc: BeautifulSoup) -> List[str]:
    links = []
    for a in doc.select(".ti_p-megaMenu-nav-list li a[href]"):
        href = a["href"]
        if href.startswith("//") and href.endswith("overview.html") and "/applications/" not in href:
            link = f"http:{href}"
            if link not in links:
                links.append(link)
    return links


def parse_nav_links(doc: BeautifulSoup, base_url: str) -> set:
    return {urljoin(base_url, a["href"]) for a in doc.select(".ti_left-nav-container a[href]")}


def parse_category_map(doc: BeautifulSoup) -> Dict[str, str]:
    """Map the page's category title to every family id listed on it."""
    headings = doc.find_all("h1")
    label = headings[-1].get_text() if headings else ""
    label = label.replace(" – Products", "").replace(" - Products", "").strip()

    categories = {}
    for node in doc.select(".rst[familyid]"):
        categories[label] = node["familyid"]
    return categories


def parse_techdoc_links(doc: BeautifulSoup) -> Dict[str, str]:
    """href -> title for every technical document that is not the datasheet."""
    docs = {}
    for a in doc.select("ti-techdocs a[href]"):
        title = a.get("data-navtitle", "")
        if "Datasheet" in title or "Data sheet" in title:
            continue
        docs[a["href"]] = a.get_text()
    return docs


class TIVendor(BaseVendor):
    name = "ti"
    home_url = "https://www.ti.com"
    key_field = "o1"
    default_max_in_flight = 3

    CRITERIA_URL = "https://www.ti.com/selectiontool/paramdata/family/{id}/criteria?lang=en&output=json"
    RESULTS_URL = "https://www.ti.com/selectiontool/paramdata/family/{id}/results?lang=en&output=json"
    PRODUCT_URL = "https://www.ti.com/product/{key}"
    DATASHEET_URL = "https://www.ti.com/lit/gpn/{key}"
    DATASHEET_PATH = "pdf/ti/gpn/{name}.pdf"
    TECHDOC_URL = "https://www.ti.com{href}"
    TECHDOC_PATH = "pdf/ti/lit/{name}.pdf"

    def collect_links(self) -> List[str]:
        return parse_menu_links(self.fetcher.get_doc(self.home_url))

    def collect_categories(self, links: List[str]) -> Dict[str, str]:
        nav_links = self.gather_links(
            links,
            lambda link: parse_nav_links(self.fetcher.get_doc(link), link),
            "Parsing menu pages...",
        )

        categories: Dict[str, str] = {}
        for link, result in self.gather(
            sorted(nav_links),
            lambda link: parse_category_map(
                self.fetcher.get_doc(link.replace("overview.html", "products.html"))
            ),
            "Parsing sub categories...",
        ):
            if isinstance(result, Exception):
                logger.warning(f"[{self.name}] {link}: {result}")
                continue
            merge_mappings(categories, result)
        return categories

    def build_indexes(self, categories: Dict[str, str]):
        """Write ``categories.json``: criteria id -> [name, description]."""
        criteria: Dict[str, list] = {}
        for family_id, result in self.gather(
            list(categories.values()), self.fetch_criteria, "Fetching criteria information..."
        ):
            if isinstance(result, Exception):
                logger.warning(f"[{self.name}] Criteria for family {family_id}: {result}")
                continue
            merge_mappings(criteria, result)
        write_json_atomic(self.json_path("categories.json"), criteria)

    def fetch_criteria(self, family_id: str) -> Dict[str, list]:
        url = self.CRITERIA_URL.format(id=family_id)
        controls = self.fetcher.get_json(url, ("ParametricControl", "controls"), list)
        criteria = {}
        for control in controls:
            try:
                criteria[control["cid"]] = [control["name"], control["desc"]]
            except (KeyError, TypeError) as e:
                raise DecodeError(f"{url}: malformed control {control!r:.100}") from e
        return criteria

    def fetch_category(self, label: str, category_id: str) -> List[Record]:
        url = self.RESULTS_URL.format(id=category_id)
        return self.fetcher.get_json(url, ("ParametricResults",), list)

    def datasheet_task(self, key: str, record: Record) -> Optional[DownloadTask]:
        return DownloadTask(
            self.DATASHEET_URL.format(key=key),
            self.DATASHEET_PATH.format(name=safe_name(key)),
        )

    def collect_techdocs(self, key: str, record: Record) -> Dict[str, str]:
        return parse_techdoc_links(self.fetcher.get_doc(self.PRODUCT_URL.format(key=key)))

    def techdoc_tasks(self, techdocs: Dict[str, str]) -> List[DownloadTask]:
        # Only the /lit/pdf documents are plain PDF downloads
        tasks = []
        for href in sorted(techdocs):
            if not href.startswith("/lit/pdf"):
                continue
            name = safe_name(href.replace("/lit/pdf/", ""))
            tasks.append(DownloadTask(
                self.TECHDOC_URL.format(href=href),
                self.TECHDOC_PATH.format(name=name),
            ))
        return tasks
