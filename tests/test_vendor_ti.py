"""TI collector parsing and the database/techdoc phases against canned pages."""

from __future__ import annotations

import json
import threading
import time

import pytest
from bs4 import BeautifulSoup

from catalog_harvester.cache import write_json_atomic
from catalog_harvester.config import BuildConfig
from catalog_harvester.errors import AccessDeniedError, ConfigurationError, HttpStatusError
from catalog_harvester.vendors.ti import (
    TIVendor,
    parse_category_map,
    parse_menu_links,
    parse_techdoc_links,
)

HOME = """
<ul class="ti_p-megaMenu-nav-list">
  <li><a href="//www.ti.com/amplifiers/overview.html">Amplifiers</a></li>
  <li><a href="//www.ti.com/applications/industrial/overview.html">Industrial</a></li>
  <li><a href="//www.ti.com/tools-software.html">Tools</a></li>
  <li><a href="//www.ti.com/amplifiers/overview.html">Amplifiers again</a></li>
</ul>
"""

AMPLIFIERS = """
<div class="ti_left-nav-container">
  <a href="//www.ti.com/amplifiers/op-amps/overview.html">Op amps</a>
  <a href="//www.ti.com/amplifiers/comparators/overview.html">Comparators</a>
  <a href="//www.ti.com/amplifiers/op-amps/overview.html">Op amps (dup)</a>
</div>
"""

OP_AMPS = '<h1>Op amps – Products</h1><div class="rst" familyid="101"></div>'
COMPARATORS = '<h1>Comparators - Products</h1><div class="rst" familyid="202"></div>'

CRITERIA = {"ParametricControl": {"controls": [
    {"id": 1, "cid": "p1", "name": "Vs", "desc": "Supply voltage"},
]}}
RESULTS = {"ParametricResults": [
    {"o1": "LM358", "p1": "3-32"},
    {"o1": "LM358", "p1": "3-32", "p2": "0.7"},
    {"o1": "TL072", "p1": "4.5-36"},
]}

FAMILY = "https://www.ti.com/selectiontool/paramdata/family/{}/{}?lang=en&output=json"


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def _site(routes):
    routes.table.update({
        "https://www.ti.com": (200, HOME),
        "http://www.ti.com/amplifiers/overview.html": (200, AMPLIFIERS),
        "http://www.ti.com/amplifiers/op-amps/products.html": (200, OP_AMPS),
        "http://www.ti.com/amplifiers/comparators/products.html": (200, COMPARATORS),
        FAMILY.format(101, "criteria"): (200, json.dumps(CRITERIA)),
        FAMILY.format(101, "results"): (200, json.dumps(RESULTS)),
        FAMILY.format(202, "results"): (200, '{"unexpected": true}'),
    })


def test_menu_links_keep_overview_pages_only():
    assert parse_menu_links(_soup(HOME)) == ["http://www.ti.com/amplifiers/overview.html"]


def test_category_map_strips_products_suffix():
    assert parse_category_map(_soup(OP_AMPS)) == {"Op amps": "101"}
    assert parse_category_map(_soup(COMPARATORS)) == {"Comparators": "202"}


def test_techdoc_links_skip_datasheets():
    html = """
    <ti-techdocs>
      <a href="/lit/pdf/sloa011" data-navtitle="Understanding op amps">Understanding op amps</a>
      <a href="/lit/gpn/lm358" data-navtitle="LM358 Datasheet">LM358</a>
      <a href="/lit/pdf/slva123" data-navtitle="LM358 Data sheet rev B">rev B</a>
    </ti-techdocs>
    """
    assert parse_techdoc_links(_soup(html)) == {"/lit/pdf/sloa011": "Understanding op amps"}


@pytest.mark.parametrize("workers", [1, 3])
def test_build_database_merges_and_skips_malformed_category(
    app_config, fetcher, downloader, routes, tmp_path, workers
):
    app_config.build = BuildConfig(workers=workers)
    _site(routes)
    vendor = TIVendor(app_config, fetcher, downloader)

    store = vendor.build_database()

    assert sorted(store.keys()) == ["LM358", "TL072"]
    data = json.loads((tmp_path / "json/ti/data.json").read_text())
    assert data["LM358"] == {"o1": "LM358", "p1": "3-32", "p2": "0.7"}
    criteria = json.loads((tmp_path / "json/ti/categories.json").read_text())
    assert criteria == {"p1": ["Vs", "Supply voltage"]}


def test_build_database_concurrent_overlap_keeps_richest_record(
    app_config, fetcher, downloader, routes, tmp_path
):
    app_config.build = BuildConfig(workers=3)
    _site(routes)
    routes.table[FAMILY.format(101, "results")] = (200, json.dumps({"ParametricResults": [
        {"o1": "LM358", "p1": "3-32"},
        {"o1": "TL072", "p1": "4.5-36"},
    ]}))
    routes.table[FAMILY.format(202, "results")] = (200, json.dumps({"ParametricResults": [
        {"o1": "LM358", "p1": "3-32", "p2": "0.7", "p3": "1.1", "p4": "SOIC"},
        {"o1": "LM393", "p1": "2-36"},
    ]}))
    vendor = TIVendor(app_config, fetcher, downloader)

    store = vendor.build_database()

    assert sorted(store.keys()) == ["LM358", "LM393", "TL072"]
    data = json.loads((tmp_path / "json/ti/data.json").read_text())
    assert data["LM358"] == {"o1": "LM358", "p1": "3-32", "p2": "0.7", "p3": "1.1", "p4": "SOIC"}


def test_build_database_without_family_ids_is_fatal(app_config, fetcher, downloader, routes, tmp_path):
    _site(routes)
    routes.table["http://www.ti.com/amplifiers/op-amps/products.html"] = (200, "<h1>Op amps - Products</h1>")
    routes.table["http://www.ti.com/amplifiers/comparators/products.html"] = (200, "<h1>Comparators</h1>")
    vendor = TIVendor(app_config, fetcher, downloader)
    with pytest.raises(ConfigurationError, match="no category identifiers"):
        vendor.build_database()
    assert not (tmp_path / "json/ti/data.json").exists()


def test_build_database_without_links_is_fatal(app_config, fetcher, downloader, routes):
    routes.table["https://www.ti.com"] = (200, "<html><body>redesigned</body></html>")
    vendor = TIVendor(app_config, fetcher, downloader)
    with pytest.raises(ConfigurationError, match="did the layout change"):
        vendor.build_database()


def test_build_database_stops_on_forbidden(app_config, fetcher, downloader, routes, tmp_path):
    _site(routes)
    routes.table[FAMILY.format(101, "results")] = (403, "")
    vendor = TIVendor(app_config, fetcher, downloader)
    with pytest.raises(AccessDeniedError):
        vendor.build_database()
    assert not (tmp_path / "json/ti/data.json").exists()


def test_techdocs_build_and_download(app_config, fetcher, downloader, routes, tmp_path):
    write_json_atomic(str(tmp_path / "json/ti/data.json"), {"LM358": {"o1": "LM358"}})
    routes.table["https://www.ti.com/product/LM358"] = (200, """
        <ti-techdocs>
          <a href="/lit/pdf/sloa011" data-navtitle="Op amp basics">Op amp basics</a>
          <a href="https://e2e.ti.com/blog/1" data-navtitle="Blog post">Blog post</a>
        </ti-techdocs>
    """)
    routes.table["https://www.ti.com/lit/pdf/sloa011"] = (200, b"%PDF-sloa011")
    vendor = TIVendor(app_config, fetcher, downloader)

    techdocs = vendor.build_techdocs()
    assert techdocs == {
        "/lit/pdf/sloa011": "Op amp basics",
        "https://e2e.ti.com/blog/1": "Blog post",
    }

    summary = vendor.download_techdocs()
    assert summary.saved == 1
    assert (tmp_path / "pdf/ti/lit/sloa011.pdf").read_bytes() == b"%PDF-sloa011"


def test_download_datasheets_from_snapshot(app_config, fetcher, downloader, routes, tmp_path):
    write_json_atomic(str(tmp_path / "json/ti/data.json"), {
        "LM358": {"o1": "LM358"},
        "NOPE1": {"o1": "NOPE1"},
    })
    routes.table["https://www.ti.com/lit/gpn/LM358"] = (200, b"%PDF-lm358")
    vendor = TIVendor(app_config, fetcher, downloader)

    summary = vendor.download_datasheets()

    assert (summary.saved, summary.not_found) == (1, 1)
    assert (tmp_path / "pdf/ti/gpn/LM358.pdf").read_bytes() == b"%PDF-lm358"
    assert not (tmp_path / "pdf/ti/gpn/NOPE1.pdf").exists()


def test_download_without_snapshot_is_fatal(app_config, fetcher, downloader):
    vendor = TIVendor(app_config, fetcher, downloader)
    with pytest.raises(ConfigurationError):
        vendor.download_datasheets()


def test_max_in_flight_defaults_and_overrides(app_config, fetcher, downloader):
    from catalog_harvester.config import VendorConfig

    assert TIVendor(app_config, fetcher, downloader).max_in_flight == 3
    app_config.vendors["ti"] = VendorConfig(max_in_flight=5)
    assert TIVendor(app_config, fetcher, downloader).max_in_flight == 5


def test_gather_drains_running_calls_after_forbidden(app_config, fetcher, downloader):
    app_config.build = BuildConfig(workers=3)
    vendor = TIVendor(app_config, fetcher, downloader)
    called = []
    lock = threading.Lock()

    def work(item):
        with lock:
            called.append(item)
        if item == 0:
            raise HttpStatusError(f"https://www.ti.com/{item}", 403)
        time.sleep(0.3)
        return item * 10

    yielded = []
    with pytest.raises(AccessDeniedError) as exc:
        for item, result in vendor.gather(list(range(10)), work, "Working..."):
            yielded.append((item, result))

    assert exc.value.url == "https://www.ti.com/0"
    assert sorted(called) == [0, 1, 2]
    assert (1, 10) in yielded and (2, 20) in yielded
    assert isinstance(dict(yielded)[0], HttpStatusError)
