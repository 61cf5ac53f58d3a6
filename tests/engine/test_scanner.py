"""Page classification and scanning tests."""

from __future__ import annotations

import pytest

from vmlink.engine.augmenter import LinkAugmenter
from vmlink.engine.scanner import PageScanner, classify_page, first_anchor
from vmlink.engine.types import PageKind

from .conftest import TRACKER, download_href, make_document, torrent_row


@pytest.mark.parametrize(
    "url, kind",
    [
        (f"{TRACKER}/user.php?action=edit&userid=77", PageKind.SETTINGS),
        (f"{TRACKER}/top10.php", PageKind.TOP10),
        (f"{TRACKER}/top10.php?type=torrents&limit=100", PageKind.TOP10),
        (f"{TRACKER}/torrents.php", PageKind.TORRENTS),
        (f"{TRACKER}/torrents.php?type=seeding&userid=77", PageKind.USER_TORRENTS),
        (f"{TRACKER}/torrents.php?id=55", PageKind.OTHER),
        (f"{TRACKER}/index.php", PageKind.OTHER),
        ("", PageKind.OTHER),
    ],
)
def test_classify_page(url, kind):
    assert classify_page(url) is kind


def _scanner(document, config, engine_settings):
    augmenter = LinkAugmenter(document, config, engine_settings)
    return PageScanner(document, augmenter)


def test_initial_scan_augments_each_matching_anchor_once(config, engine_settings):
    rows = torrent_row(1) + torrent_row(2) + torrent_row(3, passkey="other")
    document = make_document(rows)
    scanner = _scanner(document, config, engine_settings)

    assert scanner.start() == 2

    hrefs = [aux.find("a")["href"] for aux in document.soup.find_all("varroa")]
    assert hrefs == [
        "http://localhost:8080/get/1?token=s3cr3t",
        "http://localhost:8080/get/2?token=s3cr3t",
    ]


def test_start_twice_is_a_no_op(config, engine_settings):
    document = make_document(torrent_row(1))
    scanner = _scanner(document, config, engine_settings)

    scanner.start()
    assert scanner.start() == 0
    assert len(document.soup.find_all("varroa")) == 1


def test_inserted_row_is_augmented_exactly_once(config, engine_settings):
    document = make_document(torrent_row(1) + torrent_row(2))
    scanner = _scanner(document, config, engine_settings)
    scanner.start()
    tbody = document.select_one("#torrent_table > tbody")

    document.append_html(tbody, torrent_row(3))

    assert len(document.soup.find_all("varroa")) == 3
    assert scanner.augmenter.augmented_count == 3
    new_row = tbody.find_all("tr")[-1]
    assert len(new_row.find_all("varroa")) == 1


def test_batch_only_visits_inserted_subtrees(config, engine_settings, monkeypatch):
    document = make_document(torrent_row(1))
    scanner = _scanner(document, config, engine_settings)
    scanner.start()
    tbody = document.select_one("#torrent_table > tbody")

    seen = []
    original = scanner.augmenter.augment

    def spy(anchor, resource_id):
        seen.append(resource_id)
        return original(anchor, resource_id)

    monkeypatch.setattr(scanner.augmenter, "augment", spy)
    with document.mutate():
        document.append_html(tbody, torrent_row(2))
        document.append_html(tbody, torrent_row(3))

    assert seen == ["2", "3"]


def test_reinserting_an_augmented_row_does_not_duplicate(config, engine_settings):
    document = make_document(torrent_row(1))
    scanner = _scanner(document, config, engine_settings)
    scanner.start()
    tbody = document.select_one("#torrent_table > tbody")

    row = tbody.find("tr").extract()
    document.append_child(tbody, row)

    assert len(document.soup.find_all("varroa")) == 1


def test_user_torrent_listing_is_observed(config, engine_settings):
    url = f"{TRACKER}/torrents.php?type=snatched&userid=77"
    document = make_document(torrent_row(1), url=url)
    scanner = _scanner(document, config, engine_settings)
    scanner.start()

    assert scanner.kind is PageKind.USER_TORRENTS
    assert scanner.subscription is not None
    document.append_html(document.select_one(".torrent_table > tbody"), torrent_row(2))
    assert scanner.augmenter.augmented_count == 2


def test_unhandled_page_only_scans_once(config, engine_settings):
    url = f"{TRACKER}/artist.php?id=4"
    body = f'<p><a href="{download_href(10)}">DL</a></p>'
    document = make_document(body=body, url=url)
    scanner = _scanner(document, config, engine_settings)

    assert scanner.start() == 1
    assert scanner.subscription is None

    document.append_html(document.select_one("#torrent_table > tbody"), torrent_row(11))
    assert scanner.augmenter.augmented_count == 1


def test_stop_disconnects_feed(config, engine_settings):
    document = make_document(torrent_row(1))
    scanner = _scanner(document, config, engine_settings)
    scanner.start()
    scanner.stop()

    document.append_html(document.select_one("#torrent_table > tbody"), torrent_row(2))

    assert scanner.augmenter.augmented_count == 1


def test_missing_container_falls_back_to_initial_scan(config, engine_settings):
    document = make_document(url=f"{TRACKER}/torrents.php")
    document.select_one("#torrent_table").extract()
    scanner = _scanner(document, config, engine_settings)

    assert scanner.start() == 0
    assert scanner.subscription is None


def test_first_anchor():
    document = make_document(torrent_row(1))
    row = document.soup.find("tr")
    anchor = first_anchor(row)

    assert anchor is row.find("a")
    assert first_anchor(anchor) is anchor
    assert first_anchor(document.new_string("text")) is None
