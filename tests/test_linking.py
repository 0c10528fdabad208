"""Tests for manual and bulk creative linking."""

import hashlib

import pytest

from creative_perf.exceptions import CreativeReadError
from creative_perf.services.reconciliation import aggregate_ads, bulk_link, link_creative
from creative_perf.services.reconciliation.linking import FileLink, apply_links, plan_bulk_links
from tests.conftest import make_entry, make_record, make_upload


class BrokenUpload:
    filename = "broken.png"
    content_type = "image/png"

    async def read(self, size: int = -1) -> bytes:
        raise OSError("disk went away")


def _sha(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _seed(repo, records):
    repo.save_performance_data({"c1": records})


# ---------------------------------------------------------------------------
# apply_links / plan_bulk_links
# ---------------------------------------------------------------------------


def test_apply_links_updates_every_row_of_the_ad():
    records = [
        make_record(ad_name="Ad2", day="2025-01-01"),
        make_record(ad_name="Ad2", day="2025-01-02"),
        make_record(ad_name="Other"),
    ]

    updated, count = apply_links(records, {"Ad2": FileLink(name="x.png", hash="H")})

    assert count == 2
    assert [r.linked_file_hash for r in updated] == ["H", "H", None]
    assert records[0].linked_file_hash is None


def test_plan_bulk_links_first_file_wins():
    ads = aggregate_ads(
        [make_record(ad_name="Ad1", image_video_presentation="hero.png_1 (ID 1)")], [], currency="EUR"
    )
    files = {
        "hero.png": FileLink(name="hero.png", hash="a"),
        "hero": FileLink(name="hero", hash="b"),
    }

    assert plan_bulk_links(ads, files)["Ad1"].hash == "a"

    reordered = dict(reversed(list(files.items())))
    assert plan_bulk_links(ads, reordered)["Ad1"].hash == "b"


# ---------------------------------------------------------------------------
# link_creative
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_manual_link_then_match_by_hash(repo):
    _seed(
        repo,
        [
            make_record(ad_name="Ad2", day="2025-01-01", image_video_presentation="decoy.png_1"),
            make_record(ad_name="Ad2", day="2025-01-02", image_video_presentation="decoy.png_1"),
        ],
    )
    data = b"chosen-creative-bytes"
    history = [
        make_entry(filename="decoy.png", hash="decoy"),
        make_entry(filename="chosen.png", hash=_sha(data)),
    ]

    outcome = await link_creative(repo, "c1", "Ad2", make_upload("chosen.png", data))

    assert outcome.records_updated == 2
    assert outcome.file_hash == _sha(data)
    stored = repo.get_performance_data()["c1"]
    assert {r.linked_file_hash for r in stored} == {_sha(data)}

    (row,) = aggregate_ads(stored, history, currency="EUR")
    assert row.is_matched is True
    assert row.creative_description == history[1].description


@pytest.mark.asyncio
async def test_manual_link_unknown_ad_raises(repo):
    _seed(repo, [make_record(ad_name="Ad1")])

    with pytest.raises(ValueError):
        await link_creative(repo, "c1", "Missing", make_upload("x.png", b"x"))


# ---------------------------------------------------------------------------
# bulk_link
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_bulk_link_pairs_files_with_presentations(repo):
    _seed(
        repo,
        [
            make_record(ad_name="Ad1", image_video_presentation="alpha.png_1 (ID 1)"),
            make_record(ad_name="Ad2", image_video_presentation="beta.mp4_2 (ID 2)"),
            make_record(ad_name="Ad3", image_video_presentation="gamma.jpg_3 (ID 3)"),
        ],
    )
    unmatched = aggregate_ads(repo.get_performance_data()["c1"], [], currency="EUR")
    uploads = [
        make_upload("Alpha.png", b"alpha"),
        make_upload("beta.mp4", b"beta", "video/mp4"),
        make_upload("unused.png", b"unused"),
    ]

    outcome = await bulk_link(repo, "c1", uploads, unmatched)

    assert outcome.files_supplied == 3
    assert outcome.linked_count == 2
    assert outcome.failed_files == []
    stored = {r.ad_name: r for r in repo.get_performance_data()["c1"]}
    assert stored["Ad1"].linked_file_name == "Alpha.png"
    assert stored["Ad1"].linked_file_hash == _sha(b"alpha")
    assert stored["Ad2"].linked_file_hash == _sha(b"beta")
    assert stored["Ad3"].linked_file_hash is None


@pytest.mark.asyncio
async def test_bulk_link_is_independent_of_ad_order(repo):
    records = [
        make_record(ad_name="Ad1", image_video_presentation="alpha.png_1"),
        make_record(ad_name="Ad2", image_video_presentation="beta.png_2"),
    ]
    _seed(repo, records)
    unmatched = aggregate_ads(records, [], currency="EUR")

    forward = await bulk_link(
        repo, "c1", [make_upload("alpha.png", b"a"), make_upload("beta.png", b"b")], unmatched
    )
    _seed(repo, records)
    backward = await bulk_link(
        repo,
        "c1",
        [make_upload("alpha.png", b"a"), make_upload("beta.png", b"b")],
        list(reversed(unmatched)),
    )

    assert forward.links == backward.links


@pytest.mark.asyncio
async def test_bulk_link_skips_unreadable_file(repo):
    _seed(
        repo,
        [
            make_record(ad_name="Ad1", image_video_presentation="alpha.png_1"),
            make_record(ad_name="Ad2", image_video_presentation="broken.png_2"),
        ],
    )
    unmatched = aggregate_ads(repo.get_performance_data()["c1"], [], currency="EUR")

    outcome = await bulk_link(
        repo, "c1", [BrokenUpload(), make_upload("alpha.png", b"alpha")], unmatched
    )

    assert outcome.failed_files == ["broken.png"]
    assert set(outcome.links) == {"Ad1"}


@pytest.mark.asyncio
async def test_bulk_link_without_matches_leaves_store_untouched(repo):
    _seed(repo, [make_record(ad_name="Ad1", image_video_presentation="alpha.png_1")])
    unmatched = aggregate_ads(repo.get_performance_data()["c1"], [], currency="EUR")
    before = repo.store.get("performance_data")

    outcome = await bulk_link(repo, "c1", [make_upload("zzz.png", b"z")], unmatched)

    assert outcome.linked_count == 0
    assert repo.store.get("performance_data") == before


@pytest.mark.asyncio
async def test_bulk_link_ignores_nameless_upload(repo):
    _seed(
        repo,
        [
            make_record(ad_name="A", image_video_presentation="alpha.png_1 (ID 1)"),
            make_record(ad_name="B", image_video_presentation="beta.mp4_2 (ID 2)"),
        ],
    )
    unmatched = aggregate_ads(repo.get_performance_data()["c1"], [], currency="EUR")

    outcome = await bulk_link(repo, "c1", [make_upload("", b"unrelated bytes")], unmatched)

    assert outcome.linked_count == 0
    assert outcome.failed_files == [""]
    assert all(r.linked_file_hash is None for r in repo.get_performance_data()["c1"])


def test_plan_bulk_links_skips_empty_file_name():
    ads = aggregate_ads(
        [make_record(ad_name="Ad1", image_video_presentation="hero.png_1")], [], currency="EUR"
    )

    assert plan_bulk_links(ads, {"": FileLink(name="", hash="h")}) == {}


@pytest.mark.asyncio
async def test_manual_link_refuses_nameless_upload(repo):
    _seed(repo, [make_record(ad_name="Ad1")])

    with pytest.raises(CreativeReadError):
        await link_creative(repo, "c1", "Ad1", make_upload("", b"x"))

    assert repo.get_performance_data()["c1"][0].linked_file_hash is None
