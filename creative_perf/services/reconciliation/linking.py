"""Manual and bulk linking of creative files to performance rows.

Links are stored on every row of an ad as ``linked_file_name`` /
``linked_file_hash`` so they survive re-imports and take precedence over
filename matching.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from creative_perf.exceptions import CreativeReadError
from creative_perf.schemas import AggregatedAdPerformance, PerformanceRecord
from creative_perf.storage import Repository
from creative_perf.utils.creative_utils import CreativeProcessor, UploadLike

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileLink:
    name: str
    hash: str


@dataclass
class LinkOutcome:
    ad_name: str
    file_name: str
    file_hash: str
    records_updated: int


@dataclass
class BulkLinkOutcome:
    files_supplied: int
    links: dict[str, FileLink] = field(default_factory=dict)
    failed_files: list[str] = field(default_factory=list)

    @property
    def linked_count(self) -> int:
        return len(self.links)


def apply_links(
    records: Sequence[PerformanceRecord], links: Mapping[str, FileLink]
) -> tuple[list[PerformanceRecord], int]:
    """Return *records* with links set for every ad name in *links*.

    Existing manual links on those ads are overwritten.
    """
    updated: list[PerformanceRecord] = []
    count = 0
    for record in records:
        link = links.get(record.ad_name)
        if link is None:
            updated.append(record)
            continue
        updated.append(
            record.model_copy(
                update={"linked_file_name": link.name, "linked_file_hash": link.hash}
            )
        )
        count += 1
    return updated, count


def plan_bulk_links(
    unmatched_ads: Sequence[AggregatedAdPerformance],
    files: Mapping[str, FileLink],
) -> dict[str, FileLink]:
    """Pair each unmatched ad with the first file named inside its presentation.

    *files* maps lower-cased file names to links and is scanned in insertion
    order, so with several candidate files the earliest one wins.
    """
    pairings: dict[str, FileLink] = {}
    for ad in unmatched_ads:
        presentation = (ad.image_video_presentation or "").lower()
        if not presentation:
            continue
        for name_lower, link in files.items():
            if name_lower and name_lower in presentation:
                pairings[ad.ad_name] = link
                logger.debug('Bulk link match: ad "%s" <-> file "%s"', ad.ad_name, link.name)
                break
    return pairings


def _store_links(repo: Repository, client_id: str, links: Mapping[str, FileLink]) -> int:
    all_data = repo.get_performance_data()
    records, count = apply_links(all_data.get(client_id, []), links)
    all_data[client_id] = records
    repo.save_performance_data(all_data)
    return count


async def link_creative(
    repo: Repository,
    client_id: str,
    ad_name: str,
    upload: UploadLike,
    processor: CreativeProcessor | None = None,
) -> LinkOutcome:
    """Hash *upload* and link it to every row of *ad_name* for the client.

    Raises ``ValueError`` when the client has no rows for *ad_name* and
    :class:`CreativeReadError` when the file cannot be read.
    """
    processor = processor or CreativeProcessor()
    logger.info('Manually linking file "%s" to ad "%s"', upload.filename, ad_name)
    fingerprint = await processor.fingerprint_upload(upload)
    logger.info("File hash for manual link: %s", fingerprint.hash)

    records = repo.get_performance_data().get(client_id, [])
    if not any(r.ad_name == ad_name for r in records):
        raise ValueError(f'No performance records for ad "{ad_name}"')

    link = FileLink(name=fingerprint.name, hash=fingerprint.hash)
    count = _store_links(repo, client_id, {ad_name: link})
    logger.info('Linked file "%s" to ad "%s" (%d rows)', link.name, ad_name, count)
    return LinkOutcome(
        ad_name=ad_name,
        file_name=link.name,
        file_hash=link.hash,
        records_updated=count,
    )


async def bulk_link(
    repo: Repository,
    client_id: str,
    uploads: Sequence[UploadLike],
    unmatched_ads: Sequence[AggregatedAdPerformance],
    processor: CreativeProcessor | None = None,
) -> BulkLinkOutcome:
    """Link many files at once to the ads whose presentation names them.

    Every file is hashed before any row is touched. Files that cannot be read
    are reported in ``failed_files`` and skipped. The performance table is
    written once, and only if at least one ad was linked.
    """
    processor = processor or CreativeProcessor()
    outcome = BulkLinkOutcome(files_supplied=len(uploads))
    logger.info("Starting bulk link of %d files for client %s", len(uploads), client_id)

    files: dict[str, FileLink] = {}
    for result in await processor.fingerprint_many(list(uploads)):
        if isinstance(result, CreativeReadError):
            logger.warning("Skipping unreadable file in bulk link: %s", result.message)
            outcome.failed_files.append(result.details.get("filename", ""))
            continue
        files[result.name.lower()] = FileLink(name=result.name, hash=result.hash)

    candidates = [ad for ad in unmatched_ads if not ad.is_matched]
    logger.info("Found %d unlinked ads to check against", len(candidates))
    outcome.links = plan_bulk_links(candidates, files)

    if outcome.links:
        _store_links(repo, client_id, outcome.links)
    logger.info("Bulk link finished: %d of %d files linked", outcome.linked_count, len(uploads))
    return outcome
