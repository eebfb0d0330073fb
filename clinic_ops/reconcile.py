"""Link reconciliation: discover unlinked rows, backfill links, verify.

A pass reads every target row whose link is null, matches its name against
the canonical ``{normalized name -> id}`` map and links it, falling back to a
designated id when nothing matches exactly. All writes of a pass happen inside
one transaction; re-running after a successful pass finds nothing to do.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import (
    AsyncContextManager,
    Callable,
    Mapping,
    Optional,
    Protocol,
    Sequence,
)

logger = logging.getLogger(__name__)


class ReconciliationError(Exception):
    """Raised when a pass cannot start, e.g. the fallback id is unknown."""


class ReconciliationIncomplete(Exception):
    """Raised when verification still finds unlinked rows after a live pass."""

    def __init__(self, remaining: int) -> None:
        self.remaining = remaining
        super().__init__(f"{remaining} record(s) still unlinked after reconciliation")


class LinkTarget(Protocol):
    object_id: str

    @property
    def name(self) -> str: ...


class LinkStore(Protocol):
    """Storage seam for a target relation with a nullable link column."""

    def transaction(self) -> AsyncContextManager[object]: ...

    async def find_unlinked(self) -> Sequence[LinkTarget]: ...

    async def canonical_ids(self) -> Mapping[str, str]: ...

    async def link(self, record_id: str, canonical_id: str) -> None: ...


def normalize_name(name: Optional[str]) -> str:
    return (name or "").strip().casefold()


@dataclass(frozen=True)
class Link:
    record_id: str
    name: str
    canonical_id: str
    fallback: bool = False


@dataclass
class ReconcileResult:
    dry_run: bool
    links: list[Link] = field(default_factory=list)

    @property
    def changed(self) -> int:
        return len(self.links)

    @property
    def matched(self) -> list[Link]:
        return [link for link in self.links if not link.fallback]

    @property
    def fallback_linked(self) -> list[Link]:
        return [link for link in self.links if link.fallback]


@dataclass(frozen=True)
class Verification:
    remaining: int
    dry_run: bool

    @property
    def ok(self) -> bool:
        return self.remaining == 0


def plan_links(
    targets: Sequence[LinkTarget],
    canonical: Mapping[str, str],
    fallback_id: str,
    normalize: Callable[[Optional[str]], str] = normalize_name,
) -> list[Link]:
    """Decide the link for every target. Pure; order of targets is irrelevant.

    ``canonical`` keys must already be normalized with ``normalize``.
    """
    links: list[Link] = []
    for target in targets:
        canonical_id = canonical.get(normalize(target.name))
        if canonical_id is None:
            links.append(Link(target.object_id, target.name, fallback_id, True))
        else:
            links.append(Link(target.object_id, target.name, canonical_id))
    return links


async def reconcile_links(
    store: LinkStore,
    fallback_id: Optional[str],
    *,
    canonical: Optional[Mapping[str, str]] = None,
    normalize: Callable[[Optional[str]], str] = normalize_name,
    dry_run: bool = False,
) -> ReconcileResult:
    """Run one reconciliation pass against ``store``.

    The transaction is opened before discovery and committed only after every
    link is written; any exception rolls the whole pass back and propagates.
    In dry-run mode the same plan is computed and no link is written.
    """
    if not fallback_id:
        raise ReconciliationError("No fallback id available for unmatched names")

    result = ReconcileResult(dry_run=dry_run)
    async with store.transaction():
        if canonical is None:
            canonical = await store.canonical_ids()
        targets = await store.find_unlinked()
        logger.info("Found %d unlinked record(s)", len(targets))

        result.links = plan_links(targets, canonical, fallback_id, normalize)
        if dry_run:
            return result

        for link in result.links:
            await store.link(link.record_id, link.canonical_id)
            logger.debug("Linked %s -> %s", link.record_id, link.canonical_id)

    logger.info(
        "Linked %d record(s), %d via fallback",
        result.changed,
        len(result.fallback_linked),
    )
    return result


async def verify_links(store: LinkStore, dry_run: bool = False) -> Verification:
    """Re-run discovery; a live pass must leave nothing unlinked."""
    remaining = len(await store.find_unlinked())
    verification = Verification(remaining=remaining, dry_run=dry_run)
    if remaining and not dry_run:
        raise ReconciliationIncomplete(remaining)
    return verification
