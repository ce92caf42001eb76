"""Reader path analytics.

Aggregates reader progress rows into path popularity, per-path and global
completion rates, and average depth reached (the drop-off measure).

summarize_progress is a single pass over the rows with three local
accumulators; it never mutates its input. Rows with an empty path count
toward totals and average depth but have no path to rank.
"""

from collections.abc import Iterable, Sequence

from forkline.logging import get_logger
from forkline.services.paths import encode_path, format_path, is_valid_path
from forkline.services.tree import TreeNode, enumerate_leaf_paths
from forkline.services.types import PathAnalyticsSummary, PathCoverage, PathStat
from forkline.store.records import ProgressRecord

logger = get_logger(__name__)

DEFAULT_TOP_PATHS = 10


def _percentage(part: int, whole: int) -> float:
    if whole == 0:
        return 0.0
    return round(part / whole * 100, 2)


def summarize_progress(
    rows: Iterable[ProgressRecord], *, top_n: int = DEFAULT_TOP_PATHS
) -> PathAnalyticsSummary:
    """Aggregate progress rows into path statistics.

    Args:
        rows: Progress rows of one story, or of the whole platform.
        top_n: How many of the most popular paths to return.

    Returns:
        PathAnalyticsSummary. top_paths is sorted by count descending with
        ties in first-encountered order.
    """
    path_counts: dict[str, int] = {}
    completion: dict[str, list[int]] = {}  # path key -> [total, completed]
    depth_sum = 0
    total = 0
    completed_total = 0
    skipped = 0

    for row in rows:
        total += 1
        depth_sum += row.current_depth
        if row.completed:
            completed_total += 1

        if not row.path:
            continue
        if not is_valid_path(row.path):
            skipped += 1
            continue

        key = encode_path(row.path)
        path_counts[key] = path_counts.get(key, 0) + 1
        stats = completion.setdefault(key, [0, 0])
        stats[0] += 1
        if row.completed:
            stats[1] += 1

    if skipped:
        logger.warning("progress_paths_invalid", skipped=skipped)

    completion_by_path = {
        key: _percentage(done, seen) for key, (seen, done) in completion.items()
    }

    # sorted() is stable: equal counts keep first-encountered order
    ranked = sorted(path_counts.items(), key=lambda item: item[1], reverse=True)
    top_paths = [
        PathStat(path=key, count=count, completion_rate=completion_by_path[key])
        for key, count in ranked[:top_n]
    ]

    return PathAnalyticsSummary(
        top_paths=top_paths,
        completion_by_path=completion_by_path,
        completion_rate=_percentage(completed_total, total),
        avg_depth=round(depth_sum / total, 2) if total else 0.0,
        total_progress=total,
        completed_progress=completed_total,
    )


def path_coverage(
    tree: Sequence[TreeNode], rows: Iterable[ProgressRecord]
) -> list[PathCoverage]:
    """List every root-to-leaf path of a story with how many readers took it.

    A reader counts toward a path when their recorded path is exactly that
    path. Percentages are of all progress rows. Most popular first, ties in
    tree order.
    """
    counts: dict[str, int] = {}
    total = 0
    for row in rows:
        total += 1
        if row.path and is_valid_path(row.path):
            key = encode_path(row.path)
            counts[key] = counts.get(key, 0) + 1

    coverage = [
        PathCoverage(
            path=encode_path(labels),
            display=format_path(labels),
            depth=len(labels),
            user_count=counts.get(encode_path(labels), 0),
            percentage=_percentage(counts.get(encode_path(labels), 0), total),
        )
        for labels in enumerate_leaf_paths(tree)
    ]
    return sorted(coverage, key=lambda item: item.user_count, reverse=True)
