"""Tag cloud weighting."""

from collections.abc import Mapping

from tagweave.context import TaggingContext


def cloud_data(counts: Mapping[str, int], levels: int = 10) -> dict[str, int]:
    """Assign each label a display level between 0 and ``levels``.

    Thresholds grow as a power of the count range, so buckets are narrow at
    the low end and wide at the high end:
    ``T[i] = (max - min + 1) ** (i / levels) + min - 1``. A label gets the
    first level whose threshold its count does not exceed.

    Args:
        counts: Label -> raw occurrence count
        levels: Highest level

    Returns:
        Label -> level, in the order of ``counts``

    Raises:
        ValueError: If levels is less than 1
    """
    if levels < 1:
        raise ValueError(f"levels must be at least 1, got {levels}")
    if not counts:
        return {}

    low = min(counts.values())
    high = max(counts.values())
    span = high - low + 1
    thresholds = [span ** (i / levels) + low - 1 for i in range(levels + 1)]

    weights: dict[str, int] = {}
    for label, count in counts.items():
        weights[label] = levels
        for level, threshold in enumerate(thresholds):
            if count <= threshold:
                weights[label] = level
                break
    return weights


def visible_cloud(
    counts: Mapping[str, int],
    ctx: TaggingContext,
    *,
    hidden_prefix: str = "",
    can_edit: bool = False,
    levels: int = 10,
) -> dict[str, int]:
    """Cloud data with hidden tags removed for callers who cannot edit.

    Tags starting with ``hidden_prefix`` stay visible only to a logged-in
    caller with edit rights. Levels are computed over all tags first so
    hiding some does not change the size of the rest.
    """
    weights = cloud_data(counts, levels)
    if not hidden_prefix or (ctx.user is not None and can_edit):
        return weights
    return {tag: level for tag, level in weights.items() if not tag.startswith(hidden_prefix)}
