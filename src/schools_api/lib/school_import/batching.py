"""Split a parsed row set into coordinator batches."""

from collections.abc import Sequence

from schools_api.lib.school_import.districts import DedupPolicy, extract_districts
from schools_api.lib.school_import.types import SchoolBatch, SchoolRow


def plan_batches(
    rows: Sequence[SchoolRow],
    batch_size: int,
    *,
    policy: DedupPolicy = "first",
) -> list[SchoolBatch]:
    """Split rows into consecutive batches of at most ``batch_size`` rows.

    Each batch carries only the districts its own rows reference, so the
    coordinator can upsert them before inserting that batch's schools.

    Args:
        rows: Parsed school rows.
        batch_size: Maximum rows per batch.
        policy: District dedup policy applied within each batch.

    Returns:
        Planned batches in row order; empty when ``rows`` is empty.

    Raises:
        ValueError: If ``batch_size`` is not positive.
    """
    if batch_size <= 0:
        msg = f"batch_size must be positive, got {batch_size}"
        raise ValueError(msg)

    total_batches = (len(rows) + batch_size - 1) // batch_size
    batches: list[SchoolBatch] = []
    for batch_index in range(total_batches):
        schools = list(rows[batch_index * batch_size : (batch_index + 1) * batch_size])
        batches.append(
            SchoolBatch(
                batch_index=batch_index,
                total_batches=total_batches,
                is_last_batch=batch_index == total_batches - 1,
                schools=schools,
                districts=extract_districts(schools, policy=policy),
            )
        )
    return batches
