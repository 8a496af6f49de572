from .exceptions import InvalidReference, InvariantViolation


def assert_positions(items, start=0):
    positions = [item.position for item in items]
    if not positions:
        return

    expected = list(range(start, start + len(positions)))
    if sorted(positions) != expected:
        raise InvariantViolation(
            f"Positions are not consecutive starting from {start}: {positions}"
        )


def assert_complete_permutation(current_ids, ordered_ids):
    """
    A whole-batch reorder must name every member of the sequence exactly once.
    """
    if len(set(ordered_ids)) != len(ordered_ids):
        raise InvalidReference("Reorder payload contains duplicate ids")

    unknown = set(ordered_ids) - set(current_ids)
    if unknown:
        raise InvalidReference(f"Unknown ids in reorder payload: {sorted(map(str, unknown))}")

    missing = set(current_ids) - set(ordered_ids)
    if missing:
        raise InvalidReference(f"Reorder payload is missing ids: {sorted(map(str, missing))}")
