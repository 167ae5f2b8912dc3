"""Unique display names for storage devices that report identical models."""

from typing import Dict, Iterable, List, Set


def unique_display_names(names: Iterable[str]) -> List[str]:
    """
    Make device names unique while keeping their order.
    
    The first occurrence of a name is kept as is; the n-th repeat gets a
    ``" #n"`` suffix, so ``["WD Blue", "WD Blue"]`` becomes
    ``["WD Blue", "WD Blue #2"]``.
    """
    counts: Dict[str, int] = {}
    used: Set[str] = set()
    result = []
    for name in names:
        count = counts.get(name, 0) + 1
        candidate = name if count == 1 else f"{name} #{count}"
        # A raw name may itself look like a generated key ("WD Blue #2")
        while candidate in used:
            count += 1
            candidate = f"{name} #{count}"
        counts[name] = count
        used.add(candidate)
        result.append(candidate)
    return result
