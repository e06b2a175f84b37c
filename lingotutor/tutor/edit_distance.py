"""
LingoTutor - Edit Distance
Classic Levenshtein distance (insert / delete / substitute, cost 1 each).
"""


def levenshtein(a: str, b: str) -> int:
    """O(len(a) * len(b)) dynamic programming, keeping only two rows."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        curr = [i] + [0] * len(b)
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            curr[j] = min(
                prev[j] + 1,         # deletion
                curr[j - 1] + 1,     # insertion
                prev[j - 1] + cost,  # substitution
            )
        prev = curr
    return prev[-1]


def typo_budget(expected: str) -> int:
    """Allowed edits for a typo: 1 for short answers (<= 6 chars), else 2."""
    return 1 if max(1, len(expected)) <= 6 else 2
