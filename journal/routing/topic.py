WILDCARD = "*"


def topic_matches(pattern: str, topic: str) -> bool:
    """
    Compares a topic pattern against a dot-separated topic.

    Patterns without a wildcard must equal the topic. Otherwise segments are
    compared positionally up to the shorter of both, so "a.*" also matches
    "a.b.c". A "*" segment matches any non-empty topic segment.
    """
    if WILDCARD not in pattern:
        return pattern == topic

    # zip() stops at the shorter list, trailing segments are ignored
    for expected, actual in zip(pattern.split("."), topic.split(".")):
        if expected == WILDCARD:
            if not actual:
                return False
        elif expected != actual:
            return False
    return True
