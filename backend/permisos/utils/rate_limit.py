from django.core.cache import cache


def _key(scope, identifier):
    return f"rate_limit_{scope}_{identifier}"


def is_rate_limited(scope, identifier, limit):
    return (cache.get(_key(scope, identifier)) or 0) >= limit


def register_attempt(scope, identifier, window_seconds):
    key = _key(scope, identifier)
    if cache.add(key, 1, timeout=window_seconds):
        return 1
    try:
        return cache.incr(key)
    except ValueError:
        cache.set(key, 1, timeout=window_seconds)
        return 1


def reset_attempts(scope, identifier):
    cache.delete(_key(scope, identifier))
