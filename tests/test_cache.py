"""
Test TTLCache expiry
"""
from docsync.core.cache import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_entry_expires_at_absolute_time():
    clock = FakeClock()
    cache = TTLCache(clock=clock)
    cache.put('nuxt/nuxt', 'v4.2.0', expiry=160.0)

    clock.now = 159.9
    assert cache.get('nuxt/nuxt') == 'v4.2.0'
    clock.now = 160.0
    assert cache.get('nuxt/nuxt') is None
    assert len(cache) == 0


def test_put_for_is_relative_to_now():
    clock = FakeClock()
    cache = TTLCache(clock=clock)
    cache.put_for('k', 1, ttl=10)

    clock.now = 109
    assert cache.get('k') == 1
    clock.now = 110
    assert cache.get('k') is None


def test_invalidate_and_missing_keys():
    cache = TTLCache()
    cache.put_for('k', 'v', ttl=60)
    cache.invalidate('k')
    cache.invalidate('never-set')

    assert cache.get('k') is None
