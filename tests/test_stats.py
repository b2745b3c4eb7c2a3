import pytest

from ratelimit_svc.stats import Counter, StatManager, Store


def test_counter_inc_and_add():
    counter = Counter("c")
    counter.inc()
    counter.add(4)
    assert counter.value() == 5


def test_counter_rejects_negative():
    with pytest.raises(ValueError):
        Counter("c").add(-1)


def test_store_counter_is_shared():
    store = Store()
    store.counter("x").inc()
    assert store.counter("x").value() == 1
    assert store.counter("x") is store.counter("x")


def test_nested_scope_names():
    store = Store()
    counter = store.scope("a").scope("b").counter("c")
    assert counter.name == "a.b.c"
    assert store.counter("a.b.c") is counter


def test_new_stats_counter_names_and_key():
    store = Store()
    manager = StatManager(store)
    stats = manager.new_stats("key_value")
    assert stats.key == "key_value"
    stats.total_hits.inc()
    stats.over_limit_with_local_cache.inc()
    assert store.counter("ratelimit.service.rate_limit.key_value.total_hits").value() == 1
    assert (
        store.counter("ratelimit.service.rate_limit.key_value.over_limit_with_local_cache").value()
        == 1
    )


def test_new_stats_sanitizes_name_but_keeps_key():
    store = Store()
    stats = StatManager(store).new_stats("domain.k:v|w")
    assert stats.key == "domain.k:v|w"
    assert stats.shadow_mode.name == "ratelimit.service.rate_limit.domain.k_v_w.shadow_mode"


def test_new_stats_is_idempotent():
    manager = StatManager(Store())
    first = manager.new_stats("key_value")
    second = manager.new_stats("key_value")
    first.near_limit.inc()
    assert second.near_limit.value() == 1
    assert first == second


def test_service_stats_names():
    store = Store()
    service = StatManager(store).new_service_stats()
    service.config_load_success.inc()
    service.should_rate_limit.redis_error.inc()
    assert store.counter("ratelimit.service.config_load_success").value() == 1
    assert store.counter("ratelimit.service.call.should_rate_limit.redis_error").value() == 1
    assert service.global_shadow_mode.name == "ratelimit.service.global_shadow_mode"


def test_extra_tags_are_attached():
    store = Store()
    stats = StatManager(store, {"env": "test"}).new_stats("key")
    assert stats.total_hits.tags == {"env": "test"}
    assert store.counter(stats.total_hits.name) is not stats.total_hits
    assert stats.total_hits in store.counters()


def test_counters_lists_everything_sorted():
    store = Store()
    store.counter("b")
    store.counter("a")
    assert [c.name for c in store.counters()] == ["a", "b"]


def test_manager_exposes_store():
    store = Store()
    assert StatManager(store).store is store