"""Tests for STS Enforcer engine: status resolution, policy mutation, replay."""

from sts_enforcer.core.enforcer import Enforcer
from sts_enforcer.core.errors import BackendUnavailable, ConfigurationError
from sts_enforcer.core.locator import to_locator
from sts_enforcer.core.status import EnforcementStatus as S, PolicyEntry
from sts_enforcer.domains.suffix import TldextractSuffixService
from sts_enforcer.domains.walker import DomainHierarchyWalker
from sts_enforcer.security.service import InMemorySiteSecurityService
from sts_enforcer.store.backend import InMemoryPolicyStore


WALKER = DomainHierarchyWalker(TldextractSuffixService())


class FlakyService(InMemorySiteSecurityService):
    """Security service whose enable can be made to fail."""

    def __init__(self):
        super().__init__()
        self.fail_enable = False

    def enable(self, locator, directive, ephemeral):
        if self.fail_enable:
            raise BackendUnavailable("enable refused")
        super().enable(locator, directive, ephemeral)


class FailingPutStore(InMemoryPolicyStore):
    """Store whose writes fail, as when a durable backend goes away."""

    def put(self, host, entry):
        raise BackendUnavailable("store refused write")


def make_enforcer(entries=None, backend=None):
    store = InMemoryPolicyStore(entries)
    backend = backend or InMemorySiteSecurityService()
    return Enforcer(store, backend, WALKER), store, backend


def assert_is_secure(backend, host, secure, include_subdomains):
    """Exact host and its "sub." child, in both contexts."""
    for eph in (False, True):
        assert backend.is_enforced(to_locator(host), eph) == secure, (host, eph)
        assert backend.is_enforced(to_locator("sub." + host), eph) == (secure and include_subdomains), (host, eph)


def backend_snapshot(backend):
    return (backend.hosts(ephemeral=False), backend.hosts(ephemeral=True),
            {h: backend._caches[False][h].include_subdomains for h in backend.hosts(False)},
            {h: backend._caches[True][h].include_subdomains for h in backend.hosts(True)})


# ============================================================
# Status Resolution
# ============================================================

def test_not_enforced_default():
    e, _, _ = make_enforcer()
    for host in ["notenforced.com", "www.example.co.uk", "localhost"]:
        assert e.status_of(host) is S.NOT_ENFORCED
        assert e.enforcing_ancestor_of(host) is None
    print("  ✓ not_enforced_default")

def test_all_statuses():
    e, _, backend = make_enforcer({
        "userstatustest.com": PolicyEntry(False),
        "subdomainstatustest.com": PolicyEntry(True),
    })
    e.ensure_sts()
    backend.enable(to_locator("statustest.com"), "max-age=100;", ephemeral=False)

    assert e.status_of("statustest.com") is S.SITE_ENFORCED
    assert e.status_of("userstatustest.com") is S.USER_ENFORCED
    assert e.status_of("subdomainstatustest.com") is S.USER_ENFORCED_WITH_SUBDOMAINS
    assert e.status_of("sub.subdomainstatustest.com") is S.USER_ENFORCED_PARENT
    assert e.status_of("notenforced.com") is S.NOT_ENFORCED
    print("  ✓ all_statuses")

def test_parent_precedence():
    e, store, _ = make_enforcer({"parent.test": PolicyEntry(True)})
    assert e.status_of("sub.parent.test") is S.USER_ENFORCED_PARENT
    assert e.enforcing_ancestor_of("sub.parent.test") == "parent.test"
    assert e.enforcing_ancestor_of("foo.bar.sub.parent.test") == "parent.test"

    store.put("sub.parent.test", PolicyEntry(False))
    assert e.status_of("sub.parent.test") is S.USER_ENFORCED
    print("  ✓ parent_precedence (exact host overrides ancestor)")

def test_exact_host_overrides_site():
    e, _, backend = make_enforcer({"both.test": PolicyEntry(False)})
    backend.enable(to_locator("both.test"), "max-age=100;", ephemeral=False)
    assert e.status_of("both.test") is S.USER_ENFORCED
    print("  ✓ exact_host_overrides_site")

def test_parent_without_subdomains_does_not_propagate():
    e, _, _ = make_enforcer()
    e.set_sts_for_host("parent.test", True, False)
    assert e.status_of("sub.parent.test") is S.NOT_ENFORCED
    assert e.enforcing_ancestor_of("sub.parent.test") is None
    print("  ✓ parent_without_subdomains_does_not_propagate")

def test_nearest_ancestor_wins():
    e, _, _ = make_enforcer({
        "b.example.com": PolicyEntry(True),
        "example.com": PolicyEntry(True),
    })
    assert e.enforcing_ancestor_of("a.b.example.com") == "b.example.com"
    print("  ✓ nearest_ancestor_wins")

def test_non_subdomain_ancestor_skipped():
    e, _, _ = make_enforcer({
        "b.example.com": PolicyEntry(False),
        "example.com": PolicyEntry(True),
    })
    assert e.status_of("a.b.example.com") is S.USER_ENFORCED_PARENT
    assert e.enforcing_ancestor_of("a.b.example.com") == "example.com"
    print("  ✓ non_subdomain_ancestor_skipped (walk continues)")

def test_public_suffix_never_adopted():
    e, _, _ = make_enforcer({"co.uk": PolicyEntry(True), "com": PolicyEntry(True)})
    assert e.status_of("example.co.uk") is S.NOT_ENFORCED
    assert e.status_of("foo.example.com") is S.NOT_ENFORCED
    print("  ✓ public_suffix_never_adopted")

def test_status_case_insensitive():
    e, _, _ = make_enforcer()
    e.set_sts_for_host("Example.COM", True, False)
    assert e.status_of("example.com") is S.USER_ENFORCED
    assert e.status_of("EXAMPLE.com.") is S.USER_ENFORCED
    print("  ✓ status_case_insensitive")

def test_idn_host_set_and_resolve():
    e, store, backend = make_enforcer()
    assert e.set_sts_for_host("b\u00fccher.de", True, True) is True
    assert store.hosts() == ["xn--bcher-kva.de"]
    assert e.status_of("B\u00fccher.de") is S.USER_ENFORCED_WITH_SUBDOMAINS
    assert e.status_of("xn--bcher-kva.de") is S.USER_ENFORCED_WITH_SUBDOMAINS
    assert e.status_of("shop.b\u00fccher.de") is S.USER_ENFORCED_PARENT
    assert e.enforcing_ancestor_of("shop.b\u00fccher.de") == "xn--bcher-kva.de"
    assert_is_secure(backend, "xn--bcher-kva.de", True, True)
    print("  ✓ idn_host_set_and_resolve")

def test_private_suffix_entry_not_inherited():
    e, _, _ = make_enforcer({"github.io": PolicyEntry(True)})
    assert e.status_of("user.github.io") is S.NOT_ENFORCED
    assert e.enforcing_ancestor_of("user.github.io") is None
    print("  ✓ private_suffix_entry_not_inherited")

def test_status_is_read_only():
    e, store, backend = make_enforcer({"parent.test": PolicyEntry(True)})
    before = (store.items(), backend_snapshot(backend))
    for host in ["parent.test", "sub.parent.test", "other.test"]:
        e.status_of(host)
        e.enforcing_ancestor_of(host)
    assert (store.items(), backend_snapshot(backend)) == before
    print("  ✓ status_is_read_only")


# ============================================================
# Directives
# ============================================================

def test_enable_sts_for_host():
    e, store, backend = make_enforcer()
    e.enable_sts_for_host("enable.test", False)
    assert_is_secure(backend, "enable.test", True, False)
    e.enable_sts_for_host("subenable.test", True)
    assert_is_secure(backend, "subenable.test", True, True)
    assert len(store) == 0
    print("  ✓ enable_sts_for_host (store untouched)")

def test_disable_sts_for_host():
    e, _, backend = make_enforcer()
    e.enable_sts_for_host("disable.test", False)
    assert_is_secure(backend, "disable.test", True, False)
    e.disable_sts_for_host("disable.test")
    assert_is_secure(backend, "disable.test", False, False)
    print("  ✓ disable_sts_for_host")

def test_update_sts_for_host():
    cases = [
        ((True, True), (True, False)),
        ((True, False), (True, True)),
        ((True, False), (False, True)),
        ((False, False), (True, False)),
        ((False, False), (True, True)),
        ((True, True), (False, False)),
    ]
    e, _, backend = make_enforcer()
    for i, (initial, updated) in enumerate(cases):
        host = f"update{i}.test"
        if initial[0]:
            e.enable_sts_for_host(host, initial[1])
            assert_is_secure(backend, host, True, initial[1])
        e.update_sts_for_host(host, *updated)
        assert_is_secure(backend, host, *updated)
    print("  ✓ update_sts_for_host (clear then set)")


# ============================================================
# setSTSForHost / toggle
# ============================================================

def test_set_sts_for_host():
    cases = [
        (S.USER_ENFORCED_WITH_SUBDOMAINS, True, True),
        (S.USER_ENFORCED, True, False),
        (S.NOT_ENFORCED, False, False),
        (S.NOT_ENFORCED, False, True),
    ]
    e, store, backend = make_enforcer()
    for i, (expected, enforce, sub) in enumerate(cases):
        host = f"set{i}.test"
        assert e.set_sts_for_host(host, enforce, sub) is True
        assert_is_secure(backend, host, enforce, sub)
        assert e.status_of(host) is expected
        assert (host in store) == enforce
    print("  ✓ set_sts_for_host")

def test_set_then_clear():
    e, store, backend = make_enforcer()
    e.set_sts_for_host("clear.test", True, True)
    assert store.get("clear.test") == PolicyEntry(True)
    e.set_sts_for_host("clear.test", False, False)
    assert e.status_of("clear.test") is S.NOT_ENFORCED
    assert_is_secure(backend, "clear.test", False, False)
    assert "clear.test" not in store
    print("  ✓ set_then_clear")

def test_set_changes_subdomain_flag():
    e, store, backend = make_enforcer()
    e.set_sts_for_host("flag.test", True, True)
    e.set_sts_for_host("flag.test", True, False)
    assert e.status_of("flag.test") is S.USER_ENFORCED
    assert_is_secure(backend, "flag.test", True, False)
    assert store.get("flag.test") == PolicyEntry(False)
    print("  ✓ set_changes_subdomain_flag")

def test_set_declined_for_site_enforced():
    e, store, backend = make_enforcer()
    backend.enable(to_locator("site.test"), "max-age=100;", ephemeral=False)
    before = backend_snapshot(backend)
    assert e.status_of("site.test") is S.SITE_ENFORCED
    assert e.set_sts_for_host("site.test", True, True) is False
    assert "site.test" not in store
    assert backend_snapshot(backend) == before
    assert e.status_of("site.test") is S.SITE_ENFORCED
    print("  ✓ set_declined_for_site_enforced")

def test_set_declined_under_parent():
    e, store, backend = make_enforcer()
    e.set_sts_for_host("parent.test", True, True)
    before = backend_snapshot(backend)
    assert e.set_sts_for_host("sub.parent.test", False, False) is False
    assert e.set_sts_for_host("sub.parent.test", True, False) is False
    assert "sub.parent.test" not in store
    assert backend_snapshot(backend) == before
    print("  ✓ set_declined_under_parent")

def test_toggle_round_trip():
    e, store, backend = make_enforcer()
    baseline = backend_snapshot(backend)
    assert e.toggle_sts_enforcing_for_host("toggle.test") is True
    assert e.status_of("toggle.test") is S.USER_ENFORCED
    assert_is_secure(backend, "toggle.test", True, False)
    assert e.toggle_sts_enforcing_for_host("toggle.test") is True
    assert e.status_of("toggle.test") is S.NOT_ENFORCED
    assert backend_snapshot(backend) == baseline
    assert len(store) == 0
    print("  ✓ toggle_round_trip")

def test_toggle_with_subdomains_disables():
    e, store, backend = make_enforcer()
    e.set_sts_for_host("wide.test", True, True)
    assert e.toggle_sts_enforcing_for_host("wide.test") is True
    assert e.status_of("wide.test") is S.NOT_ENFORCED
    assert_is_secure(backend, "wide.test", False, False)
    print("  ✓ toggle_with_subdomains_disables")

def test_toggle_declined():
    e, store, backend = make_enforcer({"parent.test": PolicyEntry(True)})
    e.ensure_sts()
    backend.enable(to_locator("site.test"), "max-age=100;", ephemeral=False)
    before = backend_snapshot(backend)
    assert e.toggle_sts_enforcing_for_host("site.test") is False
    assert e.toggle_sts_enforcing_for_host("sub.parent.test") is False
    assert backend_snapshot(backend) == before
    assert store.hosts() == ["parent.test"]
    print("  ✓ toggle_declined (site and parent governed)")


# ============================================================
# ensureSTS / contexts
# ============================================================

def test_ensure_sts():
    e, _, backend = make_enforcer({
        "ensuretest.com": PolicyEntry(False),
        "subensuretest.com": PolicyEntry(True),
    })
    assert e.ensure_sts() == 2
    assert_is_secure(backend, "ensuretest.com", True, False)
    assert_is_secure(backend, "subensuretest.com", True, True)
    assert_is_secure(backend, "notensure.com", False, False)
    print("  ✓ ensure_sts")

def test_ensure_sts_idempotent():
    e, store, backend = make_enforcer({
        "a.test": PolicyEntry(False),
        "b.test": PolicyEntry(True),
    })
    e.ensure_sts()
    once = (backend_snapshot(backend), store.items())
    e.ensure_sts()
    assert (backend_snapshot(backend), store.items()) == once
    print("  ✓ ensure_sts_idempotent")

def test_init_replays():
    e, _, backend = make_enforcer({"boot.test": PolicyEntry(True)})
    assert e.init() == 1
    assert_is_secure(backend, "boot.test", True, True)
    print("  ✓ init_replays")

def test_private_context_reseeds():
    e, _, backend = make_enforcer({"private.test": PolicyEntry(False)})
    e.init()
    backend.clear_ephemeral()
    assert not backend.is_enforced(to_locator("private.test"), ephemeral=True)

    assert e.on_context_opened(private=False) == 0
    assert not backend.is_enforced(to_locator("private.test"), ephemeral=True)

    assert e.on_context_opened(private=True) == 1
    assert_is_secure(backend, "private.test", True, False)
    print("  ✓ private_context_reseeds")


# ============================================================
# Errors
# ============================================================

def test_malformed_host_is_fatal():
    e, store, _ = make_enforcer()
    for call in (lambda: e.set_sts_for_host("bad host", True, False),
                 lambda: e.toggle_sts_enforcing_for_host("bad..host"),
                 lambda: e.enable_sts_for_host("", False),
                 lambda: e.status_of("exa mple.com")):
        try:
            call()
        except ConfigurationError:
            continue
        raise AssertionError("malformed host must raise ConfigurationError")
    assert len(store) == 0
    print("  ✓ malformed_host_is_fatal")

def test_backend_unavailable_propagates():
    e, store, backend = make_enforcer()
    backend.shutdown()
    try:
        e.set_sts_for_host("down.test", True, False)
    except BackendUnavailable:
        pass
    else:
        raise AssertionError("BackendUnavailable must propagate")
    assert len(store) == 0
    print("  ✓ backend_unavailable_propagates")

def test_failed_enable_half_is_surfaced():
    e, store, backend = make_enforcer(backend=FlakyService())
    e.set_sts_for_host("flaky.test", True, False)
    backend.fail_enable = True
    try:
        e.set_sts_for_host("flaky.test", True, True)
    except BackendUnavailable:
        pass
    else:
        raise AssertionError("failed enable must be raised")
    # Cleared but not re-enabled; the stored intent is unchanged for a retry.
    assert_is_secure(backend, "flaky.test", False, False)
    assert store.get("flaky.test") == PolicyEntry(False)

    backend.fail_enable = False
    assert e.set_sts_for_host("flaky.test", True, True) is True
    assert_is_secure(backend, "flaky.test", True, True)
    print("  ✓ failed_enable_half_is_surfaced")


def test_store_written_after_service():
    backend = InMemorySiteSecurityService()
    e = Enforcer(FailingPutStore(), backend, WALKER)
    try:
        e.set_sts_for_host("order.test", True, False)
    except BackendUnavailable:
        pass
    else:
        raise AssertionError("store failure must propagate")
    # The service was updated before the store write failed.
    assert_is_secure(backend, "order.test", True, False)
    assert "order.test" not in e.store
    assert e.ensure_sts() == 0
    print("  ✓ store_written_after_service")


if __name__ == "__main__":
    print("\nStatus resolution:")
    test_not_enforced_default()
    test_all_statuses()
    test_parent_precedence()
    test_exact_host_overrides_site()
    test_parent_without_subdomains_does_not_propagate()
    test_nearest_ancestor_wins()
    test_non_subdomain_ancestor_skipped()
    test_public_suffix_never_adopted()
    test_status_case_insensitive()
    test_idn_host_set_and_resolve()
    test_private_suffix_entry_not_inherited()
    test_status_is_read_only()

    print("\nDirectives:")
    test_enable_sts_for_host()
    test_disable_sts_for_host()
    test_update_sts_for_host()

    print("\nUser operations:")
    test_set_sts_for_host()
    test_set_then_clear()
    test_set_changes_subdomain_flag()
    test_set_declined_for_site_enforced()
    test_set_declined_under_parent()
    test_toggle_round_trip()
    test_toggle_with_subdomains_disables()
    test_toggle_declined()

    print("\nReplay:")
    test_ensure_sts()
    test_ensure_sts_idempotent()
    test_init_replays()
    test_private_context_reseeds()

    print("\nErrors:")
    test_malformed_host_is_fatal()
    test_backend_unavailable_propagates()
    test_failed_enable_half_is_surfaced()
    test_store_written_after_service()

    print("\n" + "=" * 50)
    print("ALL ENFORCER TESTS PASSED ✓")
    print("=" * 50)
