import logging
import re

import pytest

from namespace_limiter.errors import IntegrationFault, NotANamespaceError, SnapshotUnavailableError
from namespace_limiter.limiter import (
    Decision,
    Namespace,
    NamespaceLimiter,
    ResourceObject,
    decode_object,
    evaluate,
)
from namespace_limiter.store import StaticNamespaceStore


def new_limiter(regex, limit, names=()):
    return NamespaceLimiter(re.compile(regex), limit, StaticNamespaceStore(names))


@pytest.mark.parametrize(
    "regex,limit,existing,candidate,allowed",
    [
        ("^t", 2, ["test"], "test2", True),
        ("^t", 1, ["test"], "test2", False),
        ("^t", 5, ["test", "test2", "test3", "test4", "test5"], "test6", False),
        ("^t", 6, ["test", "test2", "test3", "test4", "test5"], "test6", True),
        (".*", 0, [], "test", False),
    ],
)
def test_decide(regex, limit, existing, candidate, allowed):
    """Test decisions against the existing namespaces"""
    limiter = new_limiter(regex, limit, existing)

    decision = limiter.decide(Namespace(name=candidate))

    assert decision.allowed is allowed


def test_denial_message_explains_the_policy():
    """Test that a denial names the match count, the limit and the candidate"""
    limiter = new_limiter("^t", 1, ["test"])

    decision = limiter.decide(Namespace(name="test2"))

    assert decision == Decision(
        allowed=False,
        message="too many (1) namespaces matching regex '^t' (limit 1). test2 namespace denied",
    )


def test_allowed_message():
    """Test the confirmation message of an allowed namespace"""
    decision = new_limiter("^t", 2, ["test"]).decide(Namespace(name="test2"))

    assert decision == Decision(allowed=True, message="namespace is valid")


def test_limit_zero_denies_even_when_nothing_matches():
    """Test that limit 0 denies regardless of pattern or population"""
    limiter = new_limiter("^never$", 0, ["default", "kube-system"])

    assert limiter.decide(Namespace(name="whatever")).allowed is False


def test_empty_snapshot_with_positive_limit_allows():
    """Test that no existing namespaces means any positive limit allows"""
    for limit in (1, 2, 100):
        assert new_limiter(".*", limit).decide(Namespace(name="test")).allowed is True


def test_non_matching_namespaces_are_not_counted():
    """Test that only matching namespaces count towards the limit"""
    limiter = new_limiter("^team-", 2, ["team-a", "default", "kube-system", "kube-public"])

    assert limiter.decide(Namespace(name="team-b")).allowed is True


def test_candidate_is_not_counted():
    """Test that the candidate is evaluated against existing namespaces only"""
    names = ["team-a"]

    decision = evaluate(Namespace(name="team-b"), names, re.compile("^team-"), 2)

    assert decision.allowed is True
    assert names == ["team-a"]


def test_decide_is_idempotent():
    """Test that an unchanged snapshot gives the same decision twice"""
    limiter = new_limiter("^t", 1, ["test"])
    candidate = Namespace(name="test2")

    assert limiter.decide(candidate) == limiter.decide(candidate)


def test_decide_fetches_a_fresh_snapshot_each_time():
    """Test that the store is queried once per decision and nothing is cached"""
    store = StaticNamespaceStore(["test"])
    limiter = NamespaceLimiter(re.compile("^t"), 2, store)

    assert limiter.decide(Namespace(name="test2")).allowed is True
    store.names.append("test2")
    assert limiter.decide(Namespace(name="test3")).allowed is False
    assert store.calls == 2


def test_decide_rejects_other_kinds():
    """Test that a non-namespace candidate is an integration fault, not a denial"""
    store = StaticNamespaceStore(["test"])
    limiter = NamespaceLimiter(re.compile("^t"), 5, store)

    with pytest.raises(NotANamespaceError, match="not a namespace") as exc_info:
        limiter.decide(ResourceObject(kind="Pod", api_version="v1", name="test"))

    assert exc_info.value.kind == "Pod"
    assert store.calls == 0


def test_decide_rejects_arbitrary_objects():
    """Test that objects that are not resources at all are also integration faults"""
    with pytest.raises(IntegrationFault):
        new_limiter("^t", 5).decide({"kind": "Namespace", "metadata": {"name": "test"}})


def test_decide_propagates_store_failures():
    """Test that a failed listing is surfaced instead of guessed"""
    store = StaticNamespaceStore(error=SnapshotUnavailableError("apiserver unreachable"))
    limiter = NamespaceLimiter(re.compile("^t"), 5, store)

    with pytest.raises(SnapshotUnavailableError, match="apiserver unreachable"):
        limiter.decide(Namespace(name="test"))


def test_negative_limit_is_rejected():
    """Test that the limit must be non-negative"""
    with pytest.raises(ValueError, match="non-negative"):
        new_limiter("^t", -1)


def test_decisions_are_logged(caplog):
    """Test that both outcomes are logged"""
    caplog.set_level(logging.INFO, logger="namespace_limiter.limiter")

    new_limiter("^t", 1, ["test"]).decide(Namespace(name="test2"))
    new_limiter("^t", 2, ["test"]).decide(Namespace(name="test3"))

    assert "namespace test2 denied, currently 1 namespaces match the regex" in caplog.text
    assert "namespace test3 is valid" in caplog.text


def test_decode_object_namespace():
    """Test that core/v1 Namespace objects decode to Namespace"""
    candidate = decode_object({"kind": "Namespace", "apiVersion": "v1", "metadata": {"name": "team-a"}})

    assert isinstance(candidate, Namespace)
    assert candidate.name == "team-a"


def test_decode_object_other_kind():
    """Test that other kinds decode to a plain ResourceObject"""
    candidate = decode_object({"kind": "Pod", "apiVersion": "v1", "metadata": {"name": "web"}})

    assert not isinstance(candidate, Namespace)
    assert candidate == ResourceObject(kind="Pod", api_version="v1", name="web")


def test_decode_object_missing_fields():
    """Test that missing fields decode to empty values"""
    assert decode_object({}) == ResourceObject(kind="", api_version="", name="")
