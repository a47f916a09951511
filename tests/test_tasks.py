from datetime import timedelta

from learnflow.results import EndpointRole
from learnflow.tasks import TaskKind, build_policies

from .conftest import make_settings


def test_every_kind_has_a_policy():
    policies = build_policies(make_settings())

    assert set(policies) == set(TaskKind)
    for kind, policy in policies.items():
        assert policy.kind is kind
        assert [e.role for e in policy.endpoints()] == [EndpointRole.PRIMARY, EndpointRole.FALLBACK]


def test_cacheability_and_methods():
    policies = build_policies(make_settings())

    assert policies[TaskKind.SCORE_ANALYSIS].cache_ttl == timedelta(hours=24)
    assert not policies[TaskKind.CHAT_ANSWER].cacheable
    assert not policies[TaskKind.MODULE_ASSESSMENT].cacheable
    assert policies[TaskKind.CAREER_OPTIONS].method == "GET"
    assert policies[TaskKind.LEARNING_PATH].timeout == 45.0
    assert policies[TaskKind.MODULE_ASSESSMENT].max_user_attempts == 5
    assert policies[TaskKind.SCORE_ANALYSIS].max_user_attempts is None


def test_settings_override_ttl_and_attempts():
    policies = build_policies(make_settings(CACHE_TTL_HOURS=2, MAX_ASSESSMENT_ATTEMPTS=3, WEBHOOK_RETRY_BACKOFF_SECONDS=0.5))

    assert policies[TaskKind.CAREER_DETAILS].cache_ttl == timedelta(hours=2)
    assert policies[TaskKind.MODULE_ASSESSMENT].max_user_attempts == 3
    assert policies[TaskKind.CAREER_DETAILS].retry_backoff == 0.5


def test_zero_ttl_disables_caching():
    policies = build_policies(make_settings(CACHE_TTL_HOURS=0))

    assert not any(policy.cacheable for policy in policies.values())


def test_missing_fallback_url_yields_single_endpoint():
    policy = build_policies(make_settings(with_fallback=False))[TaskKind.SCORE_ANALYSIS]

    assert [e.role for e in policy.endpoints()] == [EndpointRole.PRIMARY]
