from amms.modules.auth.models import ROLE_ADMIN, ROLE_SUPERVISOR, ROLE_TECHNICIAN, ROLE_VIEWER
from amms.modules.notifications.audience import (
    AudienceSelector,
    ResolveActiveUserIds,
    ResolveAudienceTokens,
)


def _seed(make_user, make_token):
    make_user("admin", role=ROLE_ADMIN, department="plant")
    make_user("super", role=ROLE_SUPERVISOR, department="office")
    make_user("tech", role=ROLE_TECHNICIAN, department="plant")
    make_user("viewer", role=ROLE_VIEWER, department="plant")
    make_user("gone", role=ROLE_TECHNICIAN, department="plant", is_active=False)
    make_token("admin", "admin-token-1")
    make_token("super", "super-token-1")
    make_token("tech", "tech-token-1")
    make_token("tech", "tech-token-old", is_active=False)
    make_token("viewer", "viewer-token-1")
    make_token("gone", "gone-token-1")


def test_empty_selector_resolves_to_nothing(db, make_user, make_token):
    _seed(make_user, make_token)
    selector = AudienceSelector.Build(tokens=[], user_ids=[], roles=[], departments=[])
    assert selector.IsEmpty()
    assert ResolveAudienceTokens(db, selector) == []


def test_broadcast_returns_active_tokens_of_active_users(db, make_user, make_token):
    _seed(make_user, make_token)
    tokens = ResolveAudienceTokens(db, AudienceSelector.Build(broadcast=True))
    assert tokens == ["admin-token-1", "super-token-1", "tech-token-1", "viewer-token-1"]


def test_filters_are_combined_with_and(db, make_user, make_token):
    _seed(make_user, make_token)
    selector = AudienceSelector.Build(roles=[ROLE_ADMIN, ROLE_TECHNICIAN, ROLE_VIEWER], departments=["plant"])
    assert ResolveAudienceTokens(db, selector) == ["admin-token-1", "tech-token-1", "viewer-token-1"]

    selector = AudienceSelector.Build(user_ids=["admin", "super"], roles=[ROLE_SUPERVISOR])
    assert ResolveAudienceTokens(db, selector) == ["super-token-1"]


def test_explicit_tokens_union_with_store(db, make_user, make_token):
    _seed(make_user, make_token)
    selector = AudienceSelector.Build(
        token="unknown-token-1",
        tokens=["tech-token-old", "admin-token-1", "  "],
        user_ids=["admin"],
    )
    assert ResolveAudienceTokens(db, selector) == ["unknown-token-1", "admin-token-1"]


def test_preferences_filter_by_category(db, make_user, make_token, make_settings):
    _seed(make_user, make_token)
    make_settings("tech", Emergency=False)
    make_settings("super", Enabled=False)
    selector = AudienceSelector.Build(roles=[ROLE_ADMIN, ROLE_SUPERVISOR, ROLE_TECHNICIAN])

    assert ResolveAudienceTokens(db, selector, "emergency") == ["admin-token-1"]
    assert ResolveAudienceTokens(db, selector, "completed") == ["admin-token-1", "tech-token-1"]
    assert ResolveAudienceTokens(db, selector, "info") == ["admin-token-1", "tech-token-1"]
    assert ResolveAudienceTokens(db, selector) == ["admin-token-1", "super-token-1", "tech-token-1"]


def test_resolution_is_an_idempotent_read(db, make_user, make_token):
    _seed(make_user, make_token)
    selector = AudienceSelector.Build(broadcast=True, tokens=["admin-token-1"])
    first = ResolveAudienceTokens(db, selector)
    second = ResolveAudienceTokens(db, selector)
    assert first == second
    assert len(first) == len(set(first))


def test_deactivated_token_is_never_resolved(db, make_user, make_token):
    _seed(make_user, make_token)
    selector = AudienceSelector.Build(user_ids=["tech"], tokens=["tech-token-old"])
    assert ResolveAudienceTokens(db, selector) == ["tech-token-1"]


def test_resolve_active_user_ids_excludes_inactive_and_excluded(db, make_user, make_token):
    _seed(make_user, make_token)
    user_ids = ResolveActiveUserIds(
        db,
        roles=[ROLE_ADMIN, ROLE_SUPERVISOR, ROLE_TECHNICIAN],
        exclude_user_ids={"super"},
    )
    assert user_ids == ["admin", "tech"]


def test_inactive_users_never_receive_store_tokens(db, make_user, make_token):
    _seed(make_user, make_token)
    selectors = [
        AudienceSelector.Build(broadcast=True),
        AudienceSelector.Build(roles=[ROLE_TECHNICIAN]),
        AudienceSelector.Build(departments=["plant"]),
        AudienceSelector.Build(user_ids=["gone"]),
    ]
    for selector in selectors:
        assert "gone-token-1" not in ResolveAudienceTokens(db, selector, "emergency")
        assert "gone-token-1" not in ResolveAudienceTokens(db, selector)
    assert "gone" not in ResolveActiveUserIds(db, roles=[ROLE_TECHNICIAN])
