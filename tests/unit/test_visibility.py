"""Unit tests for visibility domain types."""

from nics_api.core.visibility import (
    GrantResult,
    RemovalRejection,
    RevokeResult,
    ValidationFailure,
    VisibilityState,
    is_visible,
    visibility_state,
)


def test_incident_without_mappings_is_unrestricted():
    assert visibility_state([]) is VisibilityState.UNRESTRICTED
    assert visibility_state({3}) is VisibilityState.RESTRICTED


def test_unrestricted_incident_is_visible_to_everyone():
    assert is_visible(set(), {99}) is True
    assert is_visible(set(), set()) is True


def test_restricted_incident_visible_only_to_mapped_orgs():
    mapped = {1, 2}

    assert is_visible(mapped, {2, 7}) is True
    assert is_visible(mapped, {7}) is False
    assert is_visible(mapped, set()) is False


def test_grant_result_after_is_union():
    result = GrantResult(incident_id=1, before=frozenset({1}), added=frozenset({2, 3}))

    assert result.after == {1, 2, 3}


def test_revoke_result_unrestricted_only_when_last_mapping_removed():
    assert RevokeResult(1, frozenset({1}), frozenset({1})).became_unrestricted is True
    assert RevokeResult(1, frozenset({1, 2}), frozenset({2})).became_unrestricted is False
    # Already unrestricted: nothing changed
    assert RevokeResult(1, frozenset(), frozenset()).became_unrestricted is False


def test_validation_failure_messages():
    parent = ValidationFailure(
        org_id=2,
        reason=RemovalRejection.PARENT_OF_RETAINED_ORG,
        retained_children=frozenset({5, 3}),
    )
    unmapped = ValidationFailure(org_id=8, reason=RemovalRejection.NOT_MAPPED)

    assert parent.message == (
        "Organization 2 cannot be removed while child organization(s) 3, 5 "
        "are still secured to the incident"
    )
    assert unmapped.message == "Organization 8 is not secured to the incident"
