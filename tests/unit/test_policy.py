"""Tests for the static role/capability table."""

import pytest

from jobboard.core.policy import (
    OPERATION_CAPABILITIES,
    Capability,
    can_call,
    capabilities_for,
    is_allowed,
)


class TestCapabilities:
    def test_main_admin_has_everything(self) -> None:
        assert capabilities_for("main_admin") == frozenset(Capability)

    def test_admin_has_nothing_by_default(self) -> None:
        assert capabilities_for("admin") == frozenset()

    def test_admin_grants_added(self) -> None:
        caps = capabilities_for("admin", {Capability.VIEW_ANALYTICS})
        assert caps == frozenset({Capability.VIEW_ANALYTICS})

    def test_unknown_role_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown role"):
            capabilities_for("guest")


class TestIsAllowed:
    def test_granted_capability(self) -> None:
        assert is_allowed("admin", Capability.CREATE_JOBS, {Capability.CREATE_JOBS})

    def test_missing_capability(self) -> None:
        assert not is_allowed("admin", Capability.DELETE_JOBS, {Capability.CREATE_JOBS})

    def test_only_main_admin_manages_admins(self) -> None:
        assert is_allowed("main_admin", Capability.MANAGE_ADMINS)
        assert not is_allowed("admin", Capability.MANAGE_ADMINS)


class TestCanCall:
    def test_transitions_need_create_jobs(self) -> None:
        for op in ("set_status", "reactivate_job", "move_to_dump", "move_to_inactive"):
            assert OPERATION_CAPABILITIES[op] == Capability.CREATE_JOBS
            assert not can_call("admin", op)
            assert can_call("admin", op, {Capability.CREATE_JOBS})

    def test_reports_need_view_analytics(self) -> None:
        assert not can_call("admin", "dashboard", {Capability.CREATE_JOBS})
        assert can_call("admin", "dashboard", {Capability.VIEW_ANALYTICS})
        assert can_call("main_admin", "export_csv")

    def test_delete_needs_delete_jobs(self) -> None:
        assert not can_call("admin", "delete_job", {Capability.CREATE_JOBS})
        assert can_call("admin", "delete_job", {Capability.DELETE_JOBS})

    def test_unlisted_operation_is_open(self) -> None:
        assert can_call("admin", "record_visit")
        assert can_call("admin", "get_job")
        assert can_call("admin", "search_jobs")
