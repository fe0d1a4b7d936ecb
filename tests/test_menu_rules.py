import pytest

from app.cms.modules.explorer.menu import (
    AlwaysInvisible,
    LockType,
    MenuContext,
    MenuRule,
    OtherProjectInvisible,
    ProjectState,
    PublishLockedInactive,
    ResourceInfo,
    ResourceState,
    SameLockedActiveNotDeleted,
    SameLockedByOtherInactive,
    SameUnlockedActiveDeletedNoAutoLock,
    VisibilityMode,
    menu_rules,
)

NO_AUTOLOCK = MenuContext(user_name="Admin", auto_lock_resources=False)
AUTOLOCK = MenuContext(user_name="Admin", auto_lock_resources=True)


def _res(**kwargs) -> ResourceInfo:
    kwargs.setdefault("path", "/sites/default/index.html")
    return ResourceInfo(**kwargs)


def test_resource_state_abbreviations():
    assert [s.abbreviation for s in ResourceState] == ["U", "C", "N", "D"]
    assert _res(state=ResourceState.DELETED).state_abbreviation == "D"


def test_visibility_mode_equality_ignores_message():
    mode = VisibilityMode.INACTIVE.with_message("GUI_EXPLORER_CONTEXT_LOCKEDBY")
    assert mode == VisibilityMode.INACTIVE
    assert mode.is_inactive()
    assert mode.message_key == "GUI_EXPLORER_CONTEXT_LOCKEDBY"
    assert VisibilityMode.INACTIVE.message_key is None


class TestSameUnlockedActiveDeletedNoAutoLock:
    rule = SameUnlockedActiveDeletedNoAutoLock()

    def test_matches_unlocked_resource_without_autolock(self):
        assert self.rule.matches(NO_AUTOLOCK, [_res(state=ResourceState.DELETED)])

    def test_does_not_match_with_autolock(self):
        assert not self.rule.matches(AUTOLOCK, [_res(state=ResourceState.DELETED)])

    def test_does_not_match_outside_project(self):
        assert not self.rule.matches(NO_AUTOLOCK, [_res(inside_project=False, state=ResourceState.DELETED)])

    def test_does_not_match_locked_resource(self):
        res = _res(locked_by_name="Admin", lock_type=LockType.EXCLUSIVE)
        assert not self.rule.matches(NO_AUTOLOCK, [res])

    def test_does_not_match_publish_locked_project(self):
        res = _res(project_state=ProjectState.LOCKED_FOR_PUBLISHING)
        assert not self.rule.matches(NO_AUTOLOCK, [res])

    def test_workflow_lock_matches(self):
        res = _res(
            locked_by_name="Editor",
            lock_type=LockType.WORKFLOW,
            project_state=ProjectState.LOCKED_FOR_PUBLISHING,
        )
        assert self.rule.matches(NO_AUTOLOCK, [res])

    @pytest.mark.parametrize(
        "state,expected",
        [
            (ResourceState.DELETED, VisibilityMode.ACTIVE),
            (ResourceState.UNCHANGED, VisibilityMode.INVISIBLE),
            (ResourceState.CHANGED, VisibilityMode.INVISIBLE),
            (ResourceState.NEW, VisibilityMode.INVISIBLE),
        ],
    )
    def test_visibility_depends_on_deleted_state(self, state, expected):
        assert self.rule.get_visibility(NO_AUTOLOCK, [_res(state=state)]) == expected


def test_locked_by_other_is_inactive_with_message():
    rule = SameLockedByOtherInactive()
    res = _res(locked_by_name="Editor", lock_type=LockType.EXCLUSIVE)
    assert rule.matches(NO_AUTOLOCK, [res])
    mode = rule.get_visibility(NO_AUTOLOCK, [res])
    assert mode.is_inactive()
    assert mode.message_key == "GUI_EXPLORER_CONTEXT_LOCKEDBY"
    assert not rule.matches(MenuContext(user_name="Editor"), [res])


def test_locked_by_self_active_unless_deleted():
    rule = SameLockedActiveNotDeleted()
    res = _res(locked_by_name="Admin", lock_type=LockType.EXCLUSIVE)
    assert rule.matches(AUTOLOCK, [res])
    assert rule.get_visibility(AUTOLOCK, [res]).is_active()
    deleted = _res(locked_by_name="Admin", lock_type=LockType.EXCLUSIVE, state=ResourceState.DELETED)
    assert rule.get_visibility(AUTOLOCK, [deleted]).is_invisible()


def test_menu_rule_first_match_wins():
    rule = MenuRule("test", [OtherProjectInvisible(), PublishLockedInactive(), AlwaysInvisible()])
    res = _res(project_state=ProjectState.LOCKED_FOR_PUBLISHING)
    assert isinstance(rule.matching_rule(NO_AUTOLOCK, [res]), PublishLockedInactive)
    assert rule.get_visibility(NO_AUTOLOCK, [res]).message_key == "GUI_EXPLORER_CONTEXT_PUBLISHLOCKED"


def test_menu_rule_without_match_or_resources_is_invisible():
    assert MenuRule("empty").get_visibility(NO_AUTOLOCK, [_res()]).is_invisible()
    assert menu_rules()["edit"].get_visibility(NO_AUTOLOCK, []).is_invisible()


def test_undelete_rule_set():
    undelete = menu_rules()["undelete"]
    assert undelete.get_visibility(NO_AUTOLOCK, [_res(state=ResourceState.DELETED)]).is_active()
    assert undelete.get_visibility(NO_AUTOLOCK, [_res(state=ResourceState.CHANGED)]).is_invisible()
    assert undelete.get_visibility(AUTOLOCK, [_res(state=ResourceState.DELETED)]).is_invisible()
    assert undelete.get_visibility(NO_AUTOLOCK, [_res(inside_project=False)]).is_invisible()


def test_explorer_menu_endpoint(admin_client):
    r = admin_client.get("/admin/explorer/menu?rule=undelete&state=D&path=/a.html")
    assert r.status_code == 200
    # auto-lock is on by default, so no unlocked rule matches
    assert r.json["rules"]["undelete"]["mode"] == "invisible"
    assert r.json["state"] == "D"

    r = admin_client.get("/admin/explorer/menu?state=U&locked_by=Editor")
    assert r.json["rules"]["edit"]["mode"] == "inactive"
    assert r.json["rules"]["edit"]["message_key"] == "GUI_EXPLORER_CONTEXT_LOCKEDBY"
    assert r.json["rules"]["edit"]["matched"] == "SameLockedByOtherInactive"


def test_explorer_menu_endpoint_respects_autolock_setting(app, admin_client):
    app.config["CMS_AUTO_LOCK"] = False
    r = admin_client.get("/admin/explorer/menu?rule=undelete&state=D")
    assert r.json["rules"]["undelete"]["mode"] == "active"


def test_explorer_menu_endpoint_rejects_bad_state(admin_client):
    r = admin_client.get("/admin/explorer/menu?state=X")
    assert r.status_code == 400
    r = admin_client.get("/admin/explorer/menu?rule=nope")
    assert r.status_code == 404
