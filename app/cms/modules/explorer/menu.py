"""
Context menu visibility rules for the explorer.

A menu item is bound to a `MenuRule`: an ordered list of item rules. The
first item rule that matches the selected resource decides whether the item
is shown active, shown greyed out (inactive) or hidden.
"""
from __future__ import annotations

import enum
from collections.abc import Sequence
from dataclasses import dataclass


class VisibilityMode:
    ACTIVE: "VisibilityMode"
    INACTIVE: "VisibilityMode"
    INVISIBLE: "VisibilityMode"

    def __init__(self, mode: str, message_key: str | None = None):
        self.mode = mode
        self.message_key = message_key

    def is_active(self) -> bool:
        return self.mode == "active"

    def is_inactive(self) -> bool:
        return self.mode == "inactive"

    def is_invisible(self) -> bool:
        return self.mode == "invisible"

    def with_message(self, message_key: str) -> "VisibilityMode":
        return VisibilityMode(self.mode, message_key)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VisibilityMode):
            return NotImplemented
        return self.mode == other.mode

    def __hash__(self) -> int:
        return hash(self.mode)

    def __repr__(self) -> str:
        if self.message_key:
            return f"VisibilityMode({self.mode!r}, {self.message_key!r})"
        return f"VisibilityMode({self.mode!r})"


VisibilityMode.ACTIVE = VisibilityMode("active")
VisibilityMode.INACTIVE = VisibilityMode("inactive")
VisibilityMode.INVISIBLE = VisibilityMode("invisible")


class ResourceState(enum.Enum):
    UNCHANGED = "U"
    CHANGED = "C"
    NEW = "N"
    DELETED = "D"

    @property
    def abbreviation(self) -> str:
        return self.value


class LockType(enum.Enum):
    UNLOCKED = "unlocked"
    EXCLUSIVE = "exclusive"
    SHARED_EXCLUSIVE = "shared_exclusive"
    INHERITED = "inherited"
    TEMPORARY = "temporary"
    WORKFLOW = "workflow"

    def is_workflow(self) -> bool:
        return self is LockType.WORKFLOW

    def is_unlocked(self) -> bool:
        return self is LockType.UNLOCKED


class ProjectState(enum.Enum):
    UNLOCKED = "unlocked"
    LOCKED_FOR_PUBLISHING = "locked_for_publishing"

    def is_locked_for_publishing(self) -> bool:
        return self is ProjectState.LOCKED_FOR_PUBLISHING


@dataclass(frozen=True)
class ResourceInfo:
    path: str
    state: ResourceState = ResourceState.UNCHANGED
    inside_project: bool = True
    project_state: ProjectState = ProjectState.UNLOCKED
    locked_by_name: str | None = None
    lock_type: LockType = LockType.UNLOCKED

    @property
    def state_abbreviation(self) -> str:
        return self.state.abbreviation

    def is_deleted(self) -> bool:
        return self.state is ResourceState.DELETED

    def is_unlocked(self) -> bool:
        return not (self.locked_by_name or "").strip()


@dataclass(frozen=True)
class MenuContext:
    user_name: str
    auto_lock_resources: bool = True


class MenuItemRule:
    """
    Base class for a single visibility rule.

    Subclasses implement `matches` and `get_visibility`; both only look at
    the first selected resource.
    """

    def matches(self, ctx: MenuContext, resources: Sequence[ResourceInfo]) -> bool:
        raise NotImplementedError

    def get_visibility(self, ctx: MenuContext, resources: Sequence[ResourceInfo]) -> VisibilityMode:
        raise NotImplementedError

    @property
    def name(self) -> str:
        return type(self).__name__


def _unlocked_or_workflow(res: ResourceInfo) -> bool:
    return (not res.project_state.is_locked_for_publishing() and res.is_unlocked()) or res.lock_type.is_workflow()


class SameUnlockedActiveDeletedNoAutoLock(MenuItemRule):
    """Active for an unlocked, deleted resource when auto-lock is off."""

    def get_visibility(self, ctx, resources):
        if resources[0].state_abbreviation == ResourceState.DELETED.abbreviation:
            return VisibilityMode.ACTIVE
        return VisibilityMode.INVISIBLE

    def matches(self, ctx, resources):
        res = resources[0]
        if res.inside_project:
            return _unlocked_or_workflow(res) and not ctx.auto_lock_resources
        # resource is not in current project
        return False


class SameUnlockedActiveNotDeletedNoAutoLock(MenuItemRule):
    def get_visibility(self, ctx, resources):
        if resources[0].is_deleted():
            return VisibilityMode.INVISIBLE
        return VisibilityMode.ACTIVE

    def matches(self, ctx, resources):
        res = resources[0]
        if res.inside_project:
            return _unlocked_or_workflow(res) and not ctx.auto_lock_resources
        return False


class SameLockedActiveNotDeleted(MenuItemRule):
    def get_visibility(self, ctx, resources):
        if resources[0].is_deleted():
            return VisibilityMode.INVISIBLE
        return VisibilityMode.ACTIVE

    def matches(self, ctx, resources):
        res = resources[0]
        return res.inside_project and not res.is_unlocked() and res.locked_by_name == ctx.user_name


class SameLockedByOtherInactive(MenuItemRule):
    def get_visibility(self, ctx, resources):
        return VisibilityMode.INACTIVE.with_message("GUI_EXPLORER_CONTEXT_LOCKEDBY")

    def matches(self, ctx, resources):
        res = resources[0]
        return (
            res.inside_project
            and not res.is_unlocked()
            and res.locked_by_name != ctx.user_name
            and not res.lock_type.is_workflow()
        )


class PublishLockedInactive(MenuItemRule):
    def get_visibility(self, ctx, resources):
        return VisibilityMode.INACTIVE.with_message("GUI_EXPLORER_CONTEXT_PUBLISHLOCKED")

    def matches(self, ctx, resources):
        res = resources[0]
        return res.inside_project and res.project_state.is_locked_for_publishing()


class OtherProjectInvisible(MenuItemRule):
    def get_visibility(self, ctx, resources):
        return VisibilityMode.INVISIBLE

    def matches(self, ctx, resources):
        return not resources[0].inside_project


class AlwaysInvisible(MenuItemRule):
    def get_visibility(self, ctx, resources):
        return VisibilityMode.INVISIBLE

    def matches(self, ctx, resources):
        return True


class MenuRule:
    def __init__(self, name: str, rules: Sequence[MenuItemRule] = ()):
        self.name = name
        self._rules: list[MenuItemRule] = list(rules)

    @property
    def rules(self) -> list[MenuItemRule]:
        return list(self._rules)

    def add_rule(self, rule: MenuItemRule) -> None:
        self._rules.append(rule)

    def matching_rule(self, ctx: MenuContext, resources: Sequence[ResourceInfo]) -> MenuItemRule | None:
        if not resources:
            return None
        for rule in self._rules:
            if rule.matches(ctx, resources):
                return rule
        return None

    def get_visibility(self, ctx: MenuContext, resources: Sequence[ResourceInfo]) -> VisibilityMode:
        rule = self.matching_rule(ctx, resources)
        if rule is None:
            return VisibilityMode.INVISIBLE
        return rule.get_visibility(ctx, resources)


def menu_rules() -> dict[str, MenuRule]:
    """Rule sets referenced by the explorer context menu configuration."""
    return {
        # "undelete" is only offered for deleted resources
        "undelete": MenuRule(
            "undelete",
            [
                OtherProjectInvisible(),
                PublishLockedInactive(),
                SameUnlockedActiveDeletedNoAutoLock(),
                SameLockedByOtherInactive(),
                AlwaysInvisible(),
            ],
        ),
        "edit": MenuRule(
            "edit",
            [
                OtherProjectInvisible(),
                PublishLockedInactive(),
                SameUnlockedActiveNotDeletedNoAutoLock(),
                SameLockedActiveNotDeleted(),
                SameLockedByOtherInactive(),
                AlwaysInvisible(),
            ],
        ),
        "default": MenuRule(
            "default",
            [
                OtherProjectInvisible(),
                SameLockedByOtherInactive(),
                AlwaysInvisible(),
            ],
        ),
    }
