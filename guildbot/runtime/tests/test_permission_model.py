"""Tests for permission identifiers and resolved permission sets."""

from __future__ import annotations

import pytest

from guildbot.runtime.permissions import (
    PermissionNode,
    PermissionOverride,
    PermissionSet,
    has,
)


class TestPermissionNode:
    def test_parse_normalizes(self) -> None:
        assert PermissionNode.parse("  Admin.Kick ") == PermissionNode("admin.kick")

    def test_parse_passes_nodes_through(self) -> None:
        node = PermissionNode("admin.kick")
        assert PermissionNode.parse(node) is node

    @pytest.mark.parametrize(
        "value", ["", ".", "admin.", ".admin", "admin..kick", "admin kick", "*.admin", "ad*"]
    )
    def test_invalid(self, value: str) -> None:
        with pytest.raises(ValueError):
            PermissionNode(value)

    def test_exact_match(self) -> None:
        assert PermissionNode("admin.kick").covers(PermissionNode("admin.kick"))
        assert not PermissionNode("admin.kick").covers(PermissionNode("admin.ban"))

    def test_plain_node_does_not_cover_children(self) -> None:
        assert not PermissionNode("admin").covers(PermissionNode("admin.kick"))

    def test_wildcard_covers_strictly_below(self) -> None:
        wildcard = PermissionNode("admin.*")
        assert wildcard.covers(PermissionNode("admin.kick"))
        assert wildcard.covers(PermissionNode("admin.ban.forever"))
        assert not wildcard.covers(PermissionNode("admin"))
        assert not wildcard.covers(PermissionNode("administrator.kick"))

    def test_global_wildcard(self) -> None:
        assert PermissionNode("*").covers(PermissionNode("admin"))
        assert PermissionNode("*").covers(PermissionNode("music.play.loud"))

    def test_parts(self) -> None:
        assert PermissionNode("admin.ban.list").parts == ("admin", "ban", "list")
        assert PermissionNode("admin.*").is_wildcard
        assert not PermissionNode("admin").is_wildcard


class TestPermissionSet:
    def test_empty_grants_nothing(self) -> None:
        assert not PermissionSet().has("admin.kick")
        assert PermissionSet().effective() == []

    def test_role_grants(self) -> None:
        perms = PermissionSet.build(["admin.kick", "music.*"])
        assert perms.has("admin.kick")
        assert perms.has("music.play")
        assert not perms.has("admin.ban")

    def test_override_grant_adds(self) -> None:
        perms = PermissionSet.build([], [PermissionOverride.grant("admin.ban")])
        assert perms.has("admin.ban")

    def test_revoke_beats_role_grant(self) -> None:
        perms = PermissionSet.build(["admin.kick"], [PermissionOverride.revoke("admin.kick")])
        assert not perms.has("admin.kick")

    def test_revoke_beats_wildcard(self) -> None:
        perms = PermissionSet.build(["admin.*"], [PermissionOverride.revoke("admin.ban")])
        assert perms.has("admin.kick")
        assert not perms.has("admin.ban")

    def test_wildcard_revoke(self) -> None:
        perms = PermissionSet.build(["*"], [PermissionOverride.revoke("admin.*")])
        assert perms.has("music.play")
        assert not perms.has("admin.kick")
        assert perms.has("admin")

    def test_revoke_beats_grant_override(self) -> None:
        perms = PermissionSet.build(
            [],
            [PermissionOverride.grant("admin.kick"), PermissionOverride.revoke("admin.kick")],
        )
        assert not perms.has("admin.kick")

    def test_first_missing_in_order(self) -> None:
        perms = PermissionSet.build(["admin.kick"])
        assert perms.first_missing(["admin.kick", "admin.ban", "admin.mute"]) == "admin.ban"
        assert perms.first_missing(["admin.kick"]) is None
        assert perms.first_missing([]) is None

    def test_effective_drops_revoked(self) -> None:
        perms = PermissionSet.build(
            ["music.play", "admin.kick", "admin.ban"], [PermissionOverride.revoke("admin.*")]
        )
        assert perms.effective() == ["music.play"]

    def test_module_level_has(self) -> None:
        assert has(PermissionSet.build(["*"]), "anything.at.all")
