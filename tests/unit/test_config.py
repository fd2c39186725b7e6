"""Tests for config constants and settings defaults."""

from app.config import ModerationActionType, RoomStatus, Settings, Stage, UserStatus


class TestRoomConstants:
    def test_room_statuses(self) -> None:
        assert RoomStatus.OPEN == "open"
        assert RoomStatus.FULL == "full"
        assert RoomStatus.ARCHIVED == "archived"

    def test_stages(self) -> None:
        assert Stage.ALL == ("beginner", "intermediate", "advanced")

    def test_user_statuses(self) -> None:
        assert {UserStatus.ACTIVE, UserStatus.SUSPENDED, UserStatus.BANNED} == {
            "active",
            "suspended",
            "banned",
        }


class TestModerationActionType:
    def test_all_values_unique(self) -> None:
        """Ensure no duplicate action type values."""
        values = [
            ModerationActionType.KICK,
            ModerationActionType.SUSPEND,
            ModerationActionType.UNSUSPEND,
            ModerationActionType.BAN,
            ModerationActionType.UNBAN,
            ModerationActionType.DELETE_MESSAGE,
            ModerationActionType.DELETE_POST,
            ModerationActionType.DELETE_COMMENT,
            ModerationActionType.ARCHIVE_ROOM,
        ]
        assert len(values) == len(set(values))


class TestSettings:
    def test_allocation_defaults(self, monkeypatch) -> None:
        for key in ("MAX_ROOM_MEMBERS", "JOIN_MAX_RETRIES", "JOIN_RETRY_BASE_DELAY_MS"):
            monkeypatch.delenv(key, raising=False)

        settings = Settings(_env_file=None)

        assert settings.MAX_ROOM_MEMBERS == 10
        assert settings.JOIN_MAX_RETRIES == 5
        assert settings.JOIN_RETRY_BASE_DELAY_MS == 100

    def test_cors_origins_from_comma_separated_string(self) -> None:
        settings = Settings(_env_file=None, CORS_ORIGINS="http://a.test, http://b.test")

        assert settings.CORS_ORIGINS == ["http://a.test", "http://b.test"]
