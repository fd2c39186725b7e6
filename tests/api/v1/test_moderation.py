"""
Tests for moderation endpoints.

These tests cover the /api/v1/moderation/* endpoints including:
- Kicking, suspending, banning and their reversals
- Archiving rooms
- Soft-deleting content
- The audit log, user history and the moderator room listing
"""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.room_content import RoomMessages, RoomPosts
from app.services.room_storage import (
    SqlRoomStorage,
    StorageConflictError,
    StorageUnavailableError,
)

MODERATOR = 100


async def join(client: AsyncClient, user_id: int, stage: str = "beginner") -> dict:
    response = await client.post(
        "/api/v1/support-rooms/join",
        json={"support_group_id": 3, "stage": stage, "user_id": user_id},
    )
    assert response.status_code == 200
    return response.json()


@pytest.mark.api
class TestKickEndpoint:
    async def test_kick(self, client: AsyncClient) -> None:
        room_id = (await join(client, 1))["room"]["room_id"]

        response = await client.post(
            "/api/v1/moderation/kick-user",
            json={"moderator_id": MODERATOR, "user_id": 1, "room_id": room_id, "reason": "rude"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["action_type"] == "kick"
        assert data["audit_logged"] is True
        assert data["action_id"] is not None

    async def test_kick_non_member(self, client: AsyncClient) -> None:
        room_id = (await join(client, 1))["room"]["room_id"]

        response = await client.post(
            "/api/v1/moderation/kick-user",
            json={"moderator_id": MODERATOR, "user_id": 2, "room_id": room_id},
        )

        assert response.status_code == 404


@pytest.mark.api
class TestUserStatusEndpoints:
    async def test_suspend_then_join_is_forbidden(self, client: AsyncClient) -> None:
        await join(client, 1, "beginner")
        await join(client, 1, "advanced")

        response = await client.post(
            "/api/v1/moderation/suspend-user",
            json={"moderator_id": MODERATOR, "user_id": 1, "days": 3, "reason": "cool off"},
        )

        assert response.status_code == 200
        assert response.json()["details"]["rooms_removed"] == 2
        rejoin = await client.post(
            "/api/v1/support-rooms/join",
            json={"support_group_id": 3, "stage": "beginner", "user_id": 1},
        )
        assert rejoin.status_code == 403
        assert rejoin.json()["detail"]["days_remaining"] == 3

    async def test_suspend_days_validated(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/moderation/suspend-user",
            json={"moderator_id": MODERATOR, "user_id": 1, "days": 0},
        )

        assert response.status_code == 422

    async def test_ban_unknown_user(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/moderation/ban-user", json={"moderator_id": MODERATOR, "user_id": 999}
        )

        assert response.status_code == 404

    async def test_ban_and_unban(self, client: AsyncClient) -> None:
        ban = await client.post(
            "/api/v1/moderation/ban-user",
            json={"moderator_id": MODERATOR, "user_id": 2, "reason": "spam"},
        )
        unban = await client.post(
            "/api/v1/moderation/unban-user",
            json={"moderator_id": MODERATOR, "user_id": 2},
        )

        assert ban.status_code == 200
        assert unban.status_code == 200
        assert unban.json()["action_type"] == "unban"
        await join(client, 2)


@pytest.mark.api
class TestArchiveEndpoint:
    async def test_archive_and_archive_again(self, client: AsyncClient) -> None:
        room_id = (await join(client, 1))["room"]["room_id"]
        url = f"/api/v1/moderation/rooms/{room_id}/archive"

        first = await client.post(url, json={"moderator_id": MODERATOR})
        second = await client.post(url, json={"moderator_id": MODERATOR})

        assert first.status_code == 200
        assert first.json()["details"] == {"members_removed": 1}
        assert second.status_code == 409

        room = await client.get(f"/api/v1/support-rooms/{room_id}")
        assert room.json()["status"] == "archived"
        assert room.json()["archived_at"] is not None

    async def test_archive_missing_room(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/moderation/rooms/999/archive", json={"moderator_id": MODERATOR}
        )

        assert response.status_code == 404

    async def test_archive_under_constant_contention(self, client: AsyncClient) -> None:
        room_id = (await join(client, 1))["room"]["room_id"]

        with patch.object(
            SqlRoomStorage,
            "update_room",
            new_callable=AsyncMock,
            side_effect=StorageConflictError("version"),
        ):
            response = await client.post(
                f"/api/v1/moderation/rooms/{room_id}/archive", json={"moderator_id": MODERATOR}
            )

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "1"


@pytest.mark.api
class TestStorageFailures:
    async def test_ban_with_locked_database_is_recorded_and_retryable(
        self, client: AsyncClient
    ) -> None:
        await join(client, 1)

        with patch.object(
            SqlRoomStorage,
            "end_membership_and_release",
            new_callable=AsyncMock,
            side_effect=StorageUnavailableError("database is locked"),
        ):
            response = await client.post(
                "/api/v1/moderation/ban-user",
                json={"moderator_id": MODERATOR, "user_id": 1, "reason": "spam"},
            )

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "1"
        history = (await client.get("/api/v1/moderation/users/1/history")).json()
        assert history["total"] == 1
        assert history["items"][0]["details"] == {"rooms_removed": 0, "sweep_incomplete": True}

        retry = await client.post(
            "/api/v1/moderation/ban-user",
            json={"moderator_id": MODERATOR, "user_id": 1, "reason": "spam"},
        )
        assert retry.status_code == 200
        assert retry.json()["details"] == {"rooms_removed": 1}

    async def test_kick_with_locked_database(self, client: AsyncClient) -> None:
        room_id = (await join(client, 1))["room"]["room_id"]

        with patch.object(
            SqlRoomStorage,
            "end_membership_and_release",
            new_callable=AsyncMock,
            side_effect=StorageUnavailableError("database is locked"),
        ):
            response = await client.post(
                "/api/v1/moderation/kick-user",
                json={"moderator_id": MODERATOR, "user_id": 1, "room_id": room_id},
            )

        assert response.status_code == 503
        assert response.json()["detail"]["outcome"] == "server_busy"

    async def test_unsuspend_with_locked_database(self, client: AsyncClient) -> None:
        with patch.object(
            SqlRoomStorage,
            "set_user_status",
            new_callable=AsyncMock,
            side_effect=StorageUnavailableError("database is locked"),
        ):
            response = await client.post(
                "/api/v1/moderation/unsuspend-user",
                json={"moderator_id": MODERATOR, "user_id": 1},
            )

        assert response.status_code == 503

    async def test_delete_post_with_locked_database(self, client: AsyncClient) -> None:
        with patch.object(
            SqlRoomStorage,
            "get_content",
            new_callable=AsyncMock,
            side_effect=StorageUnavailableError("database is locked"),
        ):
            response = await client.request(
                "DELETE", "/api/v1/moderation/post/1", json={"moderator_id": MODERATOR}
            )

        assert response.status_code == 503


@pytest.mark.api
class TestContentEndpoints:
    async def test_delete_message(self, client: AsyncClient, db_session: AsyncSession) -> None:
        message = RoomMessages(room_id=1, user_id=2, body="spam spam")
        db_session.add(message)
        await db_session.commit()
        url = f"/api/v1/moderation/message/{message.id}"

        first = await client.request("DELETE", url, json={"moderator_id": MODERATOR})
        second = await client.request("DELETE", url, json={"moderator_id": MODERATOR})

        assert first.status_code == 200
        assert first.json()["action_type"] == "delete_message"
        assert second.status_code == 409

    async def test_delete_missing_post(self, client: AsyncClient) -> None:
        response = await client.request(
            "DELETE", "/api/v1/moderation/post/999", json={"moderator_id": MODERATOR}
        )

        assert response.status_code == 404

    async def test_delete_post(self, client: AsyncClient, db_session: AsyncSession) -> None:
        post = RoomPosts(room_id=1, user_id=2, body="post")
        db_session.add(post)
        await db_session.commit()

        response = await client.request(
            "DELETE",
            f"/api/v1/moderation/post/{post.id}",
            json={"moderator_id": MODERATOR, "reason": "off topic"},
        )

        assert response.status_code == 200
        assert response.json()["action_type"] == "delete_post"


@pytest.mark.api
class TestAuditEndpoints:
    async def test_actions_log_is_paginated_newest_first(self, client: AsyncClient) -> None:
        for user_id in (1, 2, 3):
            await client.post(
                "/api/v1/moderation/ban-user", json={"moderator_id": MODERATOR, "user_id": user_id}
            )

        response = await client.get("/api/v1/moderation/actions", params={"per_page": 2})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert data["per_page"] == 2
        assert [item["target_user_id"] for item in data["items"]] == [3, 2]
        assert data["items"][0]["reason"] == "Violates community guidelines"

    async def test_user_history(self, client: AsyncClient) -> None:
        await client.post(
            "/api/v1/moderation/suspend-user",
            json={"moderator_id": MODERATOR, "user_id": 4, "days": 1},
        )
        await client.post(
            "/api/v1/moderation/unsuspend-user", json={"moderator_id": MODERATOR, "user_id": 4}
        )
        await client.post(
            "/api/v1/moderation/ban-user", json={"moderator_id": MODERATOR, "user_id": 5}
        )

        response = await client.get("/api/v1/moderation/users/4/history")

        assert response.status_code == 200
        assert [item["action_type"] for item in response.json()["items"]] == [
            "unsuspend",
            "suspend",
        ]

    async def test_room_listing_filters(self, client: AsyncClient) -> None:
        beginner_room = (await join(client, 1, "beginner"))["room"]["room_id"]
        await join(client, 2, "advanced")
        await client.post(
            f"/api/v1/moderation/rooms/{beginner_room}/archive", json={"moderator_id": MODERATOR}
        )

        everything = await client.get("/api/v1/moderation/support-rooms")
        archived = await client.get(
            "/api/v1/moderation/support-rooms", params={"status": "archived"}
        )
        advanced = await client.get(
            "/api/v1/moderation/support-rooms", params={"stage": "advanced"}
        )

        assert everything.json()["total"] == 2
        assert [r["room_id"] for r in archived.json()["rooms"]] == [beginner_room]
        assert [r["stage"] for r in advanced.json()["rooms"]] == ["advanced"]
