"""API tests for user administration."""

import pytest

from storage.users import get_user_by_addr

USERS = "/api/v1/admin/users"
NEW_ADDR = "0x" + "Ab" * 20


class TestUsers:

    @pytest.mark.asyncio
    async def test_create_stores_lowercase_address(self, async_client, auth_headers):
        response = await async_client.post(USERS, headers=auth_headers, json={
            "addr": NEW_ADDR,
            "name": "grace",
            "email": "grace@example.com",
        })
        assert response.status_code == 200
        body = response.json()
        assert body["addr"] == NEW_ADDR.lower()
        assert body["level"] == 1
        assert get_user_by_addr(NEW_ADDR).name == "grace"

    @pytest.mark.asyncio
    async def test_create_rejects_bad_address(self, async_client, auth_headers):
        response = await async_client.post(USERS, headers=auth_headers, json={"addr": "0x123"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_create_rejects_duplicate(self, async_client, auth_headers, wallet):
        response = await async_client.post(USERS, headers=auth_headers, json={"addr": wallet.address})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_list(self, async_client, auth_headers, user):
        await async_client.post(USERS, headers=auth_headers, json={"addr": NEW_ADDR})
        response = await async_client.get(USERS, headers=auth_headers)
        body = response.json()
        assert body["count"] == 2
        assert body["data"][-1]["id"] == user.id

    @pytest.mark.asyncio
    async def test_delete(self, async_client, auth_headers):
        created = (await async_client.post(USERS, headers=auth_headers, json={"addr": NEW_ADDR})).json()
        response = await async_client.delete(f"{USERS}/{created['id']}", headers=auth_headers)
        assert response.json() == {"status": "deleted"}
        assert get_user_by_addr(NEW_ADDR) is None

        response = await async_client.delete(f"{USERS}/{created['id']}", headers=auth_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_requires_session(self, async_client, database):
        response = await async_client.get(USERS)
        assert response.status_code == 401
