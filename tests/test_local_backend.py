import json

import pytest

from pwforge.backends.local import LocalBackend, LocalVault, VaultError
from pwforge.models import AuthSession, User


@pytest.mark.asyncio
async def test_sign_up_creates_encrypted_vault(local_backend, vault_path, alice):
    assert alice.user.email == "alice@example.com"
    assert alice.access_token

    payload = json.loads(vault_path.read_text(encoding="utf-8"))
    assert payload["version"] == 1
    raw = vault_path.read_text(encoding="utf-8")
    assert "alice@example.com" not in raw
    assert local_backend.vault.backup_path().exists()


@pytest.mark.asyncio
async def test_duplicate_sign_up_fails(local_backend, alice):
    res = await local_backend.sign_up("Alice@Example.com", "other")
    assert not res.ok
    assert "already registered" in res.error


@pytest.mark.asyncio
async def test_sign_in_checks_password(local_backend, alice):
    good = await local_backend.sign_in("alice@example.com", "correct horse")
    assert good.ok
    assert good.value.user.id == alice.user.id
    assert good.value.access_token != alice.access_token

    bad = await local_backend.sign_in("alice@example.com", "wrong")
    unknown = await local_backend.sign_in("nobody@example.com", "wrong")
    assert not bad.ok and not unknown.ok
    assert bad.error == unknown.error


@pytest.mark.asyncio
@pytest.mark.parametrize("email, password", [("", "x"), ("not-an-email", "x"), ("a@b.c", "")])
async def test_credentials_are_validated(local_backend, email, password):
    assert not (await local_backend.sign_up(email, password)).ok
    assert not (await local_backend.sign_in(email, password)).ok


@pytest.mark.asyncio
async def test_insert_and_list(local_backend, alice):
    first = await local_backend.insert_password(alice, "Abc123!@#xyz", "Gmail")
    second = await local_backend.insert_password(alice, "Zyx987$%^abc", "   ")
    assert first.ok and second.ok
    assert first.value.owner == alice.user.id
    assert second.value.label is None

    listed = await local_backend.list_passwords(alice)
    assert listed.ok
    assert {r.text for r in listed.value} == {"Abc123!@#xyz", "Zyx987$%^abc"}
    assert listed.value[0].created_at >= listed.value[1].created_at


@pytest.mark.asyncio
async def test_insert_rejects_empty_text(local_backend, alice):
    res = await local_backend.insert_password(alice, "", None)
    assert not res.ok


@pytest.mark.asyncio
async def test_rows_are_isolated_per_owner(local_backend, alice, bob):
    mine = await local_backend.insert_password(alice, "alice-secret-1", None)
    await local_backend.insert_password(bob, "bob-secret-1", None)

    alice_rows = (await local_backend.list_passwords(alice)).value
    bob_rows = (await local_backend.list_passwords(bob)).value
    assert [r.text for r in alice_rows] == ["alice-secret-1"]
    assert [r.text for r in bob_rows] == ["bob-secret-1"]

    # Bob cannot delete Alice's row.
    res = await local_backend.delete_password(bob, mine.value.id)
    assert not res.ok
    assert res.error == "Password not found."
    assert len((await local_backend.list_passwords(alice)).value) == 1

    res = await local_backend.delete_password(alice, mine.value.id)
    assert res.ok
    assert (await local_backend.list_passwords(alice)).value == []


@pytest.mark.asyncio
async def test_sign_out_revokes_session(local_backend, alice):
    assert (await local_backend.sign_out(alice)).ok
    res = await local_backend.list_passwords(alice)
    assert not res.ok
    assert res.error == "Not authenticated."


@pytest.mark.asyncio
async def test_forged_session_is_rejected(local_backend, alice):
    forged = AuthSession(access_token="forged", user=User(id=alice.user.id, email="x@y.z"))
    assert not (await local_backend.insert_password(forged, "pw", None)).ok
    assert not (await local_backend.list_passwords(forged)).ok


@pytest.mark.asyncio
async def test_expired_session_is_rejected(vault_path):
    backend = LocalBackend(vault_path, "s", iterations=1_000, session_ttl=-1)
    session = (await backend.sign_up("carol@example.com", "pw")).value
    res = await backend.list_passwords(session)
    assert res.error == "Not authenticated."


@pytest.mark.asyncio
async def test_data_survives_new_backend_instance(vault_path, local_backend, alice):
    await local_backend.insert_password(alice, "persisted-pw", "Bank")
    reopened = LocalBackend(vault_path, "test-secret", iterations=1_000)
    res = await reopened.list_passwords(alice)
    assert res.ok
    assert res.value[0].label == "Bank"


@pytest.mark.asyncio
async def test_wrong_secret_becomes_failure(vault_path, local_backend, alice):
    other = LocalBackend(vault_path, "another-secret", iterations=1_000)
    res = await other.sign_in("alice@example.com", "correct horse")
    assert not res.ok
    assert "secret" in res.error


def test_vault_load_errors(vault_path):
    vault = LocalVault(vault_path, "s", iterations=1_000)
    assert vault.load() == {"users": [], "sessions": [], "passwords": []}

    vault_path.parent.mkdir(parents=True)
    vault_path.write_text("not json", encoding="utf-8")
    with pytest.raises(VaultError):
        vault.load()

    vault_path.write_text(json.dumps({"version": 99}), encoding="utf-8")
    with pytest.raises(VaultError, match="Unsupported"):
        vault.load()

    vault_path.write_text("[]", encoding="utf-8")
    with pytest.raises(VaultError, match="corrupted"):
        vault.load()

    for tables in ([], {"users": {}}, {"users": [{"id": "u-1"}]}, {"passwords": ["row"]}):
        vault.save(tables)
        with pytest.raises(VaultError, match="corrupted"):
            vault.load()


@pytest.mark.asyncio
async def test_malformed_vault_file_becomes_failure(vault_path, local_backend):
    vault_path.parent.mkdir(parents=True)
    vault_path.write_text("[]", encoding="utf-8")

    res = await local_backend.sign_in("alice@example.com", "correct horse")
    assert not res.ok
    assert "corrupted" in res.error


def test_vault_restore_from_backup(vault_path):
    vault = LocalVault(vault_path, "s", iterations=1_000)
    assert not vault.restore_from_backup()

    tables = {"users": [], "sessions": [], "passwords": []}
    vault.save(tables)
    vault_path.write_text("garbage", encoding="utf-8")

    assert vault.restore_from_backup()
    assert vault_path.with_suffix(".bin.corrupt").exists()
    assert LocalVault(vault_path, "s", iterations=1_000).load() == tables
