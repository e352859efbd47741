import pytest
import pytest_asyncio

from pwforge.backends.local import LocalBackend


@pytest.fixture
def vault_path(tmp_path):
    return tmp_path / "vault" / "vault.bin"


@pytest.fixture
def local_backend(vault_path):
    # Low iteration count keeps the suite fast; the format is unchanged.
    return LocalBackend(vault_path, "test-secret", iterations=1_000)


@pytest_asyncio.fixture
async def alice(local_backend):
    res = await local_backend.sign_up("alice@example.com", "correct horse")
    assert res.ok, res.error
    return res.value


@pytest_asyncio.fixture
async def bob(local_backend):
    res = await local_backend.sign_up("bob@example.com", "battery staple")
    assert res.ok, res.error
    return res.value
