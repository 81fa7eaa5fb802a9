"""Tests for the SessionStore table."""
import asyncio
import pytest

from navigator_broker.storage import SessionStore, short_id


class TestCreateGet:

    async def test_create_new_session(self, token_store, clock):
        session_id, session = await token_store.create()
        assert len(session_id) == 64
        assert session.session_id == session_id
        assert session.created == clock.now
        assert session.empty is True
        assert await token_store.get(session_id) is session

    async def test_create_returns_existing(self, token_store):
        session_id, session = await token_store.create()
        again_id, again = await token_store.create(session_id)
        assert again_id == session_id
        assert again is session
        assert len(token_store) == 1

    async def test_create_does_not_adopt_unknown_id(self, token_store):
        session_id, _ = await token_store.create('caller-chosen-id')
        assert session_id != 'caller-chosen-id'
        assert 'caller-chosen-id' not in token_store

    async def test_get_absent(self, token_store):
        assert await token_store.get('unknown') is None
        assert await token_store.get(None) is None
        assert await token_store.get('') is None

    async def test_get_does_not_touch_created(self, token_store, clock):
        session_id, session = await token_store.create()
        created = session.created
        clock.advance(120)
        await token_store.get(session_id)
        assert session.created == created


class TestMutate:

    async def test_mutate_creates_under_given_id(self, vault_store):
        session = await vault_store.mutate(
            'client-id', lambda s: s.__setitem__('openai', 'k1')
        )
        assert session.session_id == 'client-id'
        assert (await vault_store.get('client-id'))['openai'] == 'k1'

    async def test_mutate_without_create(self, vault_store):
        called = []
        result = await vault_store.mutate(
            'client-id', called.append, create=False
        )
        assert result is None
        assert called == []
        assert 'client-id' not in vault_store

    async def test_concurrent_mutations_all_persist(self, vault_store):
        session_id, _ = await vault_store.create()

        async def set_key(provider):
            await asyncio.sleep(0)
            await vault_store.mutate(
                session_id, lambda s: s.__setitem__(provider, f"key-{provider}")
            )

        providers = [f"provider{i}" for i in range(25)]
        await asyncio.gather(*(set_key(p) for p in providers))
        session = await vault_store.get(session_id)
        assert sorted(session.secret_names()) == sorted(providers)


class TestDelete:

    async def test_delete_existing(self, token_store):
        session_id, session = await token_store.create()
        session['token'] = 'secret'
        assert await token_store.delete(session_id) is True
        assert await token_store.get(session_id) is None
        assert session.empty is True

    async def test_delete_is_idempotent(self, token_store):
        await token_store.create()
        assert await token_store.delete('unknown') is False
        assert await token_store.delete(None) is False
        assert len(token_store) == 1


class TestExpiry:

    @pytest.mark.parametrize('ttl', [3600, 86400])
    async def test_lifetime_boundary(self, clock, ttl):
        store = SessionStore(ttl=ttl, clock=clock)
        session_id, _ = await store.create()
        clock.advance(ttl - 0.5)
        assert await store.get(session_id) is not None
        clock.advance(1)
        assert await store.get(session_id) is None

    async def test_sweep_removes_only_expired(self, token_store, clock):
        old_id, _ = await token_store.create()
        clock.advance(1800)
        young_id, _ = await token_store.create()
        clock.advance(1801)
        assert await token_store.sweep() == 1
        assert old_id not in token_store
        assert young_id in token_store

    async def test_sweep_on_empty_table(self, token_store):
        assert await token_store.sweep() == 0

    async def test_remaining(self, token_store, clock):
        _, session = await token_store.create()
        assert token_store.remaining(session) == 3600
        clock.advance(600)
        assert token_store.remaining(session) == 3000

    async def test_expired_session_is_replaced_by_mutate(self, vault_store, clock):
        await vault_store.mutate('sid', lambda s: s.__setitem__('old', 'v'))
        clock.advance(86401)
        session = await vault_store.mutate(
            'sid', lambda s: s.__setitem__('new', 'v')
        )
        assert session.secret_names() == ['new']
        assert session.created == clock.now


def test_short_id():
    assert short_id('0123456789abcdef') == '01234567…'
    assert short_id(None) == '-'
