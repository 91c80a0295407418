import asyncio

import pytest

from services.page_templates.batching import (
    CancellationToken,
    InsertionPolicy,
    call_with_timeout,
    chunk,
    get_insertion_policy,
    insert_in_batches,
)
from services.page_templates.exceptions import (
    GenerationCancelled,
    InvalidConfigError,
    MissingTokenError,
)

POLICY_ENV_VARS = (
    "TEMPLATE_INSERTION_PROFILE",
    "TEMPLATE_BATCH_SIZE",
    "TEMPLATE_ELEMENT_DELAY",
    "TEMPLATE_BATCH_DELAY",
    "TEMPLATE_PAGE_SETTLE_DELAY",
    "TEMPLATE_HOST_TIMEOUT",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in POLICY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_insertion_policy.cache_clear()
    yield monkeypatch
    get_insertion_policy.cache_clear()


class TestInsertionPolicy:
    def test_reference_defaults(self, clean_env):
        policy = get_insertion_policy()

        assert policy.batch_size == 8
        assert policy.delay_between_elements == 0.3
        assert policy.delay_between_batches == 3.0
        assert policy.page_settle_delay == 0.5
        assert policy.host_call_timeout is None

    def test_env_overrides(self, clean_env):
        clean_env.setenv("TEMPLATE_BATCH_SIZE", "4")
        clean_env.setenv("TEMPLATE_BATCH_DELAY", "1.5")
        clean_env.setenv("TEMPLATE_HOST_TIMEOUT", "20")

        policy = InsertionPolicy.from_env()

        assert policy.batch_size == 4
        assert policy.delay_between_batches == 1.5
        assert policy.host_call_timeout == 20.0
        assert policy.delay_between_elements == 0.3

    def test_profile_then_override(self, clean_env):
        clean_env.setenv("TEMPLATE_INSERTION_PROFILE", "conservative")
        clean_env.setenv("TEMPLATE_ELEMENT_DELAY", "0.7")

        policy = InsertionPolicy.from_env()

        assert policy.batch_size == 5
        assert policy.delay_between_batches == 5.0
        assert policy.delay_between_elements == 0.7

    def test_unknown_profile(self):
        with pytest.raises(InvalidConfigError):
            InsertionPolicy.from_profile("reckless")

    def test_non_numeric_env_value(self, clean_env):
        clean_env.setenv("TEMPLATE_BATCH_DELAY", "soon")
        with pytest.raises(InvalidConfigError):
            InsertionPolicy.from_env()

    @pytest.mark.parametrize("value", ["8.5", "eight"])
    def test_batch_size_must_be_whole(self, clean_env, value):
        clean_env.setenv("TEMPLATE_BATCH_SIZE", value)
        with pytest.raises(InvalidConfigError):
            InsertionPolicy.from_env()

    @pytest.mark.parametrize(
        "overrides",
        [{"batch_size": 0}, {"delay_between_elements": -1}, {"host_call_timeout": 0}],
    )
    def test_validate_rejects_bad_values(self, overrides):
        with pytest.raises(InvalidConfigError):
            InsertionPolicy(**overrides).validate()


class TestInsertInBatches:
    def test_chunk(self):
        assert chunk([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
        assert chunk([], 3) == []

    @pytest.mark.asyncio
    async def test_outcome_records_each_item(self):
        sleeps = []

        async def sleep(seconds):
            sleeps.append(seconds)

        async def insert_one(item):
            if item == "bad":
                raise ValueError("rejected")
            return item != "skip"

        policy = InsertionPolicy(batch_size=2, delay_between_elements=0.1, delay_between_batches=1.0)
        outcome = await insert_in_batches(["a", "skip", "bad", "b"], insert_one, policy, sleep=sleep)

        assert outcome.inserted == ["a", "b"]
        assert outcome.skipped == ["skip"]
        assert outcome.failed == [("bad", "rejected")]
        assert outcome.batches == 2
        assert sleeps == [0.1, 1.0, 0.1]

    @pytest.mark.asyncio
    async def test_missing_token_error_escapes(self):
        async def insert_one(item):
            raise MissingTokenError(["name"], element_id=item)

        with pytest.raises(MissingTokenError):
            await insert_in_batches(["x"], insert_one, InsertionPolicy(), sleep=lambda s: asyncio.sleep(0))

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self):
        token = CancellationToken()
        token.cancel("shutdown")
        calls = []

        async def insert_one(item):
            calls.append(item)
            return True

        with pytest.raises(GenerationCancelled) as exc_info:
            await insert_in_batches(["x"], insert_one, InsertionPolicy(), cancellation=token)

        assert calls == []
        assert "shutdown" in str(exc_info.value)


class TestCallWithTimeout:
    @pytest.mark.asyncio
    async def test_without_timeout(self):
        async def quick():
            return 42

        assert await call_with_timeout(quick(), None) == 42

    @pytest.mark.asyncio
    async def test_times_out(self):
        with pytest.raises(asyncio.TimeoutError):
            await call_with_timeout(asyncio.sleep(5), 0.01)
