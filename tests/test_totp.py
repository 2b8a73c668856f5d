"""Time-stepped code generation and the safe-window guard."""
import pyotp
import pytest

from auth_harness.totp import OneTimeCodeGenerator

pytestmark = pytest.mark.asyncio

# RFC 6238 appendix B seed ("12345678901234567890"), truncated to 6 digits.
RFC_SECRET = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"
SEEDED_SECRET = "JBSWY3DPEHPK3PXP"


class FakeClock:
    def __init__(self, now: float):
        self.now = now
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _generator(clock: FakeClock, **kwargs) -> OneTimeCodeGenerator:
    return OneTimeCodeGenerator(clock=clock, sleep=clock.sleep, **kwargs)


class TestGenerate:
    @pytest.mark.parametrize(
        "timestamp, expected",
        [
            (59, "287082"),
            (1111111109, "081804"),
        ],
    )
    async def test_rfc_vectors(self, timestamp, expected):
        assert _generator(FakeClock(timestamp)).generate(RFC_SECRET) == expected

    async def test_same_step_same_code(self):
        clock = FakeClock(60.0)
        generator = _generator(clock)
        first = generator.generate(SEEDED_SECRET)
        clock.now = 89.9
        assert generator.generate(SEEDED_SECRET) == first
        assert generator.step_index() == 2

    async def test_matches_pyotp_for_each_step(self):
        clock = FakeClock(1_700_000_000.0)
        generator = _generator(clock)
        expected = pyotp.TOTP(SEEDED_SECRET).generate_otp(int(clock.now) // 30)
        assert generator.generate(SEEDED_SECRET) == expected

    async def test_remaining_and_safety(self):
        generator = _generator(FakeClock(0.0), margin=3.0)
        assert generator.remaining(at=10.0) == pytest.approx(20.0)
        assert generator.is_safe(at=10.0)
        assert not generator.is_safe(at=27.0)
        assert not generator.is_safe(at=29.5)

    @pytest.mark.parametrize("kwargs", [{"step": 0}, {"margin": -1.0}, {"margin": 30.0}])
    async def test_invalid_parameters(self, kwargs):
        with pytest.raises(ValueError):
            OneTimeCodeGenerator(**kwargs)


class TestGenerateSafe:
    async def test_returns_immediately_inside_safe_window(self):
        clock = FakeClock(10.0)
        code = await _generator(clock).generate_safe(SEEDED_SECRET)
        assert clock.sleeps == []
        assert code == pyotp.TOTP(SEEDED_SECRET).generate_otp(0)

    async def test_second_29_waits_for_next_step(self):
        clock = FakeClock(29.0)
        generator = _generator(clock, margin=3.0)

        code = await generator.generate_safe(SEEDED_SECRET)

        assert len(clock.sleeps) == 1
        assert clock.sleeps[0] > 1.0
        assert generator.step_index() == 1
        assert code == pyotp.TOTP(SEEDED_SECRET).generate_otp(1)
        assert generator.remaining() >= generator.step - generator.margin

    async def test_exactly_at_margin_is_not_safe(self):
        clock = FakeClock(27.0)
        await _generator(clock, margin=3.0).generate_safe(SEEDED_SECRET)
        assert clock.sleeps


class TestAwaitDifferentCode:
    async def test_waits_into_next_step(self):
        clock = FakeClock(25.0)
        generator = _generator(clock)
        used = generator.generate(SEEDED_SECRET)

        result = await generator.await_different_code(SEEDED_SECRET, used, poll_interval=2.0)

        assert result.changed is True
        assert result.code != used
        assert clock.now >= 30.0

    async def test_unchanged_within_budget_is_reported_not_raised(self):
        clock = FakeClock(5.0)
        generator = _generator(clock)
        used = generator.generate(SEEDED_SECRET)

        result = await generator.await_different_code(SEEDED_SECRET, used, max_wait_steps=0)

        assert result.changed is False
        assert result.code == used
