"""
Speed gate tests: warmup, spike tolerance, sustained overspeed, reset.
"""

import pytest

from territory_engine.analytics.speed_gate import SpeedDecision, SpeedGate
from territory_engine.config import SpeedGateConfig

# 10 m every 10 s = 3.6 km/h
WALK = [(0.0, 0.0), (10.0, 0.0), (20.0, 0.0), (30.0, 0.0)]


def feed(gate, fixes):
    return [gate.evaluate(f) for f in fixes]


def test_walking_is_accepted(make_fixes):
    gate = SpeedGate()
    decisions = feed(gate, make_fixes(WALK))
    assert decisions == [SpeedDecision.ACCEPT] * 4
    state = gate.snapshot()
    assert state.current_speed_kmh == pytest.approx(3.6, rel=0.01)
    assert state.fixes_seen == 4
    assert not state.is_warning
    assert not state.halted


def test_warmup_tolerates_early_overspeed(make_fixes):
    gate = SpeedGate()
    # Two 216 km/h jumps among the first three fixes
    fixes = make_fixes([(0.0, 0.0), (12.0, 0.0), (24.0, 0.0)], interval_s=0.2)
    decisions = feed(gate, fixes)
    assert SpeedDecision.REJECT_AND_HALT not in decisions
    assert decisions[1:] == [SpeedDecision.ACCEPT_WITH_WARNING] * 2
    assert gate.snapshot().consecutive_violations == 0


def test_single_spike_does_not_halt(make_fixes):
    gate = SpeedGate()
    offsets = WALK + [(42.0, 0.0), (52.0, 0.0)]
    fixes = make_fixes(offsets, interval_s=[10.0, 10.0, 10.0, 0.2, 10.0])
    decisions = feed(gate, fixes)

    assert decisions[4] is SpeedDecision.ACCEPT_WITH_WARNING
    assert decisions[5] is SpeedDecision.ACCEPT
    assert gate.snapshot().consecutive_violations == 0
    assert not gate.halted


def test_sustained_overspeed_halts(make_fixes):
    gate = SpeedGate()
    offsets = WALK + [(42.0, 0.0), (54.0, 0.0)]
    fixes = make_fixes(offsets, interval_s=[10.0, 10.0, 10.0, 0.2, 0.2])
    decisions = feed(gate, fixes)

    assert decisions[4] is SpeedDecision.ACCEPT_WITH_WARNING
    assert decisions[5] is SpeedDecision.REJECT_AND_HALT
    assert gate.halted
    assert gate.snapshot().consecutive_violations == 2


def test_halt_is_terminal_until_reset(make_fixes):
    gate = SpeedGate(SpeedGateConfig(required_streak=1, warmup_fixes=0))
    fixes = make_fixes([(0.0, 0.0), (50.0, 0.0), (60.0, 0.0)], interval_s=[1.0, 10.0])
    assert gate.evaluate(fixes[0]) is SpeedDecision.ACCEPT
    assert gate.evaluate(fixes[1]) is SpeedDecision.REJECT_AND_HALT
    # A plausible fix afterwards is still rejected
    assert gate.evaluate(fixes[2]) is SpeedDecision.REJECT_AND_HALT

    gate.reset()
    assert not gate.halted
    assert gate.snapshot().fixes_seen == 0
    assert gate.evaluate(fixes[2]) is SpeedDecision.ACCEPT


def test_warning_band_and_recovery(make_fixes):
    gate = SpeedGate()
    # 10 m per 1.8 s = 20 km/h, between the warning and stop thresholds
    fast = make_fixes([(0.0, 0.0), (10.0, 0.0), (20.0, 0.0), (30.0, 0.0), (40.0, 0.0)],
                      interval_s=1.8)
    decisions = feed(gate, fast)
    assert decisions[-1] is SpeedDecision.ACCEPT_WITH_WARNING
    assert gate.snapshot().is_warning

    slow = make_fixes([(50.0, 0.0)], start=fast[-1].timestamp)
    # Same timestamp as the previous fix: no speed sample
    assert gate.evaluate(slow[0]) is SpeedDecision.ACCEPT

    later = make_fixes([(40.0, 0.0), (50.0, 0.0)], start=fast[-1].timestamp)
    assert gate.evaluate(later[1]) is SpeedDecision.ACCEPT
    assert not gate.snapshot().is_warning


def test_non_positive_elapsed_keeps_last_fix(make_fixes):
    gate = SpeedGate()
    fixes = make_fixes([(0.0, 0.0), (500.0, 0.0)], interval_s=0.0)
    feed(gate, fixes)
    state = gate.snapshot()
    assert state.current_speed_kmh == 0.0
    assert state.fixes_seen == 2


def test_config_validation():
    with pytest.raises(ValueError):
        SpeedGateConfig(warning_speed_kmh=30.0, stop_speed_kmh=15.0)
    with pytest.raises(ValueError):
        SpeedGateConfig(required_streak=0)
    with pytest.raises(ValueError):
        SpeedGateConfig(window_size=0)
