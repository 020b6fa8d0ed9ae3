import pytest

from agbkit.timer import REG_TMXCNT_H, REG_TMXCNT_L, Scheduler, Timer

ENABLE = 0x80
IRQ = 0x40
CASCADE = 0x04


@pytest.fixture
def setup():
    scheduler = Scheduler()
    irqs = []
    apu = []
    timer = Timer(scheduler, irqs.append, lambda chan, n: apu.append((chan, n)))
    return scheduler, timer, irqs, apu


def test_scheduler_runs_events_in_time_order():
    scheduler = Scheduler()
    seen = []
    scheduler.add(5, lambda: seen.append(("b", scheduler.timestamp_now)))
    scheduler.add(2, lambda: seen.append(("a", scheduler.timestamp_now)))
    scheduler.advance(10)
    assert seen == [("a", 2), ("b", 5)]
    assert scheduler.timestamp_now == 10


def test_scheduler_cancel_and_partial_advance():
    scheduler = Scheduler()
    seen = []
    event = scheduler.add(3, lambda: seen.append("x"))
    scheduler.add(8, lambda: seen.append("y"))
    scheduler.cancel(event)
    scheduler.cancel(None)
    scheduler.advance(5)
    assert seen == []
    scheduler.advance(3)
    assert seen == ["y"]


def test_scheduler_rejects_negative_advance():
    with pytest.raises(ValueError):
        Scheduler().advance(-1)


def test_reset_state_reads_zero(setup):
    _, timer, _, _ = setup
    assert [timer.read_word(chan) for chan in range(4)] == [0, 0, 0, 0]


def test_control_write_takes_effect_after_one_cycle(setup):
    scheduler, timer, _, _ = setup
    timer.write_half(0, REG_TMXCNT_H, ENABLE)
    assert timer.read_half(0, REG_TMXCNT_H) == 0
    scheduler.advance(1)
    assert timer.read_half(0, REG_TMXCNT_H) == ENABLE


def test_channel_zero_ignores_cascade_bit(setup):
    scheduler, timer, _, _ = setup
    timer.write_half(0, REG_TMXCNT_H, 0xFFFF)
    timer.write_half(1, REG_TMXCNT_H, ENABLE | CASCADE)
    scheduler.advance(1)
    assert timer.read_half(0, REG_TMXCNT_H) == ENABLE | IRQ | 3
    assert timer.read_half(1, REG_TMXCNT_H) == ENABLE | CASCADE


def test_counter_counts_cycles_from_reload(setup):
    scheduler, timer, _, _ = setup
    reload = 0x1000
    timer.write_word(0, (ENABLE << 16) | reload)
    scheduler.advance(2)
    assert timer.read_half(0, REG_TMXCNT_L) == reload
    scheduler.advance(5)
    assert timer.read_half(0, REG_TMXCNT_L) == reload + 5


def test_overflow_raises_irq_and_reloads(setup):
    scheduler, timer, irqs, apu = setup
    reload = 0xFFF0
    timer.write_word(0, ((ENABLE | IRQ) << 16) | reload)
    scheduler.advance(2)
    scheduler.advance(0xFFFF - reload)
    assert timer.read_half(0, REG_TMXCNT_L) == 0xFFFF
    assert irqs == []
    scheduler.advance(1)
    assert irqs == [0]
    assert apu == [(0, 1)]
    assert timer.read_half(0, REG_TMXCNT_L) == reload


def test_overflow_without_interrupt_flag_raises_nothing(setup):
    scheduler, timer, irqs, apu = setup
    timer.write_word(2, (ENABLE << 16) | 0xFFF0)
    scheduler.advance(200)
    assert irqs == []
    assert apu == []
    assert timer.read_half(2, REG_TMXCNT_L) >= 0xFFF0


def test_repeated_overflows_are_periodic(setup):
    scheduler, timer, irqs, _ = setup
    reload = 0xFFF0
    period = 0x10000 - reload
    timer.write_word(1, ((ENABLE | IRQ) << 16) | reload)
    scheduler.advance(2 + period * 4)
    assert irqs == [1, 1, 1, 1]


def test_cascade_counts_overflows(setup):
    scheduler, timer, irqs, _ = setup
    reload = 0xFFF0
    period = 0x10000 - reload
    timer.write_word(1, ((ENABLE | CASCADE) << 16) | 0)
    timer.write_word(0, (ENABLE << 16) | reload)
    scheduler.advance(2 + period * 3)
    assert timer.read_half(1, REG_TMXCNT_L) == 3
    assert irqs == []


def test_prescaler_divides_ticks(setup):
    scheduler, timer, _, _ = setup
    reload = 0x100
    timer.write_word(0, ((ENABLE | 1) << 16) | reload)
    scheduler.advance(64)
    assert timer.read_half(0, REG_TMXCNT_L) == reload
    scheduler.advance(1)
    assert timer.read_half(0, REG_TMXCNT_L) == reload + 1


def test_byte_writes_combine_into_reload(setup):
    scheduler, timer, _, _ = setup
    timer.write_byte(0, 0, 0x34)
    timer.write_byte(0, 1, 0x12)
    timer.write_byte(0, REG_TMXCNT_H, ENABLE)
    scheduler.advance(2)
    counter = timer.read_half(0, REG_TMXCNT_L)
    assert counter == 0x1234
    assert timer.read_byte(0, 0) == counter & 0xFF
    assert timer.read_byte(0, 1) == counter >> 8
    assert timer.read_byte(0, REG_TMXCNT_H) == ENABLE


def test_read_word_combines_halves(setup):
    scheduler, timer, _, _ = setup
    timer.write_word(3, ((ENABLE | 2) << 16) | 0x4000)
    scheduler.advance(300)
    word = timer.read_word(3)
    assert word >> 16 == timer.read_half(3, REG_TMXCNT_H)
    assert word & 0xFFFF == timer.read_half(3, REG_TMXCNT_L)


def test_disabling_freezes_counter(setup):
    scheduler, timer, _, _ = setup
    timer.write_word(0, (ENABLE << 16) | 0x2000)
    scheduler.advance(10)
    timer.write_half(0, REG_TMXCNT_H, 0)
    scheduler.advance(1)
    frozen = timer.read_half(0, REG_TMXCNT_L)
    scheduler.advance(50)
    assert timer.read_half(0, REG_TMXCNT_L) == frozen
    assert timer.read_half(0, REG_TMXCNT_H) == 0


def test_reset_stops_running_channels(setup):
    scheduler, timer, irqs, _ = setup
    timer.write_word(0, ((ENABLE | IRQ) << 16) | 0xFFF0)
    scheduler.advance(5)
    timer.reset()
    scheduler.advance(100)
    assert irqs == []
    assert timer.read_word(0) == 0