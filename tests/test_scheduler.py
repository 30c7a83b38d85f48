import asyncio

from scheduler import PeriodicTask
from conftest import FakeClock


def run_ticks(action_factory, interval=10, ticks=3, run_immediately=True):
    clock = FakeClock()
    tick_times = []
    holder = {}

    async def action():
        tick_times.append(clock.now)
        await action_factory(clock, len(tick_times))
        if len(tick_times) >= ticks:
            holder["task"].stop()

    async def main():
        task = PeriodicTask("test", action, interval, run_immediately=run_immediately,
                            clock=clock, sleep=clock.sleep)
        holder["task"] = task
        assert task.start() is True
        await task.wait_stopped()
        return task

    task = asyncio.run(main())
    return task, clock, tick_times


async def noop(clock, n):
    return None


def test_immediate_tick_then_fixed_interval():
    task, clock, tick_times = run_ticks(noop)

    assert tick_times == [0, 10, 20]
    assert clock.sleeps == [10, 10]
    assert task.tick_count == 3
    assert task.is_running is False


def test_first_tick_can_wait_for_interval():
    _, clock, tick_times = run_ticks(noop, ticks=2, run_immediately=False)

    assert tick_times == [10, 20]


def test_interval_measured_from_tick_start():
    async def slow(clock, n):
        clock.now += 4

    _, clock, tick_times = run_ticks(slow)

    assert tick_times == [0, 10, 20]
    assert clock.sleeps == [6, 6]


def test_overrunning_tick_is_followed_immediately_without_overlap():
    async def first_tick_overruns(clock, n):
        if n == 1:
            clock.now += 25

    _, clock, tick_times = run_ticks(first_tick_overruns)

    # Missed slots at 10 and 20 are not replayed
    assert tick_times == [0, 25, 35]
    assert clock.sleeps == [10]


def test_errors_do_not_stop_the_schedule():
    async def fails_first(clock, n):
        if n == 1:
            raise RuntimeError("boom")

    task, _, tick_times = run_ticks(fails_first)

    assert tick_times == [0, 10, 20]
    assert task.error_count == 1


def test_start_while_running_is_a_noop():
    calls = []

    async def action():
        calls.append(1)

    async def main():
        task = PeriodicTask("test", action, 3600)
        assert task.start() is True
        first = task._task
        assert task.start() is False
        assert task._task is first
        await asyncio.sleep(0)
        task.stop()
        await task.wait_stopped()
        return task

    task = asyncio.run(main())
    assert calls == [1]
    assert task.is_running is False


def test_stop_does_not_abort_in_flight_tick():
    finished = []

    async def main():
        release = asyncio.Event()

        async def action():
            await release.wait()
            finished.append(True)

        task = PeriodicTask("test", action, 3600)
        task.start()
        await asyncio.sleep(0)
        task.stop()
        release.set()
        await task.wait_stopped()
        return task

    task = asyncio.run(main())
    assert finished == [True]
    assert task.tick_count == 1


def test_restart_during_in_flight_tick_keeps_a_single_loop():
    clock = FakeClock()
    tick_times = []
    concurrent = []
    active = []
    holder = {}

    async def action():
        active.append(1)
        concurrent.append(len(active))
        tick_times.append(clock.now)
        if len(tick_times) == 1:
            await holder["release"].wait()
        else:
            await asyncio.sleep(0)
        active.pop()
        if len(tick_times) >= 3:
            holder["task"].stop()

    async def main():
        holder["release"] = asyncio.Event()
        task = PeriodicTask("test", action, 10, clock=clock, sleep=clock.sleep)
        holder["task"] = task
        task.start()
        await asyncio.sleep(0)
        first = task._task

        task.stop()
        assert task.start() is True
        assert task._task is first

        holder["release"].set()
        await task.wait_stopped()
        return task

    task = asyncio.run(main())
    assert tick_times == [0, 10, 20]
    assert max(concurrent) == 1
    assert task.is_running is False


def test_restart_after_stop_between_ticks_replaces_the_loop():
    calls = []

    async def action():
        calls.append(1)

    async def main():
        task = PeriodicTask("test", action, 3600)
        task.start()
        await asyncio.sleep(0)
        first = task._task

        waiter = asyncio.ensure_future(task.wait_stopped())
        await asyncio.sleep(0)
        task.stop()
        assert task.start() is True
        second = task._task
        assert second is not first

        await waiter
        # Waiting on the old loop leaves the new one in place
        assert task._task is second
        assert first.cancelled()

        await asyncio.sleep(0)
        task.stop()
        await task.wait_stopped()
        return task

    task = asyncio.run(main())
    assert calls == [1, 1]
    assert task._task is None


def test_tick_can_be_driven_manually():
    async def action():
        raise ValueError("bad payload")

    task = PeriodicTask("manual", action, 30)
    assert asyncio.run(task.tick()) is False
    assert task.error_count == 1
    assert task.is_running is False
