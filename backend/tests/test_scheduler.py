import logging

from planning_poker.services.sessions import TimerScheduler


class DeferredSocketIO:
    """Collects background tasks so a test decides when they run."""

    def __init__(self):
        self.tasks = []
        self.slept = []

    def start_background_task(self, target, *args):
        self.tasks.append((target, args))

    def sleep(self, seconds):
        self.slept.append(seconds)

    def run_all(self):
        while self.tasks:
            target, args = self.tasks.pop(0)
            target(*args)


def _scheduler(tick=1.0):
    sio = DeferredSocketIO()
    return sio, TimerScheduler(sio, logging.getLogger('tests.scheduler'), tick=tick)


def test_timer_fires_callback_after_delay():
    sio, scheduler = _scheduler()
    calls = []
    timer = scheduler.schedule('ABCD1234', 3, 2, lambda sid, rnd: calls.append((sid, rnd)))
    assert calls == []
    sio.run_all()
    assert sio.slept == [1.0, 1.0]
    assert calls == [('ABCD1234', 3)]
    assert timer.fired


def test_cancelled_timer_never_calls_back():
    sio, scheduler = _scheduler()
    calls = []
    timer = scheduler.schedule('ABCD1234', 1, 2, lambda sid, rnd: calls.append(sid))
    timer.cancel()
    sio.run_all()
    assert calls == []
    assert not timer.fired


def test_callback_error_is_contained():
    sio, scheduler = _scheduler()

    def boom(sid, rnd):
        raise RuntimeError('boom')

    scheduler.schedule('ABCD1234', 1, 1, boom)
    sio.run_all()


def test_timer_sleeps_in_ticks():
    sio, scheduler = _scheduler(tick=0.25)
    scheduler.schedule('ABCD1234', 1, 1, lambda sid, rnd: None)
    sio.run_all()
    assert sio.slept == [0.25, 0.25, 0.25, 0.25]


def test_cancel_wakes_sleeping_worker():
    sio, scheduler = _scheduler(tick=0.25)
    calls = []
    timer = scheduler.schedule('ABCD1234', 1, 3600, lambda sid, rnd: calls.append(sid))

    def cancelling_sleep(seconds):
        sio.slept.append(seconds)
        if len(sio.slept) == 2:
            timer.cancel()

    sio.sleep = cancelling_sleep
    sio.run_all()
    assert sio.slept == [0.25, 0.25]
    assert calls == []
