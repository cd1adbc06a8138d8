import time
from typing import Callable


class RevealTimer:
    """Handle for one pending deferred reveal."""

    def __init__(self, session_id: str, round_number: int, delay: float):
        self.session_id = session_id
        self.round_number = round_number
        self.delay = delay
        self.deadline = time.time() + delay
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class TimerScheduler:
    """One-shot reveal timers run as Socket.IO background tasks.

    - The worker sleeps in ticks of at most `tick` seconds, so a cancelled
      timer exits within one tick without calling back
    - The callback receives (session_id, round_number) so the reveal can
      refuse a round that has since been replaced
    """

    def __init__(self, socketio, logger, tick: float = 0.25):
        self.socketio = socketio
        self.logger = logger
        self.tick = tick

    def schedule(self, session_id: str, round_number: int, delay: float,
                 callback: Callable[[str, int], None]) -> RevealTimer:
        timer = RevealTimer(session_id, round_number, delay)
        self.logger.info(
            f"[timer-set] session={session_id} round={round_number} duration={delay}s deadline={timer.deadline}"
        )
        self.socketio.start_background_task(self._worker, timer, callback)
        return timer

    def _worker(self, timer: RevealTimer, callback: Callable[[str, int], None]) -> None:
        slept = 0.0
        while slept < timer.delay and not timer.cancelled:
            step = min(self.tick, timer.delay - slept)
            self.socketio.sleep(step)
            slept += step
        if timer.cancelled:
            self.logger.info(f"[timer-abort] session={timer.session_id} round={timer.round_number} cancelled")
            return
        timer.fired = True
        self.logger.info(f"[timer-fire] session={timer.session_id} round={timer.round_number}")
        try:
            callback(timer.session_id, timer.round_number)
        except Exception:
            self.logger.exception(f"[timer-error] session={timer.session_id} round={timer.round_number}")
