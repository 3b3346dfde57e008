from enum import Enum
from wt.common.logger import log
from wt.core.models import AttendanceDay
from wt.net.api import ApiError
from wt.util import Listeners


class AttendanceState(Enum):
    INITIAL = "initial"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"
    RECORDING = "recording"
    RECORDED = "recorded"
    RECORD_ERROR = "record_error"


# Today's attendance (check-in/check-out) for the logged in user.
class AttendanceStore(Listeners):

    def __init__(self, api):
        super().__init__()
        self._api = api
        self.state = AttendanceState.INITIAL
        self.day = None         # AttendanceDay, or None if there's no record yet today
        self.error = None

    def _set(self, state, day=None, error=None):
        self.state = state
        if day is not None or state == AttendanceState.LOADED:
            self.day = day
        self.error = error
        self.notify()

    @property
    def busy(self):
        return self.state in (AttendanceState.LOADING, AttendanceState.RECORDING)

    @property
    def has_checked_in(self):
        return self.day is not None and self.day.has_checked_in

    @property
    def has_checked_out(self):
        return self.day is not None and self.day.has_checked_out

    def load_today(self):
        self._set(AttendanceState.LOADING)
        log.info("Loading today's attendance...")
        try:
            raw = self._api.get_my_attendance()
        except ApiError as e:
            log.error(f"Failed to load attendance: {e}")
            self._set(AttendanceState.ERROR, error=str(e))
            return

        if raw is None:
            log.info("No attendance record for today")
            self._set(AttendanceState.LOADED, None)
        else:
            day = AttendanceDay.from_json(raw)
            log.info(f"Attendance loaded: {len(day.intervals)} intervals")
            self._set(AttendanceState.LOADED, day)

    # The first call of the day checks in, later calls check out. Returns True if the server recorded it.
    def record_biometric(self):
        self._set(AttendanceState.RECORDING)
        log.info("Recording biometric...")
        try:
            raw = self._api.record_biometric()
        except ApiError as e:
            log.error(f"Failed to record biometric: {e}")
            self._set(AttendanceState.RECORD_ERROR, error=str(e))
            return False

        if raw is None:
            self._set(AttendanceState.RECORD_ERROR, error="Failed to record attendance")
            return False

        day = AttendanceDay.from_json(raw)
        log.info(f"Biometric recorded: {len(day.intervals)} intervals")
        self._set(AttendanceState.RECORDED, day)

        # Reload so the totals match what the server computed
        self.load_today()
        return True

    def clear(self):
        self.day = None
        self._set(AttendanceState.INITIAL)
