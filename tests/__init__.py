import os
import tempfile

# Point the data directory (state.json, logs) at a throwaway location before anything imports wt.
os.environ.setdefault("WORKTRACKER_HOME", tempfile.mkdtemp(prefix="worktracker-tests-"))
