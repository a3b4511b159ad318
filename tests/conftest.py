import os
import tempfile

# Keep server JSON logs and client settings out of the working tree.
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="therapist-logs-"))
os.environ.setdefault("THERAPIST_VOICE_HOME", tempfile.mkdtemp(prefix="therapist-home-"))
