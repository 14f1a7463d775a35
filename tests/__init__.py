import os
import tempfile

# Keep the import-time logger and default paths out of the real user directories.
_SCRATCH = tempfile.mkdtemp(prefix="bt-tests-")
os.environ.setdefault("BT_CONFIG_DIR", os.path.join(_SCRATCH, "config"))
os.environ.setdefault("BT_STATE_DIR", os.path.join(_SCRATCH, "state"))
