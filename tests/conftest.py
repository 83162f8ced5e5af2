import os

# Allow Qt widget tests to run without a display server.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
