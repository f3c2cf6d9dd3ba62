# Sample diffs shared by the test modules

# app.py hunk: one removed line first, then one context line and two added lines
APP_AND_README_DIFF = """\
diff --git a/app.py b/app.py
index 1234567..7654321 100644
--- a/app.py
+++ b/app.py
@@ -10,3 +10,4 @@
-    old_call()
 def handler(request):
+    user = load_user(request)
+    return render(user)
diff --git a/README.md b/README.md
index 1111111..2222222 100644
--- a/README.md
+++ b/README.md
@@ -1,2 +1,3 @@
 # Project
+Some docs.
 More text.
"""

# Hunk counts are consistent, so unidiff can parse it as an independent check
WELL_FORMED_DIFF = """\
diff --git a/src/service.py b/src/service.py
index 83db48f..bf269f4 100644
--- a/src/service.py
+++ b/src/service.py
@@ -1,5 +1,6 @@
 import os
-import sys
+import json
+import logging
 # helpers
 def load(path):
     return open(path).read()
@@ -20,3 +21,4 @@ def save(path, data):
     with open(path, "w") as fh:
-        fh.write(data)
+        fh.write(json.dumps(data))
+        fh.flush()
     return True
diff --git a/docs/notes.md b/docs/notes.md
new file mode 100644
index 0000000..e69de29
--- /dev/null
+++ b/docs/notes.md
@@ -0,0 +1,2 @@
+# Notes
+First entry.
"""

DELETED_FILE_DIFF = """\
diff --git a/old/legacy.py b/old/legacy.py
deleted file mode 100644
index 3b18e51..0000000
--- a/old/legacy.py
+++ /dev/null
@@ -1,2 +0,0 @@
-def legacy():
-    pass
"""


def file_segment(path, n_lines, width=40, prefix="+"):
    """A new-file diff segment for `path` with n_lines added lines of roughly `width` bytes each."""
    lines = [
        f"diff --git a/{path} b/{path}\n",
        "new file mode 100644\n",
        "--- /dev/null\n",
        f"+++ b/{path}\n",
        f"@@ -0,0 +1,{n_lines} @@\n",
    ]
    for i in range(n_lines):
        lines.append(prefix + f"value_{i}".ljust(width - 2, "x") + "\n")
    return "".join(lines)


# Content lines holding characters that str.splitlines() treats as line breaks
SEPARATOR_CHARS_DIFF = (
    "diff --git a/src/strings.js b/src/strings.js\n"
    "index 1111111..2222222 100644\n"
    "--- a/src/strings.js\n"
    "+++ b/src/strings.js\n"
    "@@ -1,3 +1,5 @@\n"
    " const a = 1;\n"
    "+const s = 'x\u2028 y';\n"
    "+const page = 'one\x0ctwo';\n"
    "-const old = 'gone\x85';\n"
    " const b = 2;\n"
    "+const t = 'tab\x0bbed\x1cgroup\u2029';\n"
    "diff --git a/notes.txt b/notes.txt\n"
    "index 3333333..4444444 100644\n"
    "--- a/notes.txt\n"
    "+++ b/notes.txt\n"
    "@@ -1,1 +1,2 @@\n"
    " first\x1e\n"
    "+second\x1d\n"
)
