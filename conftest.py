import os
import sys

# Get the repo root directory
repo_root = os.path.dirname(os.path.abspath(__file__))

# Make both `src.<module>` and bare `<module>` imports resolvable
for path in (repo_root, os.path.join(repo_root, "src")):
    if path not in sys.path:
        sys.path.insert(0, path)
