"""
Example of finding files that keep changing together.

Two files that change in the same commits again and again are coupled, even if neither
imports the other. High coupling across module boundaries usually points at a missing
abstraction.

This example demonstrates:
1. Reading the history of a local git repository with GitRepositoryStore
2. Listing coupled pairs with minimum support and score
3. Restricting the analysis to a directory and to file types
"""

import tempfile
from pathlib import Path

import git

from gitrisk import GitRepositoryStore, ProjectHistory


def build_repository(path):
    repo = git.Repo.init(str(path))
    repo.git.config("user.name", "Example Author")
    repo.git.config("user.email", "author@example.com")

    def commit(files, message):
        for name, content in files.items():
            target = Path(path) / name
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "a") as f:
                f.write(content)
        repo.git.add(all=True)
        repo.git.commit(m=message)

    commit({"app/models.py": "class User: pass\n", "app/views.py": "# views\n", "docs/index.md": "# Docs\n"}, "initial")
    for i in range(4):
        commit({"app/models.py": f"field_{i} = {i}\n", "app/views.py": f"view_{i} = {i}\n"}, f"feature {i}")
    commit({"app/models.py": "# tidy\n", "app/serializers.py": "# serializers\n"}, "serializers")
    commit({"app/serializers.py": "# more\n", "app/models.py": "# again\n"}, "serializers again")
    commit({"docs/index.md": "More docs\n"}, "docs")
    return path


if __name__ == "__main__":
    with tempfile.TemporaryDirectory() as tmp:
        path = build_repository(Path(tmp) / "shop")
        store = GitRepositoryStore({"shop": path})
        project = ProjectHistory(store, "shop")

        print("Coupled pairs:")
        print(project.temporal_coupling())

        print("\nStrongly coupled pairs only (score >= 0.8):")
        print(project.temporal_coupling(min_coupling_score=0.8))

        print("\nPython files under app/ with at least 3 shared commits:")
        print(project.temporal_coupling(path_prefix="app", file_types="py", min_shared_commits=3))
