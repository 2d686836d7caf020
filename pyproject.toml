[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nephioctrl"
version = "0.1.0"
description = "Reconcilers and helpers for package revision approval, workload cluster bootstrap and git repositories in a Kubernetes automation platform"
requires-python = ">=3.10"
keywords = ["kubernetes", "controllers", "reconciler", "package-revisions", "gitea", "cluster-api"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]
dependencies = [
    "pyyaml",
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["nephioctrl"]

[tool.pytest.ini_options]
addopts = "-ra"
