[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kor"
version = "0.1.0"
description = "Find unused Kubernetes resources in an in-memory view of a cluster: idle deployments and daemon sets, orphaned HPAs, ingresses, config maps, cluster roles, CRDs and objects stuck on finalizers"
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = [
    "kubernetes",
    "k8s",
    "cleanup",
    "unused-resources",
    "orphaned-resources",
    "finalizers",
    "label-selector",
]
classifiers = [
    "Development Status :: 4 - Beta",
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

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["kor"]

[tool.hatch.build.targets.sdist]
include = [
    "kor",
    "tests",
]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
