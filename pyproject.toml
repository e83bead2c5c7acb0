[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sloth"
version = "0.1.0"
description = "SLO toolkit: multiwindow, multi-burn-rate alerts, Kubernetes service level specs and Prometheus operator rule output."
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = [
    "slo",
    "sli",
    "prometheus",
    "prometheus-operator",
    "kubernetes",
    "alerting",
    "error-budget",
    "burn-rate",
    "monitoring",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["sloth"]

[tool.hatch.build.targets.sdist]
include = [
    "sloth",
    "tests",
]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
