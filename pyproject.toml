[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ratelimit-svc"
version = "0.1.0"
description = "Building blocks of a rate limit service: settings from the environment, stats counters, SRV discovery, TLS contexts and time helpers."
requires-python = ">=3.10"
dependencies = [
    "dnspython",
]
keywords = ["ratelimit", "rate-limiting", "settings", "stats", "srv", "dns", "tls"]
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
    "Topic :: Internet :: WWW/HTTP",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["ratelimit_svc"]

[tool.hatch.build.targets.sdist]
include = [
    "ratelimit_svc",
    "tests",
    "pyproject.toml",
]

[tool.pytest.ini_options]
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
