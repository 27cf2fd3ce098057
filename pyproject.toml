[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kabina"
version = "0.1.0"
description = "HTTP API for a shared-taxi dispatcher, with a simulator of cabs and customers that puts load on it"
requires-python = ">=3.10"
keywords = ["taxi", "dispatch", "rest", "simulation", "ride-sharing", "flask"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: Flask",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]
dependencies = [
    "flask",
    "requests",
    "sqlalchemy",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[project.scripts]
kabina-server = "kabina.server:main"
kabina-sim = "kabina.simulator:main"

[tool.hatch.build.targets.wheel]
packages = ["kabina"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
