[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "shellrecall"
version = "0.1.0"
description = "Command history storage, search, navigation and fish-style hints for interactive line editors"
requires-python = ">=3.10"
dependencies = ["filelock"]
keywords = ["history", "shell", "line-editor", "autosuggestion", "readline", "sqlite"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Shells",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["shellrecall"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
