[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cloudshelf"
version = "0.1.0"
description = "A small cloud file-sharing service: user accounts, friends, chat and per-user file storage over a binary TCP protocol."
requires-python = ">=3.10"
dependencies = []
keywords = ["file sharing", "cloud storage", "tcp", "chat", "friends", "protocol"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: File Sharing",
    "Topic :: Communications :: Chat",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
cloudshelf-server = "cloudshelf.server:main"
cloudshelf-client = "cloudshelf.client:main"

[tool.hatch.build.targets.wheel]
packages = ["cloudshelf"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
