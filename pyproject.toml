[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mimescan"
version = "0.1.0"
description = "Best-effort parser for RFC 5322 / MIME e-mail messages, with text and HTML truncation helpers"
requires-python = ">=3.10"
dependencies = []
keywords = ["email", "mime", "rfc5322", "rfc822", "parser", "multipart"]
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
    "Topic :: Communications :: Email",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["mimescan"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
