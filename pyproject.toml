[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "polymethod"
version = "1.0.0"
description = "Open multi-methods for Python: virtual dispatch on any number of arguments, defined outside the classes."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "multi-methods",
    "multiple-dispatch",
    "open-methods",
    "polymorphism",
    "dispatch",
]
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
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
polymethod-demo = "polymethod.demo:main"

[tool.hatch.build.targets.wheel]
packages = ["polymethod"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
