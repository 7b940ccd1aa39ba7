[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "microcore"
version = "0.1.0"
description = "Core services for a terminal text editor: clipboard registers, settings, colorschemes, runtime files, plugins, soft wrapping, tab bar layout, prompt history and shell jobs"
requires-python = ">=3.10"
keywords = ["editor", "terminal", "settings", "colorscheme", "plugins", "softwrap", "clipboard", "history"]
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
    "Topic :: Text Editors",
]
dependencies = [
    "semver",
    "wcwidth",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["microcore"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
