[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "snapengines"
version = "0.1.0"
description = "Validate and inspect inference engine manifests, manage engine configuration, and chat with a local OpenAI-compatible server"
requires-python = ">=3.10"
keywords = ["inference", "engines", "snap", "llm", "openai", "manifest", "validation"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]
dependencies = [
    "pyyaml>=6.0",
    "httpx>=0.24",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[project.scripts]
snapengines = "snapengines.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["snapengines"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
