[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pricefeed"
version = "1.0.3"
description = "Exchange price collection and consolidation, and voting-period scheduling, for a chain price oracle feeder"
requires-python = ">=3.10"
keywords = [
    "oracle",
    "price feed",
    "exchange",
    "cryptocurrency",
    "tendermint",
    "uniswap",
    "validator",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Financial and Insurance Industry",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial :: Investment",
]
dependencies = [
    "requests>=2.28",
    "python-dotenv>=1.0",
    "websocket-client>=1.5",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "responses>=0.23",
]

[tool.hatch.build.targets.wheel]
packages = ["pricefeed"]

[tool.hatch.build.targets.sdist]
include = ["pricefeed", "tests"]

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
