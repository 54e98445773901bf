[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tradeproto"
version = "0.1.0"
description = "FAST codec, sessions and market-data feeds, price-level order books and byte buffers for trading protocols"
requires-python = ">=3.10"
dependencies = []
keywords = ["fast", "trading", "market-data", "order-book", "protocol", "codec"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Financial and Insurance Industry",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial :: Investment",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["tradeproto"]

[tool.pytest.ini_options]
addopts = "-ra"
